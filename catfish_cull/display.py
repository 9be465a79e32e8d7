"""
Live display pipelines.

``CheckInDisplay`` polls the roster, classifies it into buckets and pages them
for the kiosk under the control of a ``Sequencer``. ``LeaderboardFeed`` polls
catches and ranks them for the public board. Both keep their last good
snapshot when a poll fails.
"""

import asyncio
import logging
from dataclasses import asdict
from datetime import datetime
from contextlib import asynccontextmanager
from typing import Optional, List, Dict, Any

from catfish_cull import config
from catfish_cull.checkin import (
    ARRIVED, WAITING, INCOMPLETE, RosterBuckets, RosterCounts, classify_roster, specified_partner,
)
from catfish_cull.database import DataSource
from catfish_cull.models import Division, EventState, Team
from catfish_cull.paging import ViewportSizer, page_count, paginate
from catfish_cull.sequencer import SECTION_ORDER, Section, Sequencer, every
from catfish_cull.standings import compute_standings

logger = logging.getLogger(__name__)

SECTION_BUCKETS = {
    Section.ARRIVING: WAITING,
    Section.INCOMPLETE: INCOMPLETE,
    Section.CHECKED_IN: ARRIVED,
}


def team_card(team: Team, variant: str) -> Dict[str, Any]:
    divisions = ["Open"]
    if team.is_junior:
        divisions.append("Juniors")
    if team.is_women:
        divisions.append("Women")
    card = {
        "id": team.id,
        "teamNumber": team.team_number,
        "names": team.names,
        "divisions": divisions,
        "shirts": {
            k: v for k, v in (("C1", team.competitor1_shirt), ("C2", team.competitor2_shirt)) if v
        },
        "variant": variant,
    }
    if variant == INCOMPLETE:
        card["specifiedPartner"] = specified_partner(team)
    return card


class CheckInDisplay:
    def __init__(
        self,
        source: DataSource,
        sizer: Optional[ViewportSizer] = None,
        sequencer: Optional[Sequencer] = None,
    ):
        self.source = source
        self.sizer = sizer or ViewportSizer()
        self.sequencer = sequencer or Sequencer()
        self.buckets = RosterBuckets()
        self.counts = RosterCounts()
        self.last_updated: Optional[datetime] = None
        self.loaded = False
        self._started = 0
        self._applied = 0

    def bucket(self, section: Section) -> List[Team]:
        return getattr(self.buckets, SECTION_BUCKETS[section])

    def _poll(self):
        roster = self.source.poll_roster()
        try:
            counts = self.source.poll_counts()
        except Exception:
            logger.debug("Precomputed counts unavailable", exc_info=True)
            counts = None
        return roster, counts

    async def refresh(self) -> bool:
        """Poll and apply; a poll overtaken by a later-started one is discarded."""
        self._started += 1
        generation = self._started
        try:
            roster, counts = await asyncio.to_thread(self._poll)
        except Exception:
            logger.warning("Roster refresh failed; keeping last snapshot", exc_info=True)
            return False
        if generation < self._applied:
            logger.debug("Discarding stale roster poll %d (applied %d)", generation, self._applied)
            return False
        self._applied = generation
        self.apply(roster, counts)
        return True

    def apply(self, roster: List[Team], counts: Optional[RosterCounts] = None):
        """Replace the buckets wholesale and re-clamp every section's page."""
        self.buckets = classify_roster(roster)
        self.counts = counts or self.buckets.counts()
        self.last_updated = datetime.utcnow()
        self.loaded = True
        self._sync_page_counts()

    def _sync_page_counts(self):
        size = self.sizer.page_size
        self.sequencer.update_page_counts(
            {section: page_count(len(self.bucket(section)), size) for section in SECTION_ORDER}
        )

    def resize(self, width: int, height: int) -> int:
        size = self.sizer.resize(width, height)
        self._sync_page_counts()
        return size

    def switch_section(self, section):
        self.sequencer.switch_section(section)

    def advance_page(self, delta: int):
        self.sequencer.advance_page(delta)

    def jump_to_page(self, page: int):
        self.sequencer.jump_to_page(page)

    def snapshot(self) -> Dict[str, Any]:
        size = self.sizer.page_size
        sections = {}
        for section in SECTION_ORDER:
            variant = SECTION_BUCKETS[section]
            teams = self.bucket(section)
            page = paginate(teams, size, self.sequencer.state.page_index[section])
            sections[section.value] = {
                "total": len(teams),
                "pageIndex": page.index,
                "pageCount": page.page_count,
                "teams": [team_card(t, variant) for t in page.items],
            }
        return {
            "eventName": config.EVENT_NAME,
            "loaded": self.loaded,
            "lastUpdated": self.last_updated,
            "counts": asdict(self.counts),
            "pageSize": size,
            "viewport": {"width": self.sizer.width, "height": self.sizer.height},
            "sections": sections,
            "sequencer": self.sequencer.snapshot(),
        }

    @asynccontextmanager
    async def running(self):
        await self.refresh()
        async with self.sequencer.running(self.refresh):
            yield self


class LeaderboardFeed:
    def __init__(self, source: DataSource, refresh_ms: int = config.LEADERBOARD_REFRESH_MS):
        self.source = source
        self.refresh_ms = refresh_ms
        self.rows = []
        self.teams = []
        self.event_state = EventState()
        self.last_updated: Optional[datetime] = None
        self._started = 0
        self._applied = 0

    def _poll(self):
        return self.source.poll_catches(), self.source.poll_roster(), self.source.poll_event_state()

    async def refresh(self) -> bool:
        self._started += 1
        generation = self._started
        try:
            rows, teams, event_state = await asyncio.to_thread(self._poll)
        except Exception:
            logger.warning("Leaderboard refresh failed; keeping last snapshot", exc_info=True)
            return False
        if generation < self._applied:
            logger.debug("Discarding stale leaderboard poll %d (applied %d)", generation, self._applied)
            return False
        self._applied = generation
        self.rows, self.teams, self.event_state = rows, teams, event_state
        self.last_updated = datetime.utcnow()
        return True

    def standings(self, division: Division = Division.ALL) -> Dict[str, Any]:
        result = compute_standings(self.rows, self.teams, self.event_state, division)
        result["lastUpdated"] = self.last_updated
        return result

    @asynccontextmanager
    async def running(self):
        await self.refresh()
        task = asyncio.create_task(every(self.refresh_ms, self.refresh, "leaderboard refresh"))
        try:
            yield self
        finally:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
