"""
Check-in roster classification.

Splits the polled roster into the three check-in buckets shown on the venue
display. Pure functions of the snapshot; recomputed on every poll.
"""

import re
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Optional, List, Iterable

from catfish_cull.models import Team

ARRIVED = "arrived"
WAITING = "waiting"
INCOMPLETE = "incomplete"

PARTNER_NOTE_RE = re.compile(r"Specified partner: (.+) \(not registered\)")


@dataclass
class RosterCounts:
    total: int = 0
    checked_in: int = 0
    waiting: int = 0
    incomplete: int = 0


@dataclass
class RosterBuckets:
    arrived: List[Team] = field(default_factory=list)
    waiting: List[Team] = field(default_factory=list)
    incomplete: List[Team] = field(default_factory=list)

    def counts(self) -> RosterCounts:
        return RosterCounts(
            total=len(self.arrived) + len(self.waiting) + len(self.incomplete),
            checked_in=len(self.arrived),
            waiting=len(self.waiting),
            incomplete=len(self.incomplete),
        )


def bucket_of(team: Team) -> str:
    # Registration wins: an arrived team never drops back to waiting/incomplete.
    if team.registered:
        return ARRIVED
    if not team.has_second_competitor:
        return INCOMPLETE
    return WAITING


def _last_touched(team: Team) -> Optional[datetime]:
    ts = team.updated_at or team.created_at
    if ts is not None and ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


def _recent_first(team: Team):
    ts = _last_touched(team)
    # Undated teams go last.
    return (ts is None, -(ts.timestamp() if ts else 0.0))


def _by_team_number(team: Team):
    return (team.team_number is None, team.team_number or 0)


def classify_roster(teams: Iterable[Team]) -> RosterBuckets:
    buckets = RosterBuckets()
    for team in teams:
        getattr(buckets, bucket_of(team)).append(team)
    buckets.waiting.sort(key=_by_team_number)
    buckets.arrived.sort(key=_recent_first)
    return buckets


def specified_partner(team: Team) -> Optional[str]:
    """Partner named at registration but not found when teams were imported."""
    if not team.notes:
        return None
    match = PARTNER_NOTE_RE.search(team.notes)
    return match.group(1) if match else None
