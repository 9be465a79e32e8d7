"""
Check-in display sequencer.

Owns the kiosk's view state (active section, per-section page, dwell progress)
and the timers that advance it. Timer callbacks and request handlers all run on
the same event loop and read-modify-write one ``SequencerState`` cell, so
every tick sees the latest position, including one set manually a moment ago.
"""

import asyncio
import inspect
import logging
from enum import Enum
from dataclasses import dataclass, field
from contextlib import asynccontextmanager
from typing import Dict, Callable, Awaitable, Optional, Any

from catfish_cull import config
from catfish_cull.paging import clamp_index, step_page

logger = logging.getLogger(__name__)


class Section(str, Enum):
    ARRIVING = "arriving"
    INCOMPLETE = "incomplete"
    CHECKED_IN = "checkedIn"


SECTION_ORDER = [Section.ARRIVING, Section.INCOMPLETE, Section.CHECKED_IN]


def next_section(section: Section) -> Section:
    return SECTION_ORDER[(SECTION_ORDER.index(section) + 1) % len(SECTION_ORDER)]


async def every(interval_ms: int, callback: Callable[[], Optional[Awaitable[None]]], name: str):
    """Fire ``callback`` on a fixed period until cancelled; failures are logged, never raised."""
    while True:
        await asyncio.sleep(interval_ms / 1000)
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("%s tick failed", name)


@dataclass
class SequencerState:
    active_section: Section = Section.ARRIVING
    page_index: Dict[Section, int] = field(default_factory=lambda: {s: 0 for s in SECTION_ORDER})
    page_count: Dict[Section, int] = field(default_factory=lambda: {s: 1 for s in SECTION_ORDER})
    section_progress: float = 0.0


class Sequencer:
    def __init__(
        self,
        dwell_ms: int = config.SECTION_DWELL_MS,
        progress_ms: int = config.PROGRESS_TICK_MS,
        refresh_ms: int = config.REFRESH_INTERVAL_MS,
    ):
        self.dwell_ms = max(1, dwell_ms)
        self.progress_ms = max(1, progress_ms)
        self.refresh_ms = max(1, refresh_ms)
        self.state = SequencerState()
        self._active = False

    @property
    def progress_step(self) -> float:
        return 100.0 / (self.dwell_ms / self.progress_ms)

    @property
    def active(self) -> bool:
        return self._active

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _pages(self, section: Section) -> int:
        return max(1, self.state.page_count.get(section, 1))

    def _set_page(self, section: Section, index: int):
        self.state.page_index[section] = clamp_index(index, self._pages(section))

    def update_page_counts(self, counts: Dict[Section, int]):
        """Apply page counts from a fresh poll or resize and re-clamp every section."""
        for section in SECTION_ORDER:
            self.state.page_count[section] = max(1, int(counts.get(section, 1)))
            self._set_page(section, self.state.page_index.get(section, 0))

    def dwell_tick(self):
        state = self.state
        section = state.active_section
        current = clamp_index(state.page_index.get(section, 0), self._pages(section))
        if current + 1 < self._pages(section):
            state.page_index[section] = current + 1
        else:
            state.page_index[section] = 0
            state.active_section = next_section(section)
        state.section_progress = 0.0
        logger.debug("Dwell: %s page %d", state.active_section.value, state.page_index[state.active_section])

    def progress_tick(self):
        self.state.section_progress = min(100.0, self.state.section_progress + self.progress_step)

    def switch_section(self, section):
        section = Section(section)
        self.state.active_section = section
        self.state.page_index[section] = 0
        self.state.section_progress = 0.0

    def advance_page(self, delta: int):
        section = self.state.active_section
        self.state.page_index[section] = step_page(
            self.state.page_index.get(section, 0), delta, self._pages(section)
        )
        self.state.section_progress = 0.0

    def jump_to_page(self, page: int):
        self._set_page(self.state.active_section, page)
        self.state.section_progress = 0.0

    def snapshot(self) -> Dict[str, Any]:
        state = self.state
        active = state.active_section
        return {
            "activeSection": active.value,
            "pageIndex": state.page_index[active],
            "pageCount": self._pages(active),
            "sectionProgress": round(state.section_progress, 2),
            "pages": {
                s.value: {"pageIndex": state.page_index[s], "pageCount": self._pages(s)}
                for s in SECTION_ORDER
            },
            "dwellMs": self.dwell_ms,
        }

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def running(self, refresh: Callable[[], Awaitable[None]]):
        """Run the refresh, dwell and progress timers for the life of the block."""
        tasks = []
        self._active = True
        try:
            tasks.append(asyncio.create_task(every(self.refresh_ms, refresh, "refresh")))
            tasks.append(asyncio.create_task(every(self.dwell_ms, self.dwell_tick, "dwell")))
            tasks.append(asyncio.create_task(every(self.progress_ms, self.progress_tick, "progress")))
            logger.info("Check-in sequencer started (dwell %dms)", self.dwell_ms)
            yield self
        finally:
            self._active = False
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Check-in sequencer stopped")
