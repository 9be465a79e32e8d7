"""
Tests for the check-in display sequencer: dwell rotation, manual navigation
and timer lifecycle.
"""
import asyncio

import pytest

from catfish_cull.sequencer import SECTION_ORDER, Section, Sequencer, every, next_section

ARRIVING, INCOMPLETE, CHECKED_IN = Section.ARRIVING, Section.INCOMPLETE, Section.CHECKED_IN


def make_sequencer(arriving=1, incomplete=1, checked_in=1, **kwargs):
    seq = Sequencer(**kwargs)
    seq.update_page_counts({ARRIVING: arriving, INCOMPLETE: incomplete, CHECKED_IN: checked_in})
    return seq


def position(seq):
    return seq.state.active_section, seq.state.page_index[seq.state.active_section]


# ============================================================================
# Dwell rotation
# ============================================================================

class TestDwell:
    def test_section_order_wraps(self):
        assert [next_section(s) for s in SECTION_ORDER] == [INCOMPLETE, CHECKED_IN, ARRIVING]

    def test_dwell_advances_page_within_section(self):
        seq = make_sequencer(arriving=3)
        seq.dwell_tick()
        assert position(seq) == (ARRIVING, 1)

    def test_dwell_moves_to_next_section_after_last_page(self):
        seq = make_sequencer(arriving=2)
        seq.dwell_tick()
        seq.dwell_tick()
        assert position(seq) == (INCOMPLETE, 0)
        assert seq.state.page_index[ARRIVING] == 0

    def test_full_cycle_returns_to_start(self):
        seq = make_sequencer(arriving=3, incomplete=1, checked_in=2)
        visited = [position(seq)]
        for _ in range(3 + 1 + 2):
            seq.dwell_tick()
            visited.append(position(seq))

        assert visited[0] == visited[-1] == (ARRIVING, 0)
        assert visited[:-1] == [
            (ARRIVING, 0), (ARRIVING, 1), (ARRIVING, 2),
            (INCOMPLETE, 0),
            (CHECKED_IN, 0), (CHECKED_IN, 1),
        ]

    def test_empty_sections_still_rotate(self):
        seq = make_sequencer(arriving=1, incomplete=1, checked_in=1)
        seq.dwell_tick()
        seq.dwell_tick()
        seq.dwell_tick()
        assert position(seq) == (ARRIVING, 0)

    def test_dwell_resets_progress(self):
        seq = make_sequencer(dwell_ms=1000, progress_ms=100)
        for _ in range(4):
            seq.progress_tick()
        seq.dwell_tick()
        assert seq.state.section_progress == 0

    def test_dwell_continues_from_manual_position(self):
        seq = make_sequencer(arriving=4)
        seq.jump_to_page(2)
        seq.dwell_tick()
        assert position(seq) == (ARRIVING, 3)


class TestProgress:
    def test_progress_fills_over_dwell(self):
        seq = make_sequencer(dwell_ms=1000, progress_ms=100)
        for _ in range(5):
            seq.progress_tick()
        assert seq.state.section_progress == pytest.approx(50.0)

    def test_progress_capped_at_100(self):
        seq = make_sequencer(dwell_ms=1000, progress_ms=100)
        for _ in range(25):
            seq.progress_tick()
        assert seq.state.section_progress == 100.0


# ============================================================================
# Manual navigation
# ============================================================================

class TestNavigation:
    def test_switch_section_starts_at_first_page(self):
        seq = make_sequencer(checked_in=3)
        seq.state.page_index[CHECKED_IN] = 2
        seq.progress_tick()

        seq.switch_section("checkedIn")

        assert position(seq) == (CHECKED_IN, 0)
        assert seq.state.section_progress == 0

    def test_switch_to_unknown_section_rejected(self):
        seq = make_sequencer()
        with pytest.raises(ValueError):
            seq.switch_section("parking")
        assert seq.state.active_section == ARRIVING

    def test_advance_page_wraps_both_ways(self):
        seq = make_sequencer(arriving=3)
        seq.advance_page(-1)
        assert position(seq) == (ARRIVING, 2)
        seq.advance_page(1)
        assert position(seq) == (ARRIVING, 0)

    def test_advance_page_resets_progress(self):
        seq = make_sequencer(arriving=2)
        seq.progress_tick()
        seq.advance_page(1)
        assert seq.state.section_progress == 0

    def test_jump_clamps_to_last_page(self):
        seq = make_sequencer(arriving=3)
        seq.jump_to_page(10)
        assert position(seq) == (ARRIVING, 2)


class TestPageCounts:
    def test_shrink_clamps_every_section(self):
        seq = make_sequencer(arriving=5, incomplete=4, checked_in=3)
        seq.state.page_index.update({ARRIVING: 4, INCOMPLETE: 3, CHECKED_IN: 1})

        seq.update_page_counts({ARRIVING: 2, INCOMPLETE: 1, CHECKED_IN: 3})

        assert seq.state.page_index == {ARRIVING: 1, INCOMPLETE: 0, CHECKED_IN: 1}

    def test_missing_or_zero_counts_mean_one_page(self):
        seq = make_sequencer()
        seq.update_page_counts({ARRIVING: 0})
        assert seq.state.page_count == {ARRIVING: 1, INCOMPLETE: 1, CHECKED_IN: 1}

    def test_snapshot(self):
        seq = make_sequencer(arriving=2, dwell_ms=8000)
        snap = seq.snapshot()
        assert snap["activeSection"] == "arriving"
        assert snap["pageCount"] == 2
        assert snap["pages"]["checkedIn"] == {"pageIndex": 0, "pageCount": 1}
        assert snap["dwellMs"] == 8000


# ============================================================================
# Timers
# ============================================================================

class TestTimers:
    @pytest.mark.asyncio
    async def test_timers_drive_state_while_running(self):
        seq = make_sequencer(arriving=50, dwell_ms=20, progress_ms=5, refresh_ms=10)
        refreshes = []

        async def refresh():
            refreshes.append(1)

        async with seq.running(refresh):
            assert seq.active
            await asyncio.sleep(0.2)

        assert refreshes
        assert seq.state.page_index[ARRIVING] > 0
        assert not seq.active

    @pytest.mark.asyncio
    async def test_no_ticks_after_teardown(self):
        seq = make_sequencer(arriving=100, dwell_ms=10, progress_ms=10, refresh_ms=10)
        calls = []

        async with seq.running(lambda: calls.append(1)):
            await asyncio.sleep(0.05)

        stopped_at = (len(calls), seq.state.page_index[ARRIVING])
        await asyncio.sleep(0.1)
        assert (len(calls), seq.state.page_index[ARRIVING]) == stopped_at

    @pytest.mark.asyncio
    async def test_teardown_runs_when_block_raises(self):
        seq = make_sequencer(refresh_ms=10)
        with pytest.raises(RuntimeError):
            async with seq.running(lambda: None):
                raise RuntimeError("display closed")
        assert not seq.active

    @pytest.mark.asyncio
    async def test_failing_callback_keeps_timer_alive(self):
        calls = []

        def flaky():
            calls.append(1)
            raise ConnectionError("backend down")

        task = asyncio.create_task(every(5, flaky, "flaky"))
        await asyncio.sleep(0.1)
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

        assert len(calls) > 1
