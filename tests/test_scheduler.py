"""Tests for timer scheduling."""

import asyncio

from twirl.scheduler import AsyncioScheduler, VirtualScheduler


class TestVirtualScheduler:
    """Tests for simulated time."""

    def test_runs_in_time_order(self):
        """Test callbacks run by due time, then insertion order."""
        scheduler = VirtualScheduler()
        fired = []
        scheduler.call_later(2.0, lambda: fired.append("b"))
        scheduler.call_later(1.0, lambda: fired.append("a"))
        scheduler.call_later(2.0, lambda: fired.append("c"))

        assert scheduler.advance(5.0) == 3
        assert fired == ["a", "b", "c"]
        assert scheduler.now() == 5.0

    def test_advance_stops_at_deadline(self):
        """Test callbacks past the window stay queued."""
        scheduler = VirtualScheduler()
        fired = []
        scheduler.call_later(1.0, lambda: fired.append(1))
        scheduler.call_later(3.0, lambda: fired.append(3))

        scheduler.advance(2.0)

        assert fired == [1]
        assert scheduler.pending == 1

    def test_nested_scheduling_within_window(self):
        """Test callbacks scheduled by callbacks run if due."""
        scheduler = VirtualScheduler()
        fired = []

        def first():
            fired.append(scheduler.now())
            scheduler.call_later(1.0, lambda: fired.append(scheduler.now()))

        scheduler.call_later(1.0, first)
        scheduler.advance(2.0)

        assert fired == [1.0, 2.0]

    def test_cancel(self):
        """Test cancelled callbacks never run."""
        scheduler = VirtualScheduler()
        fired = []
        handle = scheduler.call_later(1.0, lambda: fired.append(1))
        handle.cancel()

        assert scheduler.run_until_idle() == 0
        assert fired == []

    def test_run_until_idle_limit(self):
        """Test a schedule that never goes idle is capped."""
        scheduler = VirtualScheduler()

        def again():
            scheduler.call_later(1.0, again)

        scheduler.call_later(1.0, again)
        assert scheduler.run_until_idle(limit=5) == 5


class TestAsyncioScheduler:
    """Tests for the event loop backed scheduler."""

    def test_runs_and_cancels(self):
        """Test callbacks fire on the loop and cancellation holds."""
        async def scenario():
            scheduler = AsyncioScheduler()
            fired = []
            scheduler.call_later(0.01, lambda: fired.append("a"))
            handle = scheduler.call_later(0.01, lambda: fired.append("b"))
            handle.cancel()
            await asyncio.sleep(0.05)
            return fired

        assert asyncio.run(scenario()) == ["a"]
