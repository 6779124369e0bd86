"""Tests for the poll scheduler."""

import asyncio

import pytest

from pairledger.scheduler import PollScheduler


class TestPollScheduler:
    """Tests for PollScheduler and its handle."""

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            PollScheduler(lambda: asyncio.sleep(0), interval=0)

    def test_uses_configured_interval(self):
        scheduler = PollScheduler(lambda: asyncio.sleep(0))
        assert scheduler.interval == 15.0

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        calls = 0

        async def handler():
            nonlocal calls
            calls += 1

        scheduler = PollScheduler(handler, interval=0.01)
        handle = scheduler.start()
        assert scheduler.is_running

        await asyncio.sleep(0.08)
        await handle.stop()

        assert calls >= 2
        assert not scheduler.is_running
        assert not handle.running

        stopped_at = calls
        await asyncio.sleep(0.03)
        assert calls == stopped_at

    @pytest.mark.asyncio
    async def test_start_twice_returns_same_handle(self):
        scheduler = PollScheduler(lambda: asyncio.sleep(0), interval=1)
        first = scheduler.start()
        second = scheduler.start()

        assert first is second
        await first.stop()

    @pytest.mark.asyncio
    async def test_restart_after_stop(self):
        scheduler = PollScheduler(lambda: asyncio.sleep(0), interval=1)
        first = scheduler.start()
        await first.stop()

        second = scheduler.start()
        assert second is not first
        assert scheduler.is_running
        await second.stop()

    @pytest.mark.asyncio
    async def test_slow_ticks_never_overlap(self):
        active = 0
        max_active = 0

        async def slow():
            nonlocal active, max_active
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.03)
            active -= 1

        scheduler = PollScheduler(slow, interval=0.01)
        async with scheduler.start():
            await asyncio.sleep(0.15)

        assert max_active == 1
        status = scheduler.get_status()
        assert status["ticks"] >= 2
        assert status["skipped"] >= 1

    @pytest.mark.asyncio
    async def test_handler_errors_do_not_stop_loop(self):
        calls = 0

        async def flaky():
            nonlocal calls
            calls += 1
            raise RuntimeError("boom")

        scheduler = PollScheduler(flaky, interval=0.01)
        handle = scheduler.start()
        await asyncio.sleep(0.06)
        await handle.stop()

        assert calls >= 2
