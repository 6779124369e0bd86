"""Interval scheduler for reconciliation ticks."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from pairledger.config import get_settings

logger = structlog.get_logger(__name__)

TickHandler = Callable[[], Awaitable[Any]]


class PollHandle:
    """Token returned by :meth:`PollScheduler.start`; stopping it ends the loop."""

    def __init__(self, task: asyncio.Task[None], scheduler: "PollScheduler"):
        self._task = task
        self._scheduler = scheduler

    @property
    def running(self) -> bool:
        return not self._task.done()

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._scheduler._release(self)

    async def __aenter__(self) -> "PollHandle":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()


class PollScheduler:
    """Runs a handler every ``interval`` seconds on the event loop.

    Ticks run one at a time. When a tick overruns, the slots it overlapped
    are skipped rather than queued.
    """

    def __init__(self, handler: TickHandler, interval: float | None = None):
        settings = get_settings()
        interval = settings.poll_interval_seconds if interval is None else interval
        if interval <= 0:
            raise ValueError("Interval must be positive")
        self._handler = handler
        self._interval = interval
        self._handle: PollHandle | None = None
        self._ticks = 0
        self._skipped = 0
        self._logger = logger.bind(component="poll_scheduler")

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._handle is not None and self._handle.running

    def start(self) -> PollHandle:
        """Start polling. Calling again while running returns the live handle."""
        if self._handle is not None and self._handle.running:
            self._logger.warning("scheduler_already_running")
            return self._handle
        task = asyncio.create_task(self._run(), name="pairledger-poll")
        self._handle = PollHandle(task, self)
        self._logger.info("scheduler_started", interval=self._interval)
        return self._handle

    def _release(self, handle: PollHandle) -> None:
        if self._handle is handle:
            self._handle = None
            self._logger.info("scheduler_stopped", ticks=self._ticks, skipped=self._skipped)

    async def _run_once(self) -> None:
        self._ticks += 1
        try:
            await self._handler()
        except Exception as e:
            self._logger.error("tick_error", error=str(e))

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_run = loop.time() + self._interval
        while True:
            await asyncio.sleep(max(0.0, next_run - loop.time()))
            await self._run_once()

            next_run += self._interval
            now = loop.time()
            if next_run <= now:
                missed = int((now - next_run) // self._interval) + 1
                next_run += missed * self._interval
                self._skipped += missed
                self._logger.warning("ticks_skipped", count=missed)

    def get_status(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "interval": self._interval,
            "ticks": self._ticks,
            "skipped": self._skipped,
        }
