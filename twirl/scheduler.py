"""Timer scheduling for retry loops and discovery polling.

All work runs as short callbacks on a single cooperative loop. The
extractor, watcher and injector only ever ask for "run this later" and
keep the returned handle so they can cancel it.
"""

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from typing import Callable, Optional

from .logging_config import get_logger

logger = get_logger("scheduler")


class TimerHandle:
    """Cancellation handle for a scheduled callback."""

    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False
        self._native: Optional[asyncio.TimerHandle] = None

    def cancel(self) -> None:
        self.cancelled = True
        if self._native is not None:
            self._native.cancel()


class Scheduler(ABC):
    """Abstract timer source."""

    @abstractmethod
    def now(self) -> float:
        """Current scheduler time in seconds."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run callback after delay seconds."""


class VirtualScheduler(Scheduler):
    """Scheduler driven by simulated time.

    Nothing runs until ``advance`` or ``run_until_idle`` is called, which
    makes retry and discovery timing deterministic in tests.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: list[tuple[float, int, TimerHandle]] = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self._now + max(delay, 0.0), callback)
        heapq.heappush(self._queue, (handle.when, next(self._counter), handle))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled)

    def advance(self, seconds: float) -> int:
        """Move time forward, running every callback that falls due.

        Callbacks scheduled by other callbacks run too if they fall inside
        the window.

        Returns:
            Number of callbacks run
        """
        deadline = self._now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= deadline:
            when, _, handle = heapq.heappop(self._queue)
            self._now = max(self._now, when)
            if handle.cancelled:
                continue
            handle.callback()
            ran += 1
        self._now = deadline
        return ran

    def run_until_idle(self, limit: int = 10000) -> int:
        """Run callbacks in time order until the queue is empty.

        Args:
            limit: Safety cap on callbacks, for schedules that never go idle

        Returns:
            Number of callbacks run
        """
        ran = 0
        while self._queue and ran < limit:
            when, _, handle = heapq.heappop(self._queue)
            self._now = max(self._now, when)
            if handle.cancelled:
                continue
            handle.callback()
            ran += 1
        if self._queue:
            logger.warning("Scheduler still busy after %d callbacks", ran)
        return ran


class AsyncioScheduler(Scheduler):
    """Scheduler backed by a running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_running_loop()

    def now(self) -> float:
        return self._loop.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self._loop.time() + delay, callback)
        handle._native = self._loop.call_later(delay, self._run, handle)
        return handle

    @staticmethod
    def _run(handle: TimerHandle) -> None:
        if not handle.cancelled:
            handle.callback()
