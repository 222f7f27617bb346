"""Cancellable timers for quiz sessions."""
import asyncio
import heapq
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple


logger = logging.getLogger(__name__)


class TimerHandle(ABC):
    """A scheduled callback that can be cancelled before it fires."""

    @abstractmethod
    def cancel(self) -> None:
        raise NotImplementedError("Subclasses must implement this method")

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        raise NotImplementedError("Subclasses must implement this method")


class Scheduler(ABC):
    """Clock and timer source for the session driver."""

    @abstractmethod
    def now_ms(self) -> int:
        """Current time in milliseconds."""
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        """Run `callback` once after `delay_ms` milliseconds."""
        raise NotImplementedError("Subclasses must implement this method")


class _AsyncioHandle(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler(Scheduler):
    """Timers on an asyncio event loop. Nothing is awaited; callbacks are scheduled."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now_ms(self) -> int:
        return int(self.loop.time() * 1000)

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        return _AsyncioHandle(self.loop.call_later(max(0, delay_ms) / 1000, self._run, callback))

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            logger.exception(f"Timer callback failed: {e}")


class _ManualHandle(TimerHandle):
    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler(Scheduler):
    """Virtual clock. Timers fire only when `advance` moves time past them."""

    def __init__(self, start_ms: int = 0):
        self._now = start_ms
        self._counter = itertools.count()
        self._queue: List[Tuple[int, int, _ManualHandle, Callable[[], None]]] = []

    def now_ms(self) -> int:
        return self._now

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        handle = _ManualHandle()
        heapq.heappush(self._queue, (self._now + max(0, delay_ms), next(self._counter), handle, callback))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle, _ in self._queue if not handle.cancelled)

    def advance(self, ms: int) -> None:
        """Move the clock forward, firing due timers in order."""
        target = self._now + ms
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = due
            callback()
        self._now = target
