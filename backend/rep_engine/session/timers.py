"""
Timer sources for the session state machine.

The state machine only needs two things from a clock: the current time and
a way to run a callback later. ThreadingScheduler does this with daemon
threading.Timer objects; ManualScheduler advances time explicitly so that
stability windows, countdowns and hold ticks can be tested without sleeping.
"""

import heapq
import itertools
import logging
import threading
import time
from typing import Callable, List, Protocol, Tuple

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def now(self) -> float:
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class ThreadingScheduler:
    """Wall-clock scheduler backed by threading.Timer."""

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(max(delay, 0.0), callback)
        timer.daemon = True
        timer.start()
        return timer


class _ManualHandle:
    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """
    Deterministic scheduler: time only moves when advance() is called.

    Callbacks due at the same instant run in scheduling order. Callbacks may
    schedule further callbacks; those run within the same advance() if they
    fall due before it ends.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: List[Tuple[float, int, _ManualHandle, Callable[[], None]]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualHandle:
        handle = _ManualHandle()
        heapq.heappush(self._queue, (self._now + max(delay, 0.0), next(self._seq), handle, callback))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle, _ in self._queue if not handle.cancelled)

    def advance(self, seconds: float):
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target + 1e-9:
            due, _, handle, callback = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = max(self._now, due)
            callback()
        self._now = target
