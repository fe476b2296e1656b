"""Deferred task scheduling.

Deferred company work (wealth-change coalescing, the reputation settle delay)
goes through a ``Scheduler`` so that every pending task has a handle the
company can cancel when it is destroyed.

- ThreadingScheduler: wall-clock timers, one daemon thread per task.
- ManualScheduler: nothing runs until ``advance()`` is called. Used by tests
  and by simulations that drive their own clock.
"""

from __future__ import annotations

import heapq
import itertools
import threading
from typing import Callable, Protocol, runtime_checkable


@runtime_checkable
class ScheduledTask(Protocol):
    @property
    def cancelled(self) -> bool:
        ...

    @property
    def done(self) -> bool:
        ...

    def cancel(self) -> bool:
        """Cancel if not yet run. Returns True if this call cancelled it."""
        ...


@runtime_checkable
class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        ...


class _TimerTask:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self._callback = callback
        self._lock = threading.Lock()
        self._cancelled = False
        self._done = False
        self._timer = threading.Timer(delay, self._run)
        self._timer.daemon = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._done

    def cancel(self) -> bool:
        with self._lock:
            if self._done or self._cancelled:
                return False
            self._cancelled = True
        self._timer.cancel()
        return True

    def _run(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._done = True
        self._callback()


class ThreadingScheduler:
    """Runs callbacks on background timer threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        task = _TimerTask(delay, callback)
        task._timer.start()
        return task


class _ManualTask:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self._cancelled = False
        self._done = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._done

    def cancel(self) -> bool:
        if self._done or self._cancelled:
            return False
        self._cancelled = True
        return True


class ManualScheduler:
    """Deterministic scheduler driven by ``advance``."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, _ManualTask]] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        task = _ManualTask(self.now + delay, callback)
        heapq.heappush(self._queue, (task.due, next(self._seq), task))
        return task

    @property
    def pending(self) -> int:
        return sum(1 for _, _, t in self._queue if not t.cancelled and not t.done)

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running due tasks in order. Returns count run."""
        target = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, task = heapq.heappop(self._queue)
            self.now = due
            if task.cancelled:
                continue
            task._done = True
            task.callback()
            ran += 1
        self.now = target
        return ran

    def run_all(self) -> int:
        """Run everything currently queued (and anything it schedules)."""
        ran = 0
        while self._queue:
            due = self._queue[0][0]
            ran += self.advance(max(0.0, due - self.now))
        return ran
