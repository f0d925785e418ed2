from __future__ import annotations

import asyncio
import heapq
import itertools
from dataclasses import dataclass, field
from typing import Callable, Protocol

# One animation frame at 60 Hz.
FRAME_S = 1.0 / 60.0


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """
    Single-threaded callback scheduling (timeouts + animation frames).
    """

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> TimerHandle: ...

    def request_frame(self, fn: Callable[[], None]) -> TimerHandle: ...


@dataclass(order=True)
class _Timer:
    due: float
    seq: int
    fn: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Deterministic scheduler driven by a virtual clock.

    Used by tests and by the HTTP endpoint, which settles a headless map session
    synchronously instead of waiting on wall-clock time.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._seq = itertools.count()
        self._queue: list[_Timer] = []

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> _Timer:
        t = _Timer(due=self.now + max(0.0, float(delay_s)), seq=next(self._seq), fn=fn)
        heapq.heappush(self._queue, t)
        return t

    def request_frame(self, fn: Callable[[], None]) -> _Timer:
        return self.call_later(FRAME_S, fn)

    @property
    def pending(self) -> int:
        return sum(1 for t in self._queue if not t.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + max(0.0, float(seconds))
        while self._queue and self._queue[0].due <= target:
            t = heapq.heappop(self._queue)
            if t.cancelled:
                continue
            self.now = max(self.now, t.due)
            t.fn()
        self.now = target

    def run_until_idle(self, *, max_steps: int = 10_000) -> int:
        """
        Run every pending callback (including ones scheduled while running).

        Returns the number of callbacks executed.
        """
        steps = 0
        while self._queue:
            t = heapq.heappop(self._queue)
            if t.cancelled:
                continue
            self.now = max(self.now, t.due)
            t.fn()
            steps += 1
            if steps > max_steps:
                raise RuntimeError("Scheduler did not settle (callback loop?)")
        return steps


class AsyncioScheduler:
    """
    Scheduler backed by a running asyncio event loop.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    def call_later(self, delay_s: float, fn: Callable[[], None]) -> asyncio.TimerHandle:
        return self._loop.call_later(max(0.0, float(delay_s)), fn)

    def request_frame(self, fn: Callable[[], None]) -> asyncio.TimerHandle:
        return self._loop.call_later(FRAME_S, fn)
