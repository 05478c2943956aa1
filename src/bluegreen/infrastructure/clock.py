"""Time sources for the cutover controller.

Every wait in the controller goes through a ``Clock`` so that bake and
interval periods are *cancellable timed waits* on an ``asyncio.Event`` rather
than blocking sleeps.

* ``SystemClock`` -- wall-clock time, ``asyncio.wait_for`` based waits.
* ``ManualClock`` -- virtual time for simulations and tests.  Waiting never
  blocks on real time: once the other tasks have settled, the clock jumps to
  the earliest pending deadline or scheduled callback.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from abc import ABC, abstractmethod
from collections.abc import Callable


class Clock(ABC):
    """Abstract time source."""

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds."""

    @abstractmethod
    async def wait(self, event: asyncio.Event, timeout: float) -> bool:
        """Wait until *event* is set or *timeout* seconds elapse.

        Returns ``True`` if the event was set.
        """

    @abstractmethod
    def call_at(self, when: float, callback: Callable[[], None]) -> None:
        """Run *callback* once the clock reaches *when*."""

    async def sleep(self, delay: float) -> None:
        await self.wait(asyncio.Event(), delay)

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        self.call_at(self.now() + delay, callback)


# ===================================================================== #
#  Wall clock                                                            #
# ===================================================================== #

class SystemClock(Clock):
    """Real time, backed by the running event loop."""

    def now(self) -> float:
        return time.time()

    async def wait(self, event: asyncio.Event, timeout: float) -> bool:
        if event.is_set():
            return True
        try:
            await asyncio.wait_for(event.wait(), timeout=max(0.0, timeout))
        except asyncio.TimeoutError:
            return event.is_set()
        return True

    def call_at(self, when: float, callback: Callable[[], None]) -> None:
        loop = asyncio.get_running_loop()
        loop.call_later(max(0.0, when - self.now()), callback)


# ===================================================================== #
#  Virtual clock                                                         #
# ===================================================================== #

class ManualClock(Clock):
    """Deterministic virtual clock.

    Time only moves while some task is waiting on the clock.  A waiter first
    yields to the event loop a few times so that runnable tasks can make
    progress, then advances time to the earliest of: its own deadline, another
    waiter's deadline, or the next scheduled callback.

    Parameters
    ----------
    start:
        Initial virtual time in seconds.
    settle_rounds:
        Number of event-loop yields before each time advance.
    """

    def __init__(self, start: float = 0.0, settle_rounds: int = 3) -> None:
        self._now = float(start)
        self._settle_rounds = max(1, settle_rounds)
        self._timers: list[tuple[float, int, Callable[[], None]]] = []
        self._sleepers: dict[int, float] = {}
        self._counter = itertools.count()

    def now(self) -> float:
        return self._now

    def call_at(self, when: float, callback: Callable[[], None]) -> None:
        heapq.heappush(self._timers, (float(when), next(self._counter), callback))

    async def wait(self, event: asyncio.Event, timeout: float) -> bool:
        deadline = self._now + max(0.0, timeout)
        token = next(self._counter)
        self._sleepers[token] = deadline
        try:
            while True:
                for _ in range(self._settle_rounds):
                    await asyncio.sleep(0)
                if event.is_set():
                    return True
                if self._now >= deadline:
                    return False
                self._step(deadline)
        finally:
            self._sleepers.pop(token, None)

    def advance(self, seconds: float) -> None:
        """Move time forward by *seconds*, firing due callbacks in order."""
        target = self._now + seconds
        while self._timers and self._timers[0][0] <= target:
            when, _, callback = heapq.heappop(self._timers)
            self._now = max(self._now, when)
            callback()
        self._now = max(self._now, target)

    @property
    def pending_callbacks(self) -> int:
        return len(self._timers)

    def _step(self, limit: float) -> None:
        target = min([limit, *self._sleepers.values()])
        if self._timers and self._timers[0][0] <= target:
            when, _, callback = heapq.heappop(self._timers)
            self._now = max(self._now, when)
            callback()
            return
        self._now = max(self._now, target)
