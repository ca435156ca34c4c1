"""
Clocks and cancellable delayed callbacks for the engine.

The engine never reads the system time or arms timers directly; it asks a
clock. Three clocks share one small interface:

    LoopClock    — wall-clock seconds, timers on the running asyncio loop
    ScaledClock  — LoopClock where time and delays run ``acceleration``x faster
    VirtualClock — discrete-event time that jumps from timer to timer

Timer callbacks are plain synchronous callables; they run on the loop (or
inside ``VirtualClock.step``) and never overlap.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

Callback = Callable[[], None]

# Shortest real delay a ScaledClock will arm.
MIN_REAL_DELAY_SECS = 0.001


class TimerHandle(Protocol):
    """A pending delayed callback."""

    def cancel(self) -> None: ...

    def cancelled(self) -> bool: ...


class Clock(Protocol):
    """Time source plus delayed-callback scheduler, both in seconds."""

    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callback) -> TimerHandle: ...


class LoopClock:
    """Wall-clock time with timers on an asyncio event loop.

    The loop is resolved lazily so the clock can be built outside a coroutine
    and used inside one.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        return self._get_loop().call_later(max(0.0, delay), callback)


class ScaledClock(LoopClock):
    """A LoopClock running ``acceleration`` times faster than real time.

    ``now()`` starts at ``origin`` (default: the wall clock at construction)
    and advances ``acceleration`` simulated seconds per real second; delays
    passed to ``call_later`` are divided by the same factor.
    """

    def __init__(
        self,
        acceleration: float,
        origin: Optional[float] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if acceleration <= 0:
            raise ValueError(f"acceleration must be positive, got {acceleration}")
        super().__init__(loop)
        self.acceleration = acceleration
        self._origin = time.time() if origin is None else origin
        self._real_origin = time.monotonic()

    def now(self) -> float:
        return self._origin + (time.monotonic() - self._real_origin) * self.acceleration

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        real_delay = max(MIN_REAL_DELAY_SECS, delay / self.acceleration)
        return self._get_loop().call_later(real_delay, callback)


class VirtualTimer:
    """Timer handle for ``VirtualClock``; ordered by deadline, then arming order."""

    __slots__ = ("deadline", "seq", "callback", "_cancelled")

    def __init__(self, deadline: float, seq: int, callback: Callback) -> None:
        self.deadline = deadline
        self.seq = seq
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled

    def __lt__(self, other: "VirtualTimer") -> bool:
        return (self.deadline, self.seq) < (other.deadline, other.seq)


class VirtualClock:
    """Discrete-event clock: time only moves when the next timer fires.

    Nothing runs until the owner calls ``step``, ``advance`` or
    ``run_until_idle``; a whole piece completes as fast as its callbacks run.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[VirtualTimer] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callback) -> VirtualTimer:
        timer = VirtualTimer(self._now + max(0.0, delay), next(self._seq), callback)
        heapq.heappush(self._queue, timer)
        return timer

    @property
    def pending(self) -> int:
        """Number of armed, uncancelled timers."""
        return sum(1 for t in self._queue if not t.cancelled())

    def _next_live(self) -> Optional[VirtualTimer]:
        while self._queue and self._queue[0].cancelled():
            heapq.heappop(self._queue)
        return self._queue[0] if self._queue else None

    def step(self, until: Optional[float] = None) -> bool:
        """Fire the earliest live timer (if due by ``until``); False when none fired."""
        timer = self._next_live()
        if timer is None or (until is not None and timer.deadline > until):
            return False
        heapq.heappop(self._queue)
        self._now = max(self._now, timer.deadline)
        timer.callback()
        return True

    def advance(self, seconds: float) -> None:
        """Fire every timer due within ``seconds`` and move time forward by that much."""
        target = self._now + seconds
        while self.step(until=target):
            pass
        self._now = max(self._now, target)

    def run_until_idle(self, limit: Optional[float] = None) -> int:
        """Fire timers until none remain (or the next is past ``limit``); returns the count fired."""
        fired = 0
        while self.step(until=limit):
            fired += 1
        return fired
