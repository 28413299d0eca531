# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Virtual time for deterministic tests.

Every consumer that needs "now", a timer, or a delay is handed a time
source explicitly. `SystemTimeSource` is the wall-clock default used by
objects that have not been registered anywhere; `TimeController` is the
virtual clock each TestHarness owns.

In fake-timer mode the controller keeps its own heap of timers. They only
fire from `advance()`, which moves the clock forward timer by timer and
lets the event loop run the continuations each timer wakes up before
moving on.

Example:
    time = TimeController()
    task = asyncio.create_task(time.sleep(250))
    await time.advance(100)   # task still sleeping
    await time.advance(150)   # task finished
"""
from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time as _time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Protocol, Union, runtime_checkable

from .errors import InvalidConfigurationError

logger = logging.getLogger(__name__)

TimeValue = Union[datetime, int, float]


def _wall_clock_ms() -> float:
    return _time.time() * 1000


def _to_ms(value: TimeValue) -> float:
    if isinstance(value, datetime):
        return value.timestamp() * 1000
    return float(value)


@runtime_checkable
class TimeSource(Protocol):
    """Clock and timer facility injected into every time-dependent object.

    All values are milliseconds. `call_later` returns a handle whose
    `cancel()` disarms the timer.
    """

    def now(self) -> float:
        ...

    def call_later(self, delay_ms: float, callback: Callable[..., Any], *args: Any) -> Any:
        ...

    async def sleep(self, ms: float) -> None:
        ...


class SystemTimeSource:
    """Wall-clock time source backed by the running event loop."""

    def now(self) -> float:
        return _wall_clock_ms()

    def call_later(self, delay_ms: float, callback: Callable[..., Any], *args: Any) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(max(delay_ms, 0) / 1000, callback, *args)

    async def sleep(self, ms: float) -> None:
        await asyncio.sleep(max(ms, 0) / 1000)


SYSTEM_TIME = SystemTimeSource()


@dataclass(order=True)
class VirtualTimer:
    """A timer scheduled on the virtual clock."""

    when: float
    seq: int
    callback: Callable[..., Any] = field(compare=False)
    args: tuple = field(default=(), compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class TimeController:
    """Virtual clock facade.

    Args:
        initial_time: Starting virtual time (datetime or ms since epoch).
            Defaults to the current wall-clock time.
        use_fake_timers: Start in deterministic mode (timers fire only on
            advance). When False the controller behaves like the system
            clock until `freeze()` or `set_time()` is called.
        settle_passes: Event loop passes given to woken continuations
            after each fired timer.
    """

    def __init__(
        self,
        initial_time: Optional[TimeValue] = None,
        use_fake_timers: bool = True,
        settle_passes: int = 20,
    ):
        if settle_passes < 1:
            raise InvalidConfigurationError("settle_passes must be at least 1")
        self._initial_time = _to_ms(initial_time) if initial_time is not None else _wall_clock_ms()
        self._now_ms = self._initial_time
        self._fake = use_fake_timers
        self._frozen = False
        self._offset_ms = 0.0
        self._settle_passes = settle_passes
        self._timers: list[VirtualTimer] = []
        self._seq = itertools.count()
        self._sleepers: set[asyncio.Future] = set()

    @property
    def initial_time(self) -> float:
        return self._initial_time

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    @property
    def uses_fake_timers(self) -> bool:
        return self._fake

    def now(self) -> float:
        """Current time in milliseconds since epoch."""
        if self._fake:
            return self._now_ms
        return _wall_clock_ms() + self._offset_ms

    def pending_timers(self) -> int:
        """Number of virtual timers that have not fired or been cancelled."""
        return sum(1 for t in self._timers if not t.cancelled)

    # =========================================================================
    # Scheduling
    # =========================================================================

    def call_later(self, delay_ms: float, callback: Callable[..., Any], *args: Any) -> Any:
        """Schedule `callback(*args)` after `delay_ms` of (virtual) time."""
        if not self._fake:
            return SYSTEM_TIME.call_later(delay_ms, callback, *args)
        timer = VirtualTimer(self._now_ms + max(delay_ms, 0), next(self._seq), callback, args)
        heapq.heappush(self._timers, timer)
        return timer

    async def sleep(self, ms: float) -> None:
        """Suspend for `ms` of (virtual) time."""
        if not self._fake:
            await SYSTEM_TIME.sleep(ms)
            return
        if ms <= 0:
            await asyncio.sleep(0)
            return

        future = asyncio.get_running_loop().create_future()
        self._sleepers.add(future)
        timer = self.call_later(ms, _wake, future)
        try:
            await future
        finally:
            timer.cancel()
            self._sleepers.discard(future)

    # =========================================================================
    # Control
    # =========================================================================

    async def advance(self, ms: float) -> None:
        """Move time forward by `ms`, firing due timers in timestamp order.

        Continuations woken by each timer run before the next timer fires
        and before this method returns.
        """
        if ms < 0:
            raise InvalidConfigurationError("Cannot advance time backwards")
        if ms == 0:
            return

        if not self._fake:
            self._offset_ms += ms
            await self._settle()
            return

        target = self._now_ms + ms
        await self._settle()
        while self._timers and self._timers[0].when <= target:
            timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self._now_ms = max(self._now_ms, timer.when)
            logger.debug(f"Firing timer scheduled for {timer.when:.0f}")
            try:
                timer.callback(*timer.args)
            except Exception:
                logger.exception(f"Error in timer callback {timer.callback!r}")
            await self._settle()
        self._now_ms = target

    def freeze(self) -> None:
        """Stop time from moving on its own; timers fire only on advance."""
        if not self._fake:
            self._now_ms = self.now()
            self._fake = True
        self._frozen = True
        logger.debug(f"Time frozen at {self._now_ms:.0f}")

    def set_time(self, value: TimeValue) -> None:
        """Jump to an absolute time without firing the timers in between.

        Pending timers keep their remaining delay.
        """
        target = _to_ms(value)
        if not self._fake:
            self._now_ms = self.now()
            self._fake = True
        delta = target - self._now_ms
        for timer in self._timers:
            timer.when += delta
        self._now_ms = target
        logger.debug(f"Time set to {target:.0f}")

    def reset(self) -> None:
        """Discard all pending timers and return to real time."""
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()
        for future in list(self._sleepers):
            if not future.done():
                future.cancel()
        self._sleepers.clear()
        self._fake = False
        self._frozen = False
        self._offset_ms = 0.0
        logger.debug("Time controller reset to real time")

    async def _settle(self) -> None:
        for _ in range(self._settle_passes):
            await asyncio.sleep(0)


def _wake(future: asyncio.Future) -> None:
    if not future.done():
        future.set_result(None)
