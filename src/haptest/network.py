# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Network fault injection.

A NetworkSimulator wraps any zero-argument coroutine function and applies
the current link conditions in a fixed order:

1. disconnected -> DisconnectedError (nothing else is applied)
2. latency -> sleep on the time source
3. packet loss -> PacketLossError with probability `packet_loss_rate`
4. run the operation; its result or error is returned unchanged

One simulator models one shared link, so every characteristic it is
attached to sees the same conditions.
"""
from __future__ import annotations

import functools
import logging
import math
import random
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, TypeVar

from .errors import DisconnectedError, InvalidConfigurationError, PacketLossError
from .time_controller import SYSTEM_TIME

if TYPE_CHECKING:
    from .time_controller import TimeSource

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class NetworkConditions:
    """Snapshot of link conditions."""

    latency_ms: float = 0
    packet_loss_rate: float = 0.0
    disconnected: bool = False


def _is_real_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value)


class NetworkSimulator:
    """Stateful latency/loss/disconnect wrapper.

    Args:
        time_source: Clock used for latency when the caller does not pass
            one. Defaults to the wall clock.
        rng: Random generator for packet loss draws.
        seed: Seed for a private generator (ignored when `rng` is given).
    """

    def __init__(
        self,
        time_source: Optional["TimeSource"] = None,
        rng: Optional[random.Random] = None,
        seed: Optional[int] = None,
    ):
        self._conditions = NetworkConditions()
        self.time_source = time_source
        self.rng = rng if rng is not None else random.Random(seed)

    @property
    def conditions(self) -> NetworkConditions:
        return self._conditions

    def get_conditions(self) -> NetworkConditions:
        """Read-only snapshot of the current conditions."""
        return self._conditions

    def set_latency(self, ms: float) -> None:
        if not _is_real_number(ms) or ms < 0:
            raise InvalidConfigurationError(f"Latency cannot be negative: {ms}")
        self._conditions = replace(self._conditions, latency_ms=ms)
        logger.info(f"Network latency set to {ms}ms")

    def set_packet_loss(self, rate: float) -> None:
        if not _is_real_number(rate) or rate < 0 or rate > 1:
            raise InvalidConfigurationError(f"Packet loss rate must be between 0 and 1: {rate}")
        self._conditions = replace(self._conditions, packet_loss_rate=float(rate))
        logger.info(f"Network packet loss set to {rate:.0%}")

    def disconnect(self) -> None:
        self._conditions = replace(self._conditions, disconnected=True)
        logger.info("Network disconnected")

    def reconnect(self) -> None:
        self._conditions = replace(self._conditions, disconnected=False)
        logger.info("Network reconnected")

    def reset(self) -> None:
        """Restore default conditions (no latency, no loss, connected)."""
        self._conditions = NetworkConditions()
        logger.info("Network conditions reset")

    async def apply_conditions(
        self,
        operation: Callable[[], Awaitable[T]],
        time_source: Optional["TimeSource"] = None,
        context: Any = None,
    ) -> T:
        """Run `operation` under the current conditions.

        Conditions are sampled once, when the call starts. `context` (for
        example the characteristic and operation) is attached to any
        network error raised.

        Raises:
            DisconnectedError: The link is down.
            PacketLossError: The request was dropped after its latency.
        """
        conditions = self._conditions
        if conditions.disconnected:
            logger.debug("Operation failed: network disconnected")
            raise DisconnectedError(context=context)

        if conditions.latency_ms > 0:
            clock = time_source or self.time_source or SYSTEM_TIME
            await clock.sleep(conditions.latency_ms)

        if conditions.packet_loss_rate > 0 and self.rng.random() < conditions.packet_loss_rate:
            logger.debug("Operation failed: packet lost")
            raise PacketLossError(context=context)

        return await operation()

    def wrap(self, operation: Callable[[], Awaitable[T]]) -> Callable[[], Awaitable[T]]:
        """Return a coroutine function that runs `operation` under these conditions."""

        @functools.wraps(operation)
        async def wrapped() -> T:
            return await self.apply_conditions(operation)

        return wrapped
