# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Characteristic events and subscriptions.

An EventSubscription is either holding a FIFO queue of undelivered events
or a single pending waiter, never both: an arriving event goes straight to
the waiter if one is pending, otherwise it is queued.
"""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional, Protocol

from .const import AccessoryEventType, CharacteristicEventType
from .errors import (
    SubscriptionBusyError,
    SubscriptionCancelledError,
    SubscriptionInactiveError,
    SubscriptionTimeoutError,
)

if TYPE_CHECKING:
    from .time_controller import TimeSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CharacteristicEvent:
    """A change to a characteristic value."""

    characteristic_type: str
    service_type: str
    accessory_uuid: str
    new_value: Any
    old_value: Any = None
    timestamp: float = 0.0
    type: CharacteristicEventType = CharacteristicEventType.VALUE_CHANGE
    context: Optional[dict] = None

    def to_dict(self) -> dict:
        """Convert to the protocol event shape."""
        result = {
            "type": self.type.value,
            "characteristicType": self.characteristic_type,
            "serviceType": self.service_type,
            "accessoryUUID": self.accessory_uuid,
            "oldValue": self.old_value,
            "newValue": self.new_value,
            "timestamp": self.timestamp,
        }
        if self.context is not None:
            result["context"] = self.context
        return result


@dataclass(frozen=True)
class AccessoryEvent:
    """An accessory lifecycle change seen by the harness."""

    type: AccessoryEventType
    accessory_uuid: str
    display_name: str
    timestamp: float = 0.0
    data: dict = field(default_factory=dict)


class EventSource(Protocol):
    """Anything a subscription can be attached to."""

    @property
    def time_source(self) -> "TimeSource":
        ...

    def get_history(self) -> list[CharacteristicEvent]:
        ...

    def _remove_subscription(self, subscription: "EventSubscription") -> None:
        ...


class EventSubscription:
    """Subscriber to a characteristic (or the registry-wide stream).

    Created by `Characteristic.subscribe()` or
    `AccessoryRegistry.subscribe_all()`; never constructed directly by
    tests.
    """

    def __init__(self, source: EventSource, label: Optional[str] = None):
        self._source = source
        self._label = label
        self._active = True
        self._queue: deque[CharacteristicEvent] = deque()
        self._waiter: Optional[asyncio.Future] = None
        self._timer: Any = None

    @property
    def active(self) -> bool:
        return self._active

    @property
    def pending(self) -> int:
        """Number of queued, undelivered events."""
        return len(self._queue)

    def receive(self, event: CharacteristicEvent) -> None:
        """Deliver an event from the source."""
        if not self._active:
            return

        waiter = self._waiter
        if waiter is not None:
            self._waiter = None
            self._disarm()
            if not waiter.done():
                waiter.set_result(event)
                return

        self._queue.append(event)

    def wait_for_next(self, timeout_ms: Optional[float] = None) -> asyncio.Future:
        """Return a future for the next event.

        Queued events are handed out oldest first. Otherwise the future
        resolves when the next event arrives, fails with
        SubscriptionTimeoutError after `timeout_ms` of source time, or
        fails with SubscriptionCancelledError on unsubscribe.

        Raises:
            SubscriptionInactiveError: The subscription was unsubscribed.
            SubscriptionBusyError: Another wait is already pending.
        """
        if not self._active:
            raise SubscriptionInactiveError()

        future = asyncio.get_running_loop().create_future()
        if self._queue:
            future.set_result(self._queue.popleft())
            return future

        if self._waiter is not None:
            if not self._waiter.done():
                raise SubscriptionBusyError()
            self._waiter = None
            self._disarm()

        self._waiter = future
        if timeout_ms is not None and timeout_ms > 0:
            self._timer = self._source.time_source.call_later(
                timeout_ms, self._on_timeout, future, timeout_ms
            )
        future.add_done_callback(self._on_waiter_done)
        return future

    def unsubscribe(self) -> None:
        """Stop receiving events. A second call is a no-op."""
        if not self._active:
            return
        self._active = False
        self._disarm()
        waiter, self._waiter = self._waiter, None
        if waiter is not None and not waiter.done():
            waiter.set_exception(SubscriptionCancelledError())
        self._queue.clear()
        self._source._remove_subscription(self)
        logger.debug(f"Unsubscribed from {self._label or 'event stream'}")

    def get_history(self) -> list[CharacteristicEvent]:
        """Snapshot of the source's full event history."""
        return list(self._source.get_history())

    def latest(self) -> Optional[CharacteristicEvent]:
        history = self._source.get_history()
        return history[-1] if history else None

    def count(self) -> int:
        return len(self._source.get_history())

    def _on_timeout(self, future: asyncio.Future, timeout_ms: float) -> None:
        if self._waiter is not future:
            return
        self._waiter = None
        self._timer = None
        if not future.done():
            logger.debug(f"Wait on {self._label or 'event stream'} timed out after {timeout_ms}ms")
            future.set_exception(SubscriptionTimeoutError(timeout_ms, self._label))

    def _on_waiter_done(self, future: asyncio.Future) -> None:
        # Covers a waiter cancelled by its caller
        if self._waiter is future:
            self._waiter = None
            self._disarm()

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def __repr__(self) -> str:
        state = "active" if self._active else "inactive"
        return f"<EventSubscription {self._label or 'stream'} {state} queued={len(self._queue)}>"
