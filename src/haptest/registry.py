# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Simulated controller holding every registered accessory.

The registry is what a real controller would be for the plugin under test:
it looks up accessories/services/characteristics by path, fans every
characteristic change out on a global stream, and owns the network
simulator applied to all of its characteristics.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Optional

from .accessory import Accessory, Characteristic, RuntimeContext, Service
from .const import DEFAULT_CONTROLLER_ID
from .errors import HapTestError
from .events import CharacteristicEvent, EventSubscription
from .time_controller import SYSTEM_TIME
from .validation import has_permission

if TYPE_CHECKING:
    from .network import NetworkSimulator
    from .time_controller import TimeSource

logger = logging.getLogger(__name__)

EventHandler = Callable[[CharacteristicEvent], Any]


class AccessoryRegistry:
    """Registry of accessories plus the global characteristic event stream.

    Example:
        registry = AccessoryRegistry(time_source=time)
        registry.add_accessory(accessory)
        unsubscribe = registry.on_characteristic_event(print)
        await registry.characteristic(uuid, "Lightbulb", "On").set_value(True)
    """

    def __init__(
        self,
        time_source: Optional["TimeSource"] = None,
        controller_id: str = DEFAULT_CONTROLLER_ID,
    ):
        self._time = time_source or SYSTEM_TIME
        self._controller_id = controller_id
        self._accessories: dict[str, Accessory] = {}
        self._network: Optional["NetworkSimulator"] = None
        self._listeners: list[EventHandler] = []
        self._subscriptions: dict[EventSubscription, None] = {}
        self._history: list[CharacteristicEvent] = []
        self._paired = True

    @property
    def time_source(self) -> "TimeSource":
        return self._time

    @property
    def controller_id(self) -> str:
        return self._controller_id

    # =========================================================================
    # Accessories
    # =========================================================================

    def add_accessory(self, accessory: Accessory) -> None:
        """Register an accessory. Re-adding a known UUID is a no-op."""
        if accessory.uuid in self._accessories:
            logger.debug(f"Accessory already registered: {accessory.uuid} ({accessory.display_name})")
            return

        accessory.bind_context(self._runtime_context())
        self._accessories[accessory.uuid] = accessory
        logger.info(
            f"Added accessory {accessory.uuid} ({accessory.display_name}) "
            f"with services: {', '.join(s.type for s in accessory.services) or 'none'}"
        )

    def remove_accessory(self, uuid: str) -> Optional[Accessory]:
        """Remove an accessory and detach it from this registry."""
        accessory = self._accessories.pop(uuid, None)
        if accessory is None:
            logger.debug(f"Accessory not registered: {uuid}")
            return None
        accessory.bind_context(RuntimeContext())
        logger.info(f"Removed accessory {uuid} ({accessory.display_name})")
        return accessory

    def accessories(self) -> list[Accessory]:
        return list(self._accessories.values())

    def accessory(self, uuid: str) -> Optional[Accessory]:
        return self._accessories.get(uuid)

    def service(
        self,
        accessory_uuid: str,
        service_name_or_type: str,
        subtype: Optional[str] = None,
    ) -> Optional[Service]:
        accessory = self._accessories.get(accessory_uuid)
        if accessory is None:
            return None
        return accessory.get_service(service_name_or_type, subtype)

    def characteristic(
        self,
        accessory_uuid: str,
        service_name_or_type: str,
        characteristic_name_or_type: str,
        subtype: Optional[str] = None,
    ) -> Optional[Characteristic]:
        service = self.service(accessory_uuid, service_name_or_type, subtype)
        if service is None:
            return None
        return service.get_characteristic(characteristic_name_or_type)

    # =========================================================================
    # Network simulation
    # =========================================================================

    @property
    def network_simulator(self) -> Optional["NetworkSimulator"]:
        return self._network

    def set_network_simulator(self, simulator: Optional["NetworkSimulator"]) -> None:
        """Attach (or detach, with None) a simulator to every characteristic."""
        self._network = simulator
        for accessory in self._accessories.values():
            accessory.update_network_simulator(simulator)
        logger.info(f"Network simulator {'attached' if simulator else 'detached'}")

    # =========================================================================
    # Global event stream
    # =========================================================================

    def on_characteristic_event(self, handler: EventHandler) -> Callable[[], None]:
        """Call `handler` for every characteristic change.

        Returns:
            A function that removes the handler. Calling it twice is safe.
        """
        self._listeners.append(handler)

        def unsubscribe() -> None:
            if handler in self._listeners:
                self._listeners.remove(handler)

        return unsubscribe

    def subscribe_all(self) -> EventSubscription:
        """Subscribe to every characteristic change in the registry."""
        subscription = EventSubscription(self, label="all characteristics")
        self._subscriptions[subscription] = None
        return subscription

    def get_history(self) -> list[CharacteristicEvent]:
        """Every change event the registry has seen, oldest first."""
        return list(self._history)

    def _remove_subscription(self, subscription: EventSubscription) -> None:
        self._subscriptions.pop(subscription, None)

    def _emit(self, event: CharacteristicEvent) -> None:
        self._history.append(event)
        for subscription in list(self._subscriptions):
            subscription.receive(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Error in characteristic event listener {listener!r}")

    def _runtime_context(self) -> RuntimeContext:
        return RuntimeContext(emit=self._emit, time=self._time, network=self._network)

    # =========================================================================
    # Pairing / batch operations
    # =========================================================================

    def is_paired(self) -> bool:
        return self._paired

    def pair(self) -> None:
        self._paired = True
        logger.info(f"Controller {self._controller_id} paired")

    def unpair(self) -> None:
        self._paired = False
        logger.info(f"Controller {self._controller_id} unpaired")

    async def refresh_all(self) -> dict[str, Any]:
        """Best-effort read of every readable characteristic.

        Returns:
            Values keyed by "<uuid>.<service name>.<characteristic name>".
            Characteristics that fail to read are left out.
        """
        results: dict[str, Any] = {}
        for accessory in list(self._accessories.values()):
            for service in accessory.services:
                for characteristic in service.characteristics:
                    if not has_permission("read", characteristic.props.perms):
                        continue
                    key = f"{accessory.uuid}.{service.display_name}.{characteristic.display_name}"
                    try:
                        results[key] = await characteristic.get_value()
                    except HapTestError as e:
                        logger.debug(f"Skipping {key} during refresh: {e.__class__.__name__}")
        return results
