# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Accessory, service and characteristic model.

Accessories contain services, services contain characteristics. A
characteristic is the only mutable piece: its value changes through the
validated write path, which records a change event and fans it out to
subscribers and the registry stream.

Runtime context (event emitter, time source, network simulator) is bound
explicitly from the registry down the tree when an accessory is added,
and passed on to services and characteristics added later.
"""
from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, fields, replace
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Union

from .const import UNKNOWN_ACCESSORY, UNKNOWN_SERVICE, Format
from .errors import InvalidConfigurationError
from .events import CharacteristicEvent, EventSubscription
from .time_controller import SYSTEM_TIME
from .validation import check_permission, validate_characteristic_value

if TYPE_CHECKING:
    from .network import NetworkSimulator
    from .time_controller import TimeSource

logger = logging.getLogger(__name__)

# Protocol (camelCase) property names -> dataclass fields
_PROP_KEYS = {
    "minValue": "min_value",
    "maxValue": "max_value",
    "minStep": "min_step",
    "validValues": "valid_values",
    "maxLen": "max_len",
}


@dataclass
class CharacteristicProps:
    """Protocol metadata for a characteristic.

    `perms` of None means "no permission metadata", which grants every
    operation.
    """

    format: Union[Format, str]
    perms: Optional[list] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    min_step: Optional[float] = None
    valid_values: Optional[list] = None
    unit: Optional[str] = None
    max_len: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "CharacteristicProps":
        """Build props from a dict using snake_case or protocol camelCase keys."""
        names = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _PROP_KEYS.get(key, key)
            if name not in names:
                raise InvalidConfigurationError(f"Unknown characteristic property: {key}")
            kwargs[name] = value
        if "format" not in kwargs:
            raise InvalidConfigurationError("Characteristic props require a format")
        return cls(**kwargs)

    def to_dict(self) -> dict:
        """Convert to protocol form, omitting unset properties."""
        reverse = {v: k for k, v in _PROP_KEYS.items()}
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if f.name == "format" and isinstance(value, Format):
                value = value.value
            elif f.name == "perms":
                value = [p.value if hasattr(p, "value") else p for p in value]
            result[reverse.get(f.name, f.name)] = value
        return result


@dataclass(frozen=True)
class RuntimeContext:
    """Collaborators bound into an accessory tree by its registry."""

    emit: Optional[Callable[[CharacteristicEvent], None]] = None
    time: "TimeSource" = SYSTEM_TIME
    network: Optional["NetworkSimulator"] = None

    def with_network(self, simulator: Optional["NetworkSimulator"]) -> "RuntimeContext":
        return replace(self, network=simulator)


# ============================================================================
# Characteristic
# ============================================================================

class Characteristic:
    """A typed, constrained, permissioned value cell.

    Args:
        type: Characteristic type name (e.g. "On", "Brightness").
        display_name: Human-readable name.
        value: Initial value. It is not validated until it is read.
        props: CharacteristicProps or a dict accepted by
            CharacteristicProps.from_dict.
        validate_on_read: Re-validate the stored value on every read. When
            False, reads only check the read permission.
    """

    def __init__(
        self,
        type: str,
        display_name: str,
        value: Any,
        props: Union[CharacteristicProps, dict],
        validate_on_read: bool = True,
    ):
        self.type = type
        self.display_name = display_name
        self.value = value
        self.props = props if isinstance(props, CharacteristicProps) else CharacteristicProps.from_dict(props)
        self.validate_on_read = validate_on_read
        self.service: Optional[Service] = None
        self.accessory: Optional[Accessory] = None
        self._context = RuntimeContext()
        self._history: list[CharacteristicEvent] = []
        # dict keeps subscription creation order
        self._subscriptions: dict[EventSubscription, None] = {}

    @property
    def time_source(self) -> "TimeSource":
        return self._context.time

    @property
    def network_simulator(self) -> Optional["NetworkSimulator"]:
        return self._context.network

    def bind_context(
        self,
        service: Optional[Service],
        accessory: Optional[Accessory],
        context: RuntimeContext,
    ) -> None:
        self.service = service
        self.accessory = accessory
        self._context = context

    def update_network_simulator(self, simulator: Optional["NetworkSimulator"]) -> None:
        self._context = self._context.with_network(simulator)

    async def get_value(self) -> Any:
        """Read the value through the network simulator (if any).

        Raises:
            PermissionDeniedError: The characteristic is not readable.
            CharacteristicValidationError: The stored value no longer
                satisfies the props (only with validate_on_read).
            NetworkError: Simulated network failure.
        """
        return await self._apply_network(self._read, "read")

    async def set_value(self, value: Any) -> None:
        """Write a value through the network simulator (if any).

        Nothing changes unless validation passes. On success the change
        event is recorded and delivered to every active subscription, in
        creation order, and then to the registry stream.
        """
        await self._apply_network(functools.partial(self._write, value), "write")

    def subscribe(self) -> EventSubscription:
        """Subscribe to change events. Requires the notify permission."""
        check_permission("notify", self.props.perms, self.type)
        subscription = EventSubscription(self, label=self.type)
        self._subscriptions[subscription] = None
        logger.debug(f"Subscribed to {self._describe()}")
        return subscription

    def is_subscribed(self) -> bool:
        return bool(self._subscriptions)

    def get_history(self) -> list[CharacteristicEvent]:
        return list(self._history)

    def _remove_subscription(self, subscription: EventSubscription) -> None:
        self._subscriptions.pop(subscription, None)

    async def _apply_network(self, operation: Callable[[], Awaitable[Any]], name: str) -> Any:
        network = self._context.network
        if network is None:
            return await operation()
        context = {"characteristic": self.type, "operation": name}
        if self.accessory is not None:
            context["accessory"] = self.accessory.uuid
        if self.service is not None:
            context["service"] = self.service.type
        return await network.apply_conditions(operation, time_source=self._context.time, context=context)

    async def _read(self) -> Any:
        if self.validate_on_read:
            validate_characteristic_value(self.type, self.value, self.props, "read")
        else:
            check_permission("read", self.props.perms, self.type, self.value)
        logger.debug(f"Read {self._describe()} = {self.value!r}")
        return self.value

    async def _write(self, value: Any) -> None:
        validate_characteristic_value(self.type, value, self.props, "write")

        old_value = self.value
        self.value = value
        event = CharacteristicEvent(
            characteristic_type=self.type,
            service_type=self.service.type if self.service else UNKNOWN_SERVICE,
            accessory_uuid=self.accessory.uuid if self.accessory else UNKNOWN_ACCESSORY,
            new_value=value,
            old_value=old_value,
            timestamp=self._context.time.now(),
        )
        self._history.append(event)
        logger.info(f"Set {self._describe()}: {old_value!r} -> {value!r}")

        for subscription in list(self._subscriptions):
            subscription.receive(event)
        if self._context.emit is not None:
            self._context.emit(event)

    def _describe(self) -> str:
        parts = []
        if self.accessory:
            parts.append(self.accessory.display_name)
        if self.service:
            parts.append(self.service.display_name)
        parts.append(self.display_name)
        return ".".join(parts)

    def __repr__(self) -> str:
        return f"<Characteristic {self.type} value={self.value!r}>"


# ============================================================================
# Service
# ============================================================================

class Service:
    """A named group of characteristics.

    `subtype` distinguishes several instances of one service type on the
    same accessory.
    """

    def __init__(self, type: str, display_name: str, subtype: Optional[str] = None):
        self.type = type
        self.display_name = display_name
        self.subtype = subtype
        self.characteristics: list[Characteristic] = []
        self.accessory: Optional[Accessory] = None
        self._context = RuntimeContext()

    def bind_context(self, accessory: Optional[Accessory], context: RuntimeContext) -> None:
        self.accessory = accessory
        self._context = context
        for characteristic in self.characteristics:
            characteristic.bind_context(self, accessory, context)

    def add_characteristic(self, characteristic: Characteristic) -> Characteristic:
        """Add a characteristic; it inherits this service's runtime context."""
        if self.get_characteristic(characteristic.type) is not None:
            raise InvalidConfigurationError(
                f"Service {self.display_name} already has characteristic {characteristic.type}"
            )
        characteristic.bind_context(self, self.accessory, self._context)
        self.characteristics.append(characteristic)
        return characteristic

    def get_characteristic(self, name_or_type: str) -> Optional[Characteristic]:
        """Find a characteristic by display name or type."""
        for characteristic in self.characteristics:
            if characteristic.display_name == name_or_type or characteristic.type == name_or_type:
                return characteristic
        return None

    def has_characteristic(self, name_or_type: str) -> bool:
        return self.get_characteristic(name_or_type) is not None

    def update_network_simulator(self, simulator: Optional["NetworkSimulator"]) -> None:
        self._context = self._context.with_network(simulator)
        for characteristic in self.characteristics:
            characteristic.update_network_simulator(simulator)

    def __repr__(self) -> str:
        subtype = f" ({self.subtype})" if self.subtype else ""
        return f"<Service {self.type}{subtype} characteristics={len(self.characteristics)}>"


# ============================================================================
# Accessory
# ============================================================================

class Accessory:
    """A device: a UUID-identified set of services plus free-form context."""

    def __init__(self, uuid: str, display_name: str, category: Optional[int] = None):
        self.uuid = uuid
        self.display_name = display_name
        self.category = category
        self.services: list[Service] = []
        self.context: dict = {}
        self._context = RuntimeContext()

    @property
    def network_simulator(self) -> Optional["NetworkSimulator"]:
        return self._context.network

    def bind_context(self, context: RuntimeContext) -> None:
        self._context = context
        for service in self.services:
            service.bind_context(self, context)

    def add_service(self, service: Service) -> Service:
        """Add a service; it inherits this accessory's runtime context."""
        if any(s.type == service.type and s.subtype == service.subtype for s in self.services):
            subtype = f" ({service.subtype})" if service.subtype else ""
            raise InvalidConfigurationError(
                f"Accessory {self.display_name} already has service {service.type}{subtype}"
            )
        service.bind_context(self, self._context)
        self.services.append(service)
        return service

    def get_service(self, name_or_type: str, subtype: Optional[str] = None) -> Optional[Service]:
        """Find a service by display name or type, optionally by subtype."""
        for service in self.services:
            if service.display_name != name_or_type and service.type != name_or_type:
                continue
            if subtype is not None and service.subtype != subtype:
                continue
            return service
        return None

    def get_services(self) -> list[Service]:
        return list(self.services)

    def update_network_simulator(self, simulator: Optional["NetworkSimulator"]) -> None:
        self._context = self._context.with_network(simulator)
        for service in self.services:
            service.update_network_simulator(simulator)

    def __repr__(self) -> str:
        return f"<Accessory {self.uuid} {self.display_name!r} services={len(self.services)}>"
