# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Deterministic test harness for home-automation accessory plugins.

Simulates accessories, services and characteristics with protocol
validation, event subscriptions, network fault injection and virtual
time, so platform plugins can be tested without devices or real delays.

Example:
    harness = await TestHarness.create()
    lamp = Accessory("lamp-1", "Desk Lamp")
    light = lamp.add_service(Service("Lightbulb", "Light"))
    on = light.add_characteristic(
        Characteristic("On", "On", False, {"format": "bool", "perms": ["pr", "pw", "ev"]})
    )
    harness.registry.add_accessory(lamp)

    subscription = on.subscribe()
    await on.set_value(True)
    event = await subscription.wait_for_next(100)
"""

from .accessory import Accessory, Characteristic, CharacteristicProps, RuntimeContext, Service
from .const import AccessoryEventType, CharacteristicEventType, Format, Perm
from .errors import (
    CharacteristicValidationError,
    DisconnectedError,
    FormatMismatchError,
    HapTestError,
    HomeKitTimeoutError,
    InvalidConfigurationError,
    NetworkError,
    NetworkErrorType,
    NotFoundError,
    NotInEnumerationError,
    OutOfRangeError,
    PacketLossError,
    PermissionDeniedError,
    StepMisalignedError,
    SubscriptionBusyError,
    SubscriptionCancelledError,
    SubscriptionError,
    SubscriptionInactiveError,
    SubscriptionTimeoutError,
)
from .events import AccessoryEvent, CharacteristicEvent, EventSubscription
from .fixtures import accessories_from_dicts, accessory_from_dict, load_accessories
from .harness import HarnessOptions, LoggingOptions, PlatformState, TestHarness, TimeOptions
from .network import NetworkConditions, NetworkSimulator
from .platform import PlatformAPI, generate_uuid
from .registry import AccessoryRegistry
from .time_controller import SystemTimeSource, TimeController, TimeSource
from .validation import (
    check_constraints,
    check_format,
    check_permission,
    validate_characteristic_value,
)

__all__ = [
    "Accessory",
    "AccessoryEvent",
    "AccessoryEventType",
    "AccessoryRegistry",
    "Characteristic",
    "CharacteristicEvent",
    "CharacteristicEventType",
    "CharacteristicProps",
    "CharacteristicValidationError",
    "DisconnectedError",
    "EventSubscription",
    "Format",
    "FormatMismatchError",
    "HapTestError",
    "HarnessOptions",
    "HomeKitTimeoutError",
    "InvalidConfigurationError",
    "LoggingOptions",
    "NetworkConditions",
    "NetworkError",
    "NetworkErrorType",
    "NetworkSimulator",
    "NotFoundError",
    "NotInEnumerationError",
    "OutOfRangeError",
    "PacketLossError",
    "Perm",
    "PermissionDeniedError",
    "PlatformAPI",
    "PlatformState",
    "RuntimeContext",
    "Service",
    "StepMisalignedError",
    "SubscriptionBusyError",
    "SubscriptionCancelledError",
    "SubscriptionError",
    "SubscriptionInactiveError",
    "SubscriptionTimeoutError",
    "SystemTimeSource",
    "TestHarness",
    "TimeController",
    "TimeOptions",
    "TimeSource",
    "accessories_from_dicts",
    "accessory_from_dict",
    "check_constraints",
    "check_format",
    "check_permission",
    "generate_uuid",
    "load_accessories",
    "validate_characteristic_value",
]
