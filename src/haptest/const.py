# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Constants for the accessory protocol simulator."""

from enum import Enum


class Format(str, Enum):
    """Characteristic value formats."""

    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    STRING = "string"
    DATA = "data"
    TLV8 = "tlv8"


UNSIGNED_FORMATS = (Format.UINT8, Format.UINT16, Format.UINT32, Format.UINT64)
BUFFER_FORMATS = (Format.DATA, Format.TLV8)


class Perm(str, Enum):
    """Characteristic permissions (protocol short codes)."""

    READ = "pr"
    WRITE = "pw"
    NOTIFY = "ev"


# Operation name -> permission it requires
OPERATION_PERMS = {
    "read": Perm.READ,
    "write": Perm.WRITE,
    "notify": Perm.NOTIFY,
}

# Long-form aliases accepted in props alongside the short codes
PERM_ALIASES = {
    "readable": Perm.READ,
    "read": Perm.READ,
    "writable": Perm.WRITE,
    "write": Perm.WRITE,
    "notifiable": Perm.NOTIFY,
    "notify": Perm.NOTIFY,
    "events": Perm.NOTIFY,
}


class CharacteristicEventType(str, Enum):
    """Kinds of characteristic events."""

    VALUE_CHANGE = "value-change"
    VALUE_READ = "value-read"
    VALUE_WRITE = "value-write"
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"


class AccessoryEventType(str, Enum):
    """Kinds of accessory lifecycle events."""

    REGISTERED = "registered"
    UNREGISTERED = "unregistered"
    UPDATED = "updated"
    CONFIG_CHANGED = "config-changed"


# Platform API lifecycle signals
EVENT_DID_FINISH_LAUNCHING = "didFinishLaunching"
EVENT_SHUTDOWN = "shutdown"
EVENT_REGISTER_ACCESSORIES = "registerPlatformAccessories"
EVENT_UNREGISTER_ACCESSORIES = "unregisterPlatformAccessories"
EVENT_UPDATE_ACCESSORIES = "updatePlatformAccessories"
EVENT_CONFIGURE_ACCESSORY = "configureAccessory"

PLATFORM_EVENTS = (
    EVENT_DID_FINISH_LAUNCHING,
    EVENT_SHUTDOWN,
    EVENT_REGISTER_ACCESSORIES,
    EVENT_UNREGISTER_ACCESSORIES,
    EVENT_UPDATE_ACCESSORIES,
    EVENT_CONFIGURE_ACCESSORY,
)

# Placeholders used when a characteristic is not attached to a service/accessory
UNKNOWN_SERVICE = "unknown-service"
UNKNOWN_ACCESSORY = "unknown-accessory"

DEFAULT_CONTROLLER_ID = "default-controller"
DEFAULT_WAIT_TIMEOUT_MS = 1000

# Relative tolerance for step alignment of non-integer values
STEP_TOLERANCE = 1e-9

# Logger categories -> haptest submodule logger names
LOG_CATEGORIES = {
    "accessory": "accessory",
    "events": "events",
    "network": "network",
    "registry": "registry",
    "time": "time_controller",
    "harness": "harness",
    "platform": "platform",
    "validation": "validation",
}
