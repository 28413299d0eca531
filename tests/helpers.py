# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared builders for haptest tests."""
from __future__ import annotations

from typing import Any

from haptest import Accessory, Characteristic, Service

# 2023-11-14T22:13:20Z
START_TIME_MS = 1_700_000_000_000

LAMP_UUID = "LAMP-0001"


# ============================================================================
# Accessory builders
# ============================================================================

def make_characteristic(
    char_type: str = "Brightness",
    value: Any = 50,
    **props: Any,
) -> Characteristic:
    """Build a standalone characteristic. Props default to a writable int 0-100."""
    merged = {"format": "int", "perms": ["pr", "pw", "ev"], "minValue": 0, "maxValue": 100}
    merged.update(props)
    return Characteristic(char_type, char_type, value, merged)


def make_lamp(uuid: str = LAMP_UUID, name: str = "Desk Lamp") -> Accessory:
    """A lamp with Lightbulb (On, Brightness, Hue) and a read-only info service."""
    lamp = Accessory(uuid, name)
    light = lamp.add_service(Service("Lightbulb", "Light"))
    light.add_characteristic(
        Characteristic("On", "On", False, {"format": "bool", "perms": ["pr", "pw", "ev"]})
    )
    light.add_characteristic(
        Characteristic(
            "Brightness",
            "Brightness",
            50,
            {"format": "int", "perms": ["pr", "pw", "ev"], "minValue": 0, "maxValue": 100, "minStep": 1},
        )
    )
    light.add_characteristic(
        Characteristic(
            "Hue",
            "Hue",
            0.0,
            {"format": "float", "perms": ["pr", "pw", "ev"], "minValue": 0, "maxValue": 360, "minStep": 0.1},
        )
    )
    info = lamp.add_service(Service("AccessoryInformation", "Info"))
    info.add_characteristic(
        Characteristic("Manufacturer", "Manufacturer", "Acme", {"format": "string", "perms": ["pr"]})
    )
    info.add_characteristic(
        Characteristic("Identify", "Identify", None, {"format": "bool", "perms": ["pw"]})
    )
    return lamp
