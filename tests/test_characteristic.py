# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for the Accessory/Service/Characteristic model."""
from __future__ import annotations

import pytest

from haptest import (
    Accessory,
    Characteristic,
    CharacteristicProps,
    FormatMismatchError,
    InvalidConfigurationError,
    OutOfRangeError,
    PermissionDeniedError,
    Service,
    StepMisalignedError,
)
from haptest.const import UNKNOWN_ACCESSORY, UNKNOWN_SERVICE, Format

from .helpers import LAMP_UUID, START_TIME_MS, make_characteristic


# ============================================================================
# Props
# ============================================================================

class TestCharacteristicProps:
    """Tests for CharacteristicProps conversion."""

    def test_from_camel_case(self):
        """Protocol camelCase keys map onto the dataclass fields."""
        p = CharacteristicProps.from_dict(
            {"format": "uint8", "perms": ["pr"], "minValue": 0, "maxValue": 3, "validValues": [0, 3]}
        )
        assert p.format == "uint8"
        assert p.min_value == 0
        assert p.max_value == 3
        assert p.valid_values == [0, 3]

    def test_from_snake_case(self):
        """snake_case keys are accepted too."""
        p = CharacteristicProps.from_dict({"format": "float", "min_step": 0.5})
        assert p.min_step == 0.5
        assert p.perms is None

    def test_unknown_key_rejected(self):
        """Typos in prop names are caught."""
        with pytest.raises(InvalidConfigurationError):
            CharacteristicProps.from_dict({"format": "int", "maxValeu": 5})

    def test_format_required(self):
        """Props without a format are rejected."""
        with pytest.raises(InvalidConfigurationError):
            CharacteristicProps.from_dict({"perms": ["pr"]})

    def test_to_dict_omits_unset(self):
        """to_dict emits protocol keys and skips None."""
        p = CharacteristicProps(format=Format.INT, perms=["pr"], max_value=10)
        assert p.to_dict() == {"format": "int", "perms": ["pr"], "maxValue": 10}


# ============================================================================
# Reads and writes
# ============================================================================

class TestCharacteristicIO:
    """Tests for get_value/set_value."""

    @pytest.mark.asyncio
    async def test_write_then_read(self):
        """A valid write is visible to the next read."""
        char = make_characteristic(value=10)
        await char.set_value(75)
        assert char.value == 75
        assert await char.get_value() == 75

    @pytest.mark.asyncio
    async def test_invalid_write_leaves_value(self):
        """A rejected write changes nothing and records no event."""
        char = make_characteristic(value=10)
        with pytest.raises(OutOfRangeError):
            await char.set_value(150)
        with pytest.raises(FormatMismatchError):
            await char.set_value("loud")
        assert char.value == 10
        assert char.get_history() == []

    @pytest.mark.asyncio
    async def test_write_without_permission(self):
        """Read-only characteristics refuse writes."""
        char = make_characteristic(perms=["pr", "ev"])
        with pytest.raises(PermissionDeniedError) as exc_info:
            await char.set_value(20)
        assert exc_info.value.operation == "write"
        assert char.value == 50

    @pytest.mark.asyncio
    async def test_read_without_permission(self):
        """Write-only characteristics refuse reads."""
        char = make_characteristic(perms=["pw"])
        with pytest.raises(PermissionDeniedError) as exc_info:
            await char.get_value()
        assert exc_info.value.operation == "read"

    @pytest.mark.asyncio
    async def test_read_revalidates_stored_value(self):
        """An out-of-range stored value fails on read by default."""
        char = make_characteristic(value=500)
        with pytest.raises(OutOfRangeError):
            await char.get_value()

    @pytest.mark.asyncio
    async def test_non_finite_write_rejected(self):
        """NaN and infinity are validation errors and leave the value alone."""
        hue = Characteristic(
            "Hue", "Hue", 0.0,
            {"format": "float", "perms": ["pr", "pw"], "minValue": 0, "maxValue": 360, "minStep": 0.1},
        )
        with pytest.raises(StepMisalignedError):
            await hue.set_value(float("nan"))

        speed = Characteristic("Speed", "Speed", 1.0, {"format": "float", "perms": ["pr", "pw"], "minStep": 0.5})
        with pytest.raises(StepMisalignedError):
            await speed.set_value(float("inf"))

        assert hue.value == 0.0
        assert speed.value == 1.0

    @pytest.mark.asyncio
    async def test_read_without_revalidation(self):
        """validate_on_read=False only checks the read permission."""
        char = Characteristic(
            "Brightness", "Brightness", 500,
            {"format": "int", "perms": ["pr"], "maxValue": 100},
            validate_on_read=False,
        )
        assert await char.get_value() == 500

    @pytest.mark.asyncio
    async def test_change_event_contents(self, registry, lamp, time_controller):
        """A write records an event with identity, values and clock time."""
        on = lamp.get_service("Lightbulb").get_characteristic("On")
        await on.set_value(True)

        history = on.get_history()
        assert len(history) == 1
        event = history[0]
        assert event.characteristic_type == "On"
        assert event.service_type == "Lightbulb"
        assert event.accessory_uuid == LAMP_UUID
        assert event.old_value is False
        assert event.new_value is True
        assert event.timestamp == START_TIME_MS

    @pytest.mark.asyncio
    async def test_unattached_event_uses_placeholders(self):
        """Characteristics outside a tree use placeholder identities."""
        char = make_characteristic()
        await char.set_value(20)
        event = char.get_history()[0]
        assert event.service_type == UNKNOWN_SERVICE
        assert event.accessory_uuid == UNKNOWN_ACCESSORY

    @pytest.mark.asyncio
    async def test_event_to_dict(self):
        """to_dict uses protocol key names."""
        char = make_characteristic()
        await char.set_value(20)
        data = char.get_history()[0].to_dict()
        assert data["characteristicType"] == "Brightness"
        assert data["newValue"] == 20
        assert data["oldValue"] == 50
        assert data["accessoryUUID"] == UNKNOWN_ACCESSORY


# ============================================================================
# Tree
# ============================================================================

class TestAccessoryTree:
    """Tests for service/characteristic lookup and context binding."""

    def test_lookup_by_type_or_name(self, lamp):
        """Services and characteristics resolve by type or display name."""
        assert lamp.get_service("Lightbulb") is lamp.get_service("Light")
        light = lamp.get_service("Lightbulb")
        assert light.get_characteristic("Brightness") is not None
        assert light.has_characteristic("On")
        assert not light.has_characteristic("Saturation")
        assert lamp.get_service("Fan") is None

    def test_subtype_lookup(self):
        """Several services of one type are told apart by subtype."""
        strip = Accessory("strip", "Strip")
        left = strip.add_service(Service("Lightbulb", "Left", subtype="left"))
        right = strip.add_service(Service("Lightbulb", "Right", subtype="right"))
        assert strip.get_service("Lightbulb", "right") is right
        assert strip.get_service("Lightbulb", "left") is left
        assert len(strip.get_services()) == 2

    def test_duplicate_service_rejected(self):
        """The same (type, subtype) cannot be added twice."""
        acc = Accessory("a", "A")
        acc.add_service(Service("Switch", "One"))
        with pytest.raises(InvalidConfigurationError):
            acc.add_service(Service("Switch", "Two"))

    def test_duplicate_characteristic_rejected(self):
        """A service holds each characteristic type once."""
        svc = Service("Switch", "Switch")
        svc.add_characteristic(make_characteristic("On", True, format="bool"))
        with pytest.raises(InvalidConfigurationError):
            svc.add_characteristic(make_characteristic("On", False, format="bool"))

    def test_parents_bound(self, lamp):
        """Characteristics know their service and accessory."""
        on = lamp.get_service("Lightbulb").get_characteristic("On")
        assert on.service is lamp.get_service("Lightbulb")
        assert on.accessory is lamp

    def test_late_service_inherits_context(self, registry, lamp, time_controller):
        """A service added after registration joins the registry's clock."""
        svc = lamp.add_service(Service("Switch", "Switch"))
        char = svc.add_characteristic(make_characteristic("On", False, format="bool"))
        assert char.time_source is time_controller
        assert char.accessory is lamp
