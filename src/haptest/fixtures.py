# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Build accessories from plain data.

Accessory descriptions use the protocol's camelCase spelling (snake_case
is accepted too):

    {
        "uuid": "...",            # optional, derived from displayName
        "displayName": "Desk Lamp",
        "category": 5,
        "context": {},
        "services": [
            {
                "type": "Lightbulb",
                "displayName": "Light",
                "subtype": null,
                "characteristics": [
                    {
                        "type": "On",
                        "displayName": "On",
                        "value": false,
                        "props": {"format": "bool", "perms": ["pr", "pw", "ev"]}
                    }
                ]
            }
        ]
    }

A fixture file holds a JSON list of these, or an object with an
"accessories" list.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Union

from .accessory import Accessory, Characteristic, Service
from .errors import InvalidConfigurationError
from .platform import generate_uuid

logger = logging.getLogger(__name__)


def _get(data: dict, camel: str, snake: str, default: Any = None) -> Any:
    if camel in data:
        return data[camel]
    return data.get(snake, default)


def _require(data: dict, key: str, what: str) -> Any:
    if key not in data:
        raise InvalidConfigurationError(f"{what} is missing '{key}': {data!r}")
    return data[key]


def characteristic_from_dict(data: dict) -> Characteristic:
    char_type = _require(data, "type", "Characteristic")
    return Characteristic(
        char_type,
        _get(data, "displayName", "display_name", char_type),
        data.get("value"),
        _require(data, "props", f"Characteristic {char_type}"),
        validate_on_read=_get(data, "validateOnRead", "validate_on_read", True),
    )


def service_from_dict(data: dict) -> Service:
    service_type = _require(data, "type", "Service")
    service = Service(
        service_type,
        _get(data, "displayName", "display_name", service_type),
        data.get("subtype"),
    )
    for char_data in data.get("characteristics", []):
        service.add_characteristic(characteristic_from_dict(char_data))
    return service


def accessory_from_dict(data: dict) -> Accessory:
    """Build an Accessory (with services and characteristics) from a dict."""
    if not isinstance(data, dict):
        raise InvalidConfigurationError(f"Accessory description must be an object, got {type(data).__name__}")
    display_name = _get(data, "displayName", "display_name")
    if not display_name:
        raise InvalidConfigurationError(f"Accessory is missing 'displayName': {data!r}")
    uuid = data.get("uuid") or generate_uuid(display_name)
    accessory = Accessory(uuid, display_name, data.get("category"))
    accessory.context.update(data.get("context", {}))
    for service_data in data.get("services", []):
        accessory.add_service(service_from_dict(service_data))
    return accessory


def accessories_from_dicts(items: list) -> list[Accessory]:
    return [accessory_from_dict(item) for item in items]


def load_accessories(path: Union[str, Path]) -> list[Accessory]:
    """Load accessories from a JSON fixture file."""
    path = Path(path)
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfigurationError(f"Invalid JSON in {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("accessories")
    if not isinstance(data, list):
        raise InvalidConfigurationError(f"{path} must contain a list of accessories")

    accessories = accessories_from_dicts(data)
    logger.info(f"Loaded {len(accessories)} accessories from {path}")
    return accessories
