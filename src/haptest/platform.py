# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Minimal plugin-registration API handed to the platform under test.

Mirrors the subset of the home-automation bridge API a platform plugin
talks to: registering/unregistering/updating accessories, lifecycle
signals, and cached accessory restoration.
"""
from __future__ import annotations

import logging
import uuid as _uuid
from typing import Any, Callable

from .accessory import Accessory
from .const import (
    EVENT_CONFIGURE_ACCESSORY,
    EVENT_DID_FINISH_LAUNCHING,
    EVENT_REGISTER_ACCESSORIES,
    EVENT_SHUTDOWN,
    EVENT_UNREGISTER_ACCESSORIES,
    EVENT_UPDATE_ACCESSORIES,
    PLATFORM_EVENTS,
)
from .errors import InvalidConfigurationError

logger = logging.getLogger(__name__)

# Namespace for deterministic accessory UUIDs
UUID_NAMESPACE = _uuid.UUID("d1d57b7c-4f5e-4a3b-9f47-4b6a2f0e8c11")


def generate_uuid(seed: str) -> str:
    """Derive a stable accessory UUID from an arbitrary string."""
    return str(_uuid.uuid5(UUID_NAMESPACE, seed)).upper()


class LifecycleEmitter:
    """Named lifecycle signals with on/off/emit."""

    def __init__(self):
        self._listeners: dict[str, list[Callable[..., Any]]] = {name: [] for name in PLATFORM_EVENTS}

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        self._check_event(event)
        self._listeners[event].append(callback)

    def off(self, event: str, callback: Callable[..., Any]) -> None:
        self._check_event(event)
        if callback in self._listeners[event]:
            self._listeners[event].remove(callback)

    def listener_count(self, event: str) -> int:
        self._check_event(event)
        return len(self._listeners[event])

    def emit(self, event: str, *args: Any) -> None:
        self._check_event(event)
        for callback in list(self._listeners[event]):
            callback(*args)

    @staticmethod
    def _check_event(event: str) -> None:
        if event not in PLATFORM_EVENTS:
            raise InvalidConfigurationError(
                f"Unknown lifecycle event: {event}. Use one of: {', '.join(PLATFORM_EVENTS)}"
            )


class PlatformAPI(LifecycleEmitter):
    """The API object passed to `platform_factory(log, config, api)`."""

    version = 2.0
    server_version = "1.0.0-haptest"

    def __init__(self):
        super().__init__()
        self._accessories: dict[str, Accessory] = {}
        self._cached: list[Accessory] = []
        self._did_finish_launching = False

    @property
    def did_finish_launching(self) -> bool:
        return self._did_finish_launching

    @staticmethod
    def generate_uuid(seed: str) -> str:
        return generate_uuid(seed)

    def register_platform_accessories(
        self,
        plugin_identifier: str,
        platform_name: str,
        accessories: list[Accessory],
    ) -> None:
        """Register accessories. Already-registered UUIDs are kept as-is."""
        for accessory in accessories:
            if accessory.uuid not in self._accessories:
                self._accessories[accessory.uuid] = accessory
        logger.info(f"{plugin_identifier}.{platform_name} registered {len(accessories)} accessories")
        self.emit(EVENT_REGISTER_ACCESSORIES, list(accessories))

    def unregister_platform_accessories(
        self,
        plugin_identifier: str,
        platform_name: str,
        accessories: list[Accessory],
    ) -> None:
        for accessory in accessories:
            self._accessories.pop(accessory.uuid, None)
        logger.info(f"{plugin_identifier}.{platform_name} unregistered {len(accessories)} accessories")
        self.emit(EVENT_UNREGISTER_ACCESSORIES, list(accessories))

    def update_platform_accessories(self, accessories: list[Accessory]) -> None:
        """Replace registered accessories by UUID; unknown UUIDs are ignored."""
        for accessory in accessories:
            if accessory.uuid in self._accessories:
                self._accessories[accessory.uuid] = accessory
            else:
                logger.debug(f"Ignoring update for unregistered accessory {accessory.uuid}")
        self.emit(EVENT_UPDATE_ACCESSORIES, list(accessories))

    def platform_accessories(self) -> list[Accessory]:
        return list(self._accessories.values())

    def emit_did_finish_launching(self) -> None:
        self._did_finish_launching = True
        logger.info("Platform finished launching")
        self.emit(EVENT_DID_FINISH_LAUNCHING)

    def emit_shutdown(self) -> None:
        logger.info("Platform shutting down")
        self.emit(EVENT_SHUTDOWN)

    def provide_cached_accessories(self, accessories: list[Accessory]) -> None:
        """Hand cached accessories back, one configureAccessory signal each."""
        self._cached = list(accessories)
        for accessory in accessories:
            self.emit(EVENT_CONFIGURE_ACCESSORY, accessory)

    def get_cached_accessories(self) -> list[Accessory]:
        return list(self._cached)
