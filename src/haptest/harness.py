# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Top-level test harness.

A TestHarness owns one virtual clock, one accessory registry and one
platform API, so several harnesses can run side by side without sharing
time or state.

Example:
    harness = await TestHarness.create(HarnessOptions(platform_factory=MyPlatform))
    harness.api.emit_did_finish_launching()
    await harness.wait_for_accessories(1)
    task = asyncio.create_task(harness.wait_for_event(uuid, "Lightbulb", "On"))
    ...
    harness.shutdown()
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .accessory import Accessory, Characteristic
from .const import (
    DEFAULT_CONTROLLER_ID,
    DEFAULT_WAIT_TIMEOUT_MS,
    EVENT_CONFIGURE_ACCESSORY,
    EVENT_DID_FINISH_LAUNCHING,
    EVENT_REGISTER_ACCESSORIES,
    EVENT_SHUTDOWN,
    EVENT_UNREGISTER_ACCESSORIES,
    EVENT_UPDATE_ACCESSORIES,
    LOG_CATEGORIES,
)
from .errors import HomeKitTimeoutError, InvalidConfigurationError, NotFoundError
from .events import CharacteristicEvent
from .platform import LifecycleEmitter, PlatformAPI
from .registry import AccessoryRegistry
from .time_controller import TimeController, TimeValue

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = __name__.split(".")[0]
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class LoggingOptions:
    """Debug logging for a harness.

    Attributes:
        debug: Configure haptest logging at all
        level: DEBUG, INFO, WARNING or ERROR
        categories: Only log these categories below WARNING (None = all).
            Categories: accessory, events, network, registry, time,
            harness, platform, validation
    """

    debug: bool = False
    level: str = "DEBUG"
    categories: Optional[list[str]] = None


@dataclass
class TimeOptions:
    """Virtual clock settings."""

    use_fake_timers: bool = True
    initial_time: Optional[TimeValue] = None
    settle_passes: int = 20


@dataclass
class HarnessOptions:
    """Options for TestHarness.create()."""

    platform_config: dict = field(default_factory=dict)
    # Called as platform_factory(log, platform_config, api)
    platform_factory: Optional[Callable[..., Any]] = None
    cached_accessories: list = field(default_factory=list)
    logging: LoggingOptions = field(default_factory=LoggingOptions)
    time: TimeOptions = field(default_factory=TimeOptions)
    controller_id: str = DEFAULT_CONTROLLER_ID


@dataclass
class PlatformState:
    """What the harness has observed of the platform so far."""

    did_finish_launching: bool = False
    accessory_count: int = 0
    last_error: Optional[BaseException] = None


def configure_logging(options: LoggingOptions) -> None:
    """Apply harness logging options to the haptest loggers."""
    if not options.debug:
        return

    level_name = str(options.level).upper()
    if level_name not in LOG_LEVELS:
        raise InvalidConfigurationError(
            f"Unknown log level: {options.level}. Use one of: {', '.join(LOG_LEVELS)}"
        )
    level = getattr(logging, level_name)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)

    if options.categories:
        unknown = [c for c in options.categories if c not in LOG_CATEGORIES]
        if unknown:
            raise InvalidConfigurationError(
                f"Unknown log categories: {', '.join(unknown)}. "
                f"Use: {', '.join(LOG_CATEGORIES)}"
            )
        enabled = {LOG_CATEGORIES[c] for c in options.categories}
        for module in LOG_CATEGORIES.values():
            child = logging.getLogger(f"{PACKAGE_LOGGER}.{module}")
            child.setLevel(level if module in enabled else max(level, logging.WARNING))

    if not package_logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        package_logger.addHandler(handler)

    logger.info(
        f"Debug logging enabled (level={level_name}, "
        f"categories={', '.join(options.categories) if options.categories else 'all'})"
    )


class TestHarness(LifecycleEmitter):
    """Registry + virtual clock + platform API, with convenience waiters.

    Lifecycle signals from the platform API are re-emitted on the harness,
    so tests can `harness.on("didFinishLaunching", ...)`.
    """

    # Not a pytest test class
    __test__ = False

    def __init__(self, options: Optional[HarnessOptions] = None):
        super().__init__()
        self.options = options or HarnessOptions()
        configure_logging(self.options.logging)

        time_options = self.options.time
        self.time = TimeController(
            initial_time=time_options.initial_time,
            use_fake_timers=time_options.use_fake_timers,
            settle_passes=time_options.settle_passes,
        )
        self.registry = AccessoryRegistry(self.time, self.options.controller_id)
        self.api = PlatformAPI()
        self.state = PlatformState()
        self.platform: Any = None
        self._shut_down = False

        self.api.on(EVENT_DID_FINISH_LAUNCHING, self._on_did_finish_launching)
        self.api.on(EVENT_REGISTER_ACCESSORIES, self._on_register)
        self.api.on(EVENT_UNREGISTER_ACCESSORIES, self._on_unregister)
        self.api.on(EVENT_UPDATE_ACCESSORIES, self._on_update)
        self.api.on(EVENT_CONFIGURE_ACCESSORY, self._on_configure)
        self.api.on(EVENT_SHUTDOWN, self._on_shutdown)

        logger.debug(
            f"Harness initialized (fake timers: {time_options.use_fake_timers}, "
            f"controller: {self.options.controller_id})"
        )

    @classmethod
    async def create(cls, options: Optional[HarnessOptions] = None) -> "TestHarness":
        """Build a harness, construct the platform and restore cached accessories."""
        harness = cls(options)
        options = harness.options

        if options.platform_factory is not None:
            plugin_log = logging.getLogger(f"{PACKAGE_LOGGER}.plugin")
            try:
                harness.platform = options.platform_factory(plugin_log, options.platform_config, harness.api)
            except Exception as e:
                harness.state.last_error = e
                logger.error(f"Platform construction failed: {e}")
                raise

        if options.cached_accessories:
            harness.api.provide_cached_accessories(options.cached_accessories)

        return harness

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    # =========================================================================
    # Lookups
    # =========================================================================

    def accessories(self) -> list[Accessory]:
        return self.registry.accessories()

    def characteristic(
        self,
        accessory_uuid: str,
        service_name: str,
        characteristic_name: str,
        subtype: Optional[str] = None,
    ) -> Characteristic:
        """Look up a characteristic, raising NotFoundError if any part is missing.

        Without `subtype`, the first service matching `service_name` (display
        name or type) is used; pass it to pick one of several services of the
        same type.
        """
        accessory = self.registry.accessory(accessory_uuid)
        if accessory is None:
            raise NotFoundError(f"Accessory {accessory_uuid} not found")
        service = accessory.get_service(service_name, subtype)
        if service is None:
            raise NotFoundError(f"Service {service_name} not found on accessory {accessory_uuid}")
        characteristic = service.get_characteristic(characteristic_name)
        if characteristic is None:
            raise NotFoundError(f"Characteristic {characteristic_name} not found on service {service_name}")
        return characteristic

    # =========================================================================
    # Waiters
    # =========================================================================

    async def wait_for_registration(self, timeout_ms: float = DEFAULT_WAIT_TIMEOUT_MS) -> None:
        """Wait for the platform to signal didFinishLaunching."""
        await self._wait_for_signal(
            EVENT_DID_FINISH_LAUNCHING,
            lambda: self.state.did_finish_launching,
            "waitForRegistration",
            timeout_ms,
        )

    async def wait_for_accessories(self, count: int, timeout_ms: float = DEFAULT_WAIT_TIMEOUT_MS) -> None:
        """Wait until at least `count` accessories are registered."""
        await self._wait_for_signal(
            EVENT_REGISTER_ACCESSORIES,
            lambda: len(self.registry.accessories()) >= count,
            "waitForAccessories",
            timeout_ms,
        )

    async def wait_for_event(
        self,
        accessory_uuid: str,
        service_name: str,
        characteristic_name: str,
        timeout_ms: float = DEFAULT_WAIT_TIMEOUT_MS,
        subtype: Optional[str] = None,
    ) -> CharacteristicEvent:
        """Wait for the next change to one characteristic.

        Subscribes, waits once, and always unsubscribes.
        """
        characteristic = self.characteristic(accessory_uuid, service_name, characteristic_name, subtype)
        subscription = characteristic.subscribe()
        try:
            return await subscription.wait_for_next(timeout_ms)
        finally:
            subscription.unsubscribe()

    async def wait_for_any_event(self, timeout_ms: float = DEFAULT_WAIT_TIMEOUT_MS) -> CharacteristicEvent:
        """Wait for the next change to any characteristic in the registry."""
        future = asyncio.get_running_loop().create_future()

        def on_event(event: CharacteristicEvent) -> None:
            if not future.done():
                future.set_result(event)

        def on_timeout() -> None:
            if not future.done():
                future.set_exception(HomeKitTimeoutError("waitForAnyEvent", timeout_ms))

        remove_listener = self.registry.on_characteristic_event(on_event)
        timer = self.time.call_later(timeout_ms, on_timeout)
        try:
            return await future
        finally:
            timer.cancel()
            remove_listener()

    async def _wait_for_signal(
        self,
        event: str,
        ready: Callable[[], bool],
        operation: str,
        timeout_ms: float,
    ) -> None:
        if ready():
            return

        future = asyncio.get_running_loop().create_future()

        def on_signal(*args: Any) -> None:
            if not future.done() and ready():
                future.set_result(None)

        def on_timeout() -> None:
            if not future.done():
                future.set_exception(HomeKitTimeoutError(operation, timeout_ms))

        self.on(event, on_signal)
        timer = self.time.call_later(timeout_ms, on_timeout) if timeout_ms and timeout_ms > 0 else None
        try:
            await future
        finally:
            if timer is not None:
                timer.cancel()
            self.off(event, on_signal)

    # =========================================================================
    # Shutdown
    # =========================================================================

    def shutdown(self) -> None:
        """Reset time and emit the shutdown signal. Later calls do nothing."""
        if self._shut_down:
            return
        self._shut_down = True
        self.time.reset()
        self.api.emit_shutdown()

    # =========================================================================
    # Platform API listeners
    # =========================================================================

    def _on_did_finish_launching(self) -> None:
        logger.info("didFinishLaunching")
        self.state.did_finish_launching = True
        self.emit(EVENT_DID_FINISH_LAUNCHING)

    def _on_register(self, accessories: list[Accessory]) -> None:
        for accessory in accessories:
            self.registry.add_accessory(accessory)
        self.state.accessory_count = len(self.registry.accessories())
        logger.info(f"Registered {len(accessories)} accessories ({self.state.accessory_count} total)")
        self.emit(EVENT_REGISTER_ACCESSORIES, accessories)

    def _on_unregister(self, accessories: list[Accessory]) -> None:
        for accessory in accessories:
            self.registry.remove_accessory(accessory.uuid)
        self.state.accessory_count = len(self.registry.accessories())
        logger.info(f"Unregistered {len(accessories)} accessories ({self.state.accessory_count} total)")
        self.emit(EVENT_UNREGISTER_ACCESSORIES, accessories)

    def _on_update(self, accessories: list[Accessory]) -> None:
        for accessory in accessories:
            current = self.registry.accessory(accessory.uuid)
            if current is not None and current is not accessory:
                self.registry.remove_accessory(accessory.uuid)
                self.registry.add_accessory(accessory)
        logger.debug(f"Updated {len(accessories)} accessories")
        self.emit(EVENT_UPDATE_ACCESSORIES, accessories)

    def _on_configure(self, accessory: Any) -> None:
        if not isinstance(accessory, Accessory):
            logger.warning(f"Ignoring cached accessory of unexpected type {type(accessory).__name__}")
            return
        logger.debug(f"Restoring cached accessory {accessory.uuid}")
        self.registry.add_accessory(accessory)
        self.state.accessory_count = len(self.registry.accessories())
        configure = getattr(self.platform, "configure_accessory", None)
        if callable(configure):
            configure(accessory)
        self.emit(EVENT_CONFIGURE_ACCESSORY, accessory)

    def _on_shutdown(self) -> None:
        logger.info("Shutdown")
        self.emit(EVENT_SHUTDOWN)
