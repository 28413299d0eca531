# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Accessory and characteristic commands."""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from ...accessory import Accessory, Characteristic
from ...events import CharacteristicEvent
from .base import ArgSpec, CommandResult, command

if TYPE_CHECKING:
    from ...harness import TestHarness

logger = logging.getLogger(__name__)

_PATH_ARGS = [
    ArgSpec("accessory", "string", description="Accessory UUID or display name"),
    ArgSpec("service", "string", description="Service type or display name"),
    ArgSpec("characteristic", "string", description="Characteristic type or display name"),
]


def _format_value(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return f"<{len(value)} bytes>"
    return repr(value)


def format_event(event: CharacteristicEvent) -> str:
    """One-line description of a change event."""
    return (
        f"[{event.timestamp:.0f}] {event.accessory_uuid} {event.service_type}.{event.characteristic_type}: "
        f"{_format_value(event.old_value)} -> {_format_value(event.new_value)}"
    )


class AccessoryCommandsMixin:
    """Mixin providing accessory inspection and characteristic I/O commands."""

    harness: "TestHarness"
    _watch_remove: Optional[Callable[[], None]]

    def _find_accessory(self, ident: str) -> Optional[Accessory]:
        """Find an accessory by UUID or (case-insensitive) display name."""
        accessory = self.harness.registry.accessory(ident)
        if accessory is not None:
            return accessory
        for candidate in self.harness.registry.accessories():
            if candidate.display_name.lower() == ident.lower():
                return candidate
        return None

    def _find_characteristic(
        self, accessory: str, service: str, characteristic: str
    ) -> tuple[Optional[Characteristic], Optional[CommandResult]]:
        acc = self._find_accessory(accessory)
        if acc is None:
            return None, CommandResult(False, f"No accessory: {accessory}")
        svc = acc.get_service(service)
        if svc is None:
            return None, CommandResult(False, f"No service {service} on {acc.display_name}")
        char = svc.get_characteristic(characteristic)
        if char is None:
            return None, CommandResult(False, f"No characteristic {characteristic} on {svc.display_name}")
        return char, None

    async def _run_io(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        """Run a (possibly network-delayed) operation from the prompt.

        Under fake timers nothing moves the clock on its own, so the clock
        is advanced in steps of the current latency until the operation
        (possibly several reads in a row) completes.
        """
        task = asyncio.ensure_future(operation())
        simulator = self.harness.registry.network_simulator
        time = self.harness.time
        if simulator is not None and time.uses_fake_timers:
            latency = simulator.get_conditions().latency_ms
            if latency > 0:
                await asyncio.sleep(0)
                while not task.done():
                    await time.advance(latency)
        return await task

    @command(
        "list",
        ["ls"],
        "List accessories, or the services of one accessory",
        category="accessories",
        args=[ArgSpec("accessory", "string", required=False, description="Accessory UUID or display name")],
    )
    def list_accessories(self, accessory: Optional[str] = None) -> CommandResult:
        """List accessories or show one accessory's tree."""
        if accessory is None:
            accessories = self.harness.registry.accessories()
            if not accessories:
                return CommandResult(True, "No accessories registered")
            lines = [f"Accessories ({len(accessories)}):"]
            for acc in accessories:
                lines.append(f"  {acc.uuid}  {acc.display_name} ({len(acc.services)} services)")
            return CommandResult(True, "\n".join(lines), {"accessories": [a.uuid for a in accessories]})

        acc = self._find_accessory(accessory)
        if acc is None:
            return CommandResult(False, f"No accessory: {accessory}")
        lines = [f"{acc.display_name} ({acc.uuid})"]
        for svc in acc.services:
            subtype = f" [{svc.subtype}]" if svc.subtype else ""
            lines.append(f"  {svc.display_name} ({svc.type}){subtype}")
            for char in svc.characteristics:
                perms = ",".join(str(getattr(p, "value", p)) for p in char.props.perms) if char.props.perms else "all"
                lines.append(
                    f"    {char.display_name} ({char.type}) = {_format_value(char.value)}  [{perms}]"
                )
        return CommandResult(True, "\n".join(lines))

    @command("get", ["g"], "Read a characteristic", category="accessories", args=list(_PATH_ARGS))
    async def get(self, accessory: str, service: str, characteristic: str) -> CommandResult:
        """Read a characteristic through the network simulator."""
        char, error = self._find_characteristic(accessory, service, characteristic)
        if error:
            return error
        value = await self._run_io(char.get_value)
        return CommandResult(True, f"{char.display_name} = {_format_value(value)}", {"value": value})

    @command(
        "set",
        ["s"],
        "Write a characteristic (value is JSON: true, 42, 2.5; other text is a string)",
        category="accessories",
        args=list(_PATH_ARGS) + [ArgSpec("value", "value", description="New value")],
    )
    async def set(self, accessory: str, service: str, characteristic: str, value: Any) -> CommandResult:
        """Write a characteristic through the network simulator."""
        char, error = self._find_characteristic(accessory, service, characteristic)
        if error:
            return error
        old_value = char.value
        await self._run_io(lambda: char.set_value(value))
        return CommandResult(
            True,
            f"{char.display_name}: {_format_value(old_value)} -> {_format_value(value)}",
            {"old_value": old_value, "new_value": value},
        )

    @command("refresh", ["r"], "Read every readable characteristic", category="accessories")
    async def refresh(self) -> CommandResult:
        """Batch-read all characteristics."""
        values = await self._run_io(self.harness.registry.refresh_all)
        if not values:
            return CommandResult(True, "Nothing readable", {"values": values})
        lines = [f"{key} = {_format_value(value)}" for key, value in values.items()]
        return CommandResult(True, "\n".join(lines), {"values": values})

    @command(
        "watch",
        ["w"],
        "Log every characteristic change as it happens",
        category="accessories",
        args=[ArgSpec("state", "bool_toggle", required=False, description="on/off, omit to show current state")],
    )
    def watch(self, state: Optional[bool] = None) -> CommandResult:
        """Toggle live logging of characteristic changes."""
        if state is None:
            return CommandResult(True, f"Watch: {'on' if self._watch_remove else 'off'}")
        if state and self._watch_remove is None:
            self._watch_remove = self.harness.registry.on_characteristic_event(
                lambda event: logger.info(format_event(event))
            )
        elif not state and self._watch_remove is not None:
            self._watch_remove()
            self._watch_remove = None
        return CommandResult(True, f"Watch {'enabled' if state else 'disabled'}")

    @command(
        "events",
        ["ev"],
        "Show recent characteristic changes",
        category="accessories",
        args=[ArgSpec("count", "int", required=False, default=10, min_value=1, description="Number of events")],
    )
    def events(self, count: int = 10) -> CommandResult:
        """Show the last N events from the registry stream."""
        history = self.harness.registry.get_history()
        if not history:
            return CommandResult(True, "No events yet")
        shown = history[-count:]
        lines = [f"Events ({len(shown)} of {len(history)}):"]
        lines.extend(f"  {format_event(event)}" for event in shown)
        return CommandResult(True, "\n".join(lines), {"events": [e.to_dict() for e in shown]})

    @command(
        "pair",
        [],
        "Show or change controller pairing",
        category="accessories",
        args=[ArgSpec("state", "bool_toggle", required=False, description="on/off, omit to show current state")],
    )
    def pair(self, state: Optional[bool] = None) -> CommandResult:
        """Pair or unpair the simulated controller."""
        registry = self.harness.registry
        if state is True:
            registry.pair()
        elif state is False:
            registry.unpair()
        paired = registry.is_paired()
        return CommandResult(
            True,
            f"Controller {registry.controller_id}: {'paired' if paired else 'unpaired'}",
            {"paired": paired},
        )
