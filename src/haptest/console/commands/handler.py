# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Command handler that combines all command mixins."""

import asyncio
import logging
import shlex
from typing import TYPE_CHECKING, Callable, Optional

from ...errors import HapTestError
from .accessories import AccessoryCommandsMixin
from .base import ArgSpec, CommandResult, SubcommandInfo, get_command_registry, parse_arg
from .clock import ClockCommandsMixin
from .control import ControlCommandsMixin
from .history import History
from .info import InfoCommandsMixin
from .network import NetworkCommandsMixin

if TYPE_CHECKING:
    from ...harness import TestHarness

logger = logging.getLogger(__name__)


class CommandHandler(
    AccessoryCommandsMixin,
    NetworkCommandsMixin,
    ClockCommandsMixin,
    InfoCommandsMixin,
    ControlCommandsMixin,
):
    """Handles console commands against a TestHarness.

    Commands can be invoked:
    - Via execute() with a command string
    - Directly as methods (e.g., handler.net_latency(50), handler.pair(True))
    """

    def __init__(self, harness: "TestHarness", stop_callback: Callable[[], None]):
        """Initialize the command handler.

        Args:
            harness: The harness to drive
            stop_callback: Function to call to stop the console
        """
        self.harness = harness
        self.stop_callback = stop_callback
        self._history_obj: Optional[History] = None
        self._interactive_mode = False
        self._watch_remove: Optional[Callable[[], None]] = None

        self._register_subcommand_handlers()

    def _register_subcommand_handlers(self):
        """Attach @subcommand decorated methods to their parent commands."""
        _command_registry = get_command_registry()

        for name in dir(self):
            if name.startswith("_"):
                continue
            method = getattr(self, name)
            if not callable(method):
                continue

            func = getattr(method, "__func__", method)
            if not hasattr(func, "_subcommand_info"):
                continue

            sub_info: SubcommandInfo = func._subcommand_info
            parent = _command_registry.get(func._parent)
            if parent is None:
                logger.warning(f"Parent command '{func._parent}' not found for subcommand '{sub_info.name}'")
                continue

            parent.subcommands[sub_info.name] = sub_info
            for alias in sub_info.aliases:
                parent.subcommands[alias] = sub_info

    def set_history(self, history: History):
        """Set the History object used by the history command."""
        self._history_obj = history

    def set_interactive_mode(self, enabled: bool):
        """Set whether the handler is operating in interactive mode.

        When disabled, commands marked interactive_only are rejected.
        """
        self._interactive_mode = enabled

    def close(self):
        """Drop listeners installed by commands."""
        if self._watch_remove is not None:
            self._watch_remove()
            self._watch_remove = None

    async def execute(self, command_str: str) -> CommandResult:
        """Execute a command string and return the result.

        Recursively dispatches to subcommand handlers when available.
        Implicit 'help' and '?' subcommands show help for commands with subcommands.
        """
        _command_registry = get_command_registry()

        if not command_str:
            return CommandResult(False, "Empty command")

        # Quoted arguments keep their spaces ("Desk Lamp")
        try:
            parts = shlex.split(command_str)
        except ValueError as e:
            return CommandResult(False, f"Could not parse command: {e}")
        if not parts:
            return CommandResult(False, "Empty command")
        cmd = parts[0].lower()

        if cmd not in _command_registry:
            return CommandResult(False, f"Unknown command: {cmd}. Type 'help' for commands.")

        info: SubcommandInfo = _command_registry[cmd]
        if _command_registry[cmd].interactive_only and not self._interactive_mode:
            return CommandResult(False, f"Unknown command: {cmd}. Type 'help' for commands.")

        cmd_path = [info.name]

        # Descend to the deepest matching subcommand
        part_idx = 1
        while part_idx < len(parts) and info.subcommands:
            subcmd = parts[part_idx].lower()

            if subcmd in ("help", "?"):
                if info.args:
                    return CommandResult(True, self._get_arg_help(info, cmd_path))
                return CommandResult(True, self._get_subcommand_help(info, cmd_path))

            if subcmd not in info.subcommands:
                if info.args:
                    break
                subnames = sorted(set(s.name for s in info.subcommands.values()))
                return CommandResult(
                    False,
                    f"Unknown {' '.join(cmd_path)} subcommand: {subcmd}\nAvailable: {', '.join(subnames)}",
                )

            info = info.subcommands[subcmd]
            cmd_path.append(info.name)
            part_idx += 1

        remaining_parts = parts[part_idx:]
        if info.handler is None:
            return CommandResult(False, f"No handler for: {' '.join(cmd_path)}")
        handler = getattr(self, info.handler.__name__)

        parsed_args: list = []
        if info.args:
            if remaining_parts and remaining_parts[0].lower() in ("help", "?"):
                return CommandResult(True, self._get_arg_help(info, cmd_path))
            parsed_args, error = self._parse_args(remaining_parts, info.args, cmd_path)
            if error:
                return error
        elif remaining_parts:
            if remaining_parts[0].lower() in ("help", "?"):
                return CommandResult(True, f"{' '.join(cmd_path)}: {info.description or 'No help available.'}")
            return CommandResult(False, f"{' '.join(cmd_path)} takes no arguments")

        try:
            result = handler(*parsed_args)
            if asyncio.iscoroutine(result):
                result = await result
        except HapTestError as e:
            logger.debug(f"Command '{command_str}' failed: {e}")
            return CommandResult(False, f"Error: {e}")
        except Exception as e:
            logger.exception(f"Unexpected error running '{command_str}'")
            return CommandResult(False, f"Error: {e}")

        return result

    def _parse_args(
        self,
        parts: list[str],
        arg_specs: list[ArgSpec],
        cmd_path: list[str],
    ) -> tuple[list, Optional[CommandResult]]:
        """Parse argument parts according to ArgSpec definitions.

        Returns:
            (parsed_args, error) - error is None on success
        """
        parsed = []
        cmd_str = " ".join(cmd_path)
        usage = " ".join(spec.generate_usage() for spec in arg_specs)

        if len(parts) > len(arg_specs):
            # The last argument soaks up the rest (e.g. a quoted JSON string with spaces)
            parts = parts[: len(arg_specs) - 1] + [" ".join(parts[len(arg_specs) - 1 :])]

        for i, spec in enumerate(arg_specs):
            if i < len(parts):
                value, error = parse_arg(parts[i], spec)
                if error:
                    return [], CommandResult(False, f"{error}\nUsage: {cmd_str} {usage}")
                parsed.append(value)
            elif spec.required:
                return [], CommandResult(False, f"Missing required argument: {spec.name}\nUsage: {cmd_str} {usage}")
            else:
                parsed.append(spec.default)

        return parsed, None

    # =========================================================================
    # Completion helpers
    # =========================================================================

    def path_completions(self, words: list[str]) -> list[str]:
        """Candidates for the next accessory/service/characteristic word.

        Args:
            words: The path words typed so far (without the command name)
        """
        registry = self.harness.registry
        if len(words) == 0:
            return [acc.uuid for acc in registry.accessories()]
        accessory = self._find_accessory(words[0])
        if accessory is None:
            return []
        if len(words) == 1:
            return [svc.type for svc in accessory.services]
        service = accessory.get_service(words[1])
        if service is None or len(words) > 2:
            return []
        return [char.type for char in service.characteristics]
