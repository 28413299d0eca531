# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Info and status commands."""

from typing import TYPE_CHECKING, Optional

from .base import ArgSpec, CommandInfo, CommandResult, SubcommandInfo, command, get_command_registry
from .history import History

if TYPE_CHECKING:
    from ...harness import TestHarness


class InfoCommandsMixin:
    """Mixin providing info and status commands."""

    harness: "TestHarness"
    _history_obj: Optional[History]
    _interactive_mode: bool

    def _get_subcommand_help(self, info: SubcommandInfo, cmd_path: list[str]) -> str:
        """Generate help text for a command's subcommands."""
        cmd_str = " ".join(cmd_path)
        lines = [f"{cmd_str} subcommands:"]

        seen = set()
        for sub_info in info.subcommands.values():
            if sub_info.name in seen:
                continue
            seen.add(sub_info.name)

            aliases = ", ".join(sub_info.aliases) if sub_info.aliases else ""
            alias_str = f" ({aliases})" if aliases else ""
            usage_str = f" {sub_info.usage}" if sub_info.usage else ""
            lines.append(f"  {sub_info.name}{alias_str}{usage_str} - {sub_info.description}")

        return "\n".join(lines)

    def _get_arg_help(self, info: SubcommandInfo, cmd_path: list[str]) -> str:
        """Generate help text for a command's arguments."""
        cmd_str = " ".join(cmd_path)
        usage = " ".join(arg.generate_usage() for arg in info.args)
        lines = [f"{cmd_str} {usage}", "", info.description or "No description.", "", "Arguments:"]

        for arg in info.args:
            required = "required" if arg.required else "optional"
            desc = arg.description or f"{arg.arg_type} value"

            constraints = []
            if arg.min_value is not None:
                constraints.append(f"min: {arg.min_value:g}")
            if arg.max_value is not None:
                constraints.append(f"max: {arg.max_value:g}")
            if arg.choices:
                constraints.append(f"choices: {', '.join(arg.choices)}")
            if arg.default is not None and not arg.required:
                constraints.append(f"default: {arg.default}")

            constraint_str = f" ({', '.join(constraints)})" if constraints else ""
            lines.append(f"  {arg.name}: {desc} [{required}]{constraint_str}")

        return "\n".join(lines)

    @command("status", ["info", "v"], "Show harness state", category="info")
    def status(self) -> CommandResult:
        """Summarize registry, platform, network and clock state."""
        harness = self.harness
        registry = harness.registry
        characteristics = sum(
            len(svc.characteristics) for acc in registry.accessories() for svc in acc.services
        )
        simulator = registry.network_simulator
        conditions = simulator.get_conditions() if simulator is not None else None
        data = {
            "accessories": len(registry.accessories()),
            "characteristics": characteristics,
            "did_finish_launching": harness.state.did_finish_launching,
            "platform_accessories": harness.state.accessory_count,
            "last_error": str(harness.state.last_error) if harness.state.last_error else None,
            "paired": registry.is_paired(),
            "events": len(registry.get_history()),
            "now": harness.time.now(),
            "fake_timers": harness.time.uses_fake_timers,
            "pending_timers": harness.time.pending_timers(),
        }

        if conditions is None:
            network_str = "not simulated"
        elif conditions.disconnected:
            network_str = "DISCONNECTED"
        else:
            network_str = f"{conditions.latency_ms:g}ms latency, {conditions.packet_loss_rate:.0%} loss"

        lines = [
            "Harness State:",
            f"  Accessories: {data['accessories']} ({characteristics} characteristics)",
            f"  Platform: {'launched' if data['did_finish_launching'] else 'starting'}, "
            f"{data['platform_accessories']} registered",
            f"  Controller: {registry.controller_id} ({'paired' if data['paired'] else 'unpaired'})",
            f"  Events: {data['events']}",
            f"  Network: {network_str}",
            f"  Clock: {'virtual' if data['fake_timers'] else 'real'}, {data['pending_timers']} pending timers",
        ]
        if data["last_error"]:
            lines.append(f"  Last platform error: {data['last_error']}")
        return CommandResult(True, "\n".join(lines), data)

    @command("help", ["?"], "Show available commands", category="info")
    def help(self) -> CommandResult:
        """Show help for all commands."""
        return CommandResult(True, self.get_help())

    @command(
        "history",
        ["hist"],
        "Show or clear command history",
        category="info",
        args=[
            ArgSpec(
                "arg",
                "string",
                required=False,
                description="'clear' to clear history, or N to show last N commands",
            )
        ],
        interactive_only=True,
    )
    def history(self, arg: Optional[str] = None) -> CommandResult:
        """Show or manage command history.

        history         - Show last 20 commands
        history N       - Show last N commands
        history clear   - Clear command history
        """
        if self._history_obj is None:
            return CommandResult(False, "History not available")

        if arg and arg.lower() == "clear":
            self._history_obj.clear()
            return CommandResult(True, "History cleared")

        limit = 20
        if arg:
            try:
                limit = int(arg)
            except ValueError:
                return CommandResult(False, f"Invalid argument: {arg}. Use 'clear' or a number.")
            if limit <= 0:
                return CommandResult(False, "Number must be positive")

        return CommandResult(True, self._history_obj.format_entries(limit))

    def get_help(self) -> str:
        """Generate help text from registered commands."""
        _command_registry = get_command_registry()

        categories: dict[str, list[CommandInfo]] = {}
        seen = set()
        for info in _command_registry.values():
            if info.name in seen:
                continue
            if info.interactive_only and not self._interactive_mode:
                continue
            seen.add(info.name)
            categories.setdefault(info.category, []).append(info)

        category_order = [
            ("accessories", "Accessories"),
            ("network", "Network"),
            ("time", "Time"),
            ("info", "Info"),
            ("control", "Control"),
        ]

        lines = ["Commands:"]
        for cat_key, cat_name in category_order:
            if cat_key not in categories:
                continue
            lines.append(f"\n{cat_name}:")
            for info in sorted(categories[cat_key], key=lambda x: x.name):
                aliases = ", ".join(info.aliases) if info.aliases else ""
                alias_str = f" ({aliases})" if aliases else ""
                usage_str = f" {info.usage}" if info.usage else ""
                lines.append(f"  {info.name}{alias_str}{usage_str} - {info.description}")

        return "\n".join(lines)
