# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Virtual time commands."""

from datetime import datetime
from typing import TYPE_CHECKING

from .base import ArgSpec, CommandResult, command, subcommand

if TYPE_CHECKING:
    from ...harness import TestHarness


def _format_time(ms: float) -> str:
    return f"{datetime.fromtimestamp(ms / 1000).isoformat(timespec='milliseconds')} ({ms:.0f})"


class ClockCommandsMixin:
    """Mixin providing the `time` command family."""

    harness: "TestHarness"

    @command("time", ["clock"], "Show or control the harness clock", category="time")
    def time(self) -> CommandResult:
        """Show the current time (default action)."""
        return self.time_now()

    @subcommand("time", "now", [], "Show the current time and mode")
    def time_now(self) -> CommandResult:
        clock = self.harness.time
        if clock.is_frozen:
            mode = "frozen"
        elif clock.uses_fake_timers:
            mode = "virtual"
        else:
            mode = "real"
        return CommandResult(
            True,
            f"Time: {_format_time(clock.now())} [{mode}], {clock.pending_timers()} pending timers",
            {"now": clock.now(), "mode": mode, "pending_timers": clock.pending_timers()},
        )

    @subcommand(
        "time",
        "advance",
        ["adv", "+"],
        "Move time forward, firing due timers",
        args=[ArgSpec("ms", "float", min_value=0, description="Milliseconds to advance")],
    )
    async def time_advance(self, ms: float) -> CommandResult:
        await self.harness.time.advance(ms)
        return CommandResult(True, f"Advanced {ms:g}ms to {_format_time(self.harness.time.now())}")

    @subcommand("time", "freeze", [], "Stop the clock; timers fire only on advance")
    def time_freeze(self) -> CommandResult:
        self.harness.time.freeze()
        return CommandResult(True, f"Time frozen at {_format_time(self.harness.time.now())}")

    @subcommand(
        "time",
        "set",
        [],
        "Jump to an absolute time without firing timers",
        args=[ArgSpec("time", "time", description="ms since epoch or ISO 8601")],
    )
    def time_set(self, time: float) -> CommandResult:
        self.harness.time.set_time(time)
        return CommandResult(True, f"Time set to {_format_time(time)}")

    @subcommand("time", "reset", [], "Drop pending timers and return to real time")
    def time_reset(self) -> CommandResult:
        self.harness.time.reset()
        return CommandResult(True, "Time reset to real time")
