# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Control commands."""

import logging
import sys
from typing import Callable, Optional

from ...harness import PACKAGE_LOGGER
from .base import ArgSpec, CommandResult, command


class ControlCommandsMixin:
    """Mixin providing console control commands."""

    stop_callback: Callable[[], None]

    @command("exit", ["q", "quit"], "Shut down the harness and exit", category="control")
    def exit(self) -> CommandResult:
        """Stop the console."""
        self.stop_callback()
        return CommandResult(True, "Shutting down...")

    @command(
        "debug",
        [],
        "Enable or disable debug logging",
        category="control",
        args=[
            ArgSpec(
                "state",
                "bool_toggle",
                required=False,
                description="on/off to set debug mode, omit to show current state",
            )
        ],
    )
    def debug(self, state: Optional[bool] = None) -> CommandResult:
        """Enable or disable debug logging for the harness loggers."""
        package_logger = logging.getLogger(PACKAGE_LOGGER)

        if state is None:
            is_debug = package_logger.getEffectiveLevel() <= logging.DEBUG
            return CommandResult(True, f"Debug logging: {'on' if is_debug else 'off'}")

        package_logger.setLevel(logging.DEBUG if state else logging.INFO)
        return CommandResult(True, f"Debug logging {'enabled' if state else 'disabled'}")

    @command("clear", ["cls"], "Clear the screen", category="control", interactive_only=True)
    def clear(self) -> CommandResult:
        """Clear the terminal screen."""
        # __stdout__ bypasses prompt_toolkit's patch_stdout
        out = sys.__stdout__ if sys.__stdout__ else sys.stdout
        out.write("\033[2J\033[H")
        out.flush()
        return CommandResult(True, "")
