# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Command handler for the harness console.

The command handler is split into category-specific mixins:
- AccessoryCommandsMixin: Accessory inspection, reads, writes and events
- NetworkCommandsMixin: Latency, packet loss and disconnect injection
- ClockCommandsMixin: Virtual time control
- InfoCommandsMixin: Status, help and history
- ControlCommandsMixin: Console control (exit, debug, clear)
"""

from .base import (
    ArgSpec,
    CommandInfo,
    CommandResult,
    SubcommandInfo,
    command,
    get_canonical_command,
    get_command_registry,
    parse_arg,
    subcommand,
)
from .handler import CommandHandler
from .history import History

__all__ = [
    "ArgSpec",
    "CommandHandler",
    "CommandInfo",
    "CommandResult",
    "History",
    "SubcommandInfo",
    "command",
    "get_canonical_command",
    "get_command_registry",
    "parse_arg",
    "subcommand",
]
