# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Interactive console for the haptest harness."""

from .cli import main, run_console
from .commands import CommandHandler, CommandResult

__all__ = ["CommandHandler", "CommandResult", "main", "run_console"]
