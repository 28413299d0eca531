# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Command history for the interactive console.

Wraps a prompt_toolkit history (file-backed or in-memory) and adds
shell-style recall: !! (last command), !n (entry n), !-n (n-th from last).
"""

import logging
import time
from pathlib import Path
from typing import Optional, Union

from prompt_toolkit.history import FileHistory, History as PromptHistory, InMemoryHistory

logger = logging.getLogger(__name__)


class History:
    """Console command history.

    Args:
        history_file: Path to a history file, "none" or None for in-memory.
    """

    def __init__(self, history_file: Optional[Union[str, Path]] = None):
        if history_file is None or str(history_file).lower() == "none":
            self._history: PromptHistory = InMemoryHistory()
        else:
            self._history = FileHistory(str(history_file))

    @property
    def prompt_toolkit_history(self) -> PromptHistory:
        """The underlying prompt_toolkit history, for PromptSession."""
        return self._history

    def get_entries(self) -> list[str]:
        """All history entries, oldest first."""
        return list(self._history.get_strings())

    def append(self, line: str) -> None:
        self._history.append_string(line)

    def remove_last_entry(self) -> bool:
        """Drop the most recent entry (e.g. a command that failed)."""
        loaded = getattr(self._history, "_loaded_strings", None)
        if not loaded:
            return False
        # _loaded_strings is newest-first
        loaded.pop(0)
        self._rewrite_file()
        return True

    def replace_last_entry(self, new_command: str) -> bool:
        """Swap the most recent entry (e.g. an alias for its canonical form)."""
        loaded = getattr(self._history, "_loaded_strings", None)
        if not loaded:
            return False
        loaded[0] = new_command
        self._rewrite_file()
        return True

    def clear(self) -> None:
        loaded = getattr(self._history, "_loaded_strings", None)
        if loaded is not None:
            loaded.clear()
        self._rewrite_file()

    def _rewrite_file(self) -> None:
        filename = getattr(self._history, "filename", None)
        if filename is None:
            return
        try:
            with open(filename, "w") as f:
                for entry in self.get_entries():
                    # FileHistory format: comment line, then +line per line
                    f.write(f"# {time.time()}\n")
                    for line in entry.split("\n"):
                        f.write(f"+{line}\n")
        except OSError as e:
            logger.warning(f"Could not rewrite history file {filename}: {e}")

    def format_entries(self, limit: int = 20) -> str:
        entries = self.get_entries()
        if not entries:
            return "No history"
        start = max(0, len(entries) - limit)
        lines = [f"History ({len(entries) - start} of {len(entries)} commands):"]
        for i, entry in enumerate(entries[start:], start + 1):
            lines.append(f"  {i:5d}  {entry}")
        return "\n".join(lines)

    def resolve_recall(self, command_str: str) -> Union[tuple[str, str], tuple[None, str], None]:
        """Resolve history recall commands like !!, !n, !-n.

        Returns:
            - (resolved_command, prefix_message) on success
            - (None, error_message) on error
            - None if this isn't a history recall pattern
        """
        if not command_str.startswith("!"):
            return None
        rest = command_str[1:]

        entries = self.get_entries()
        # The recall itself may already be stored as the latest entry
        if entries and entries[-1] == command_str:
            entries = entries[:-1]

        if rest == "!":
            index = -1
        else:
            try:
                n = int(rest)
            except ValueError:
                return None
            if n == 0:
                return None, "History positions start at 1"
            index = n if n < 0 else n - 1

        if not entries:
            return None, "No history"
        if abs(index) > len(entries) or index >= len(entries):
            return None, f"Only {len(entries)} commands in history"

        resolved = entries[index]
        return resolved, f"{command_str} -> {resolved}"
