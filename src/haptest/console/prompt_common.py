# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""prompt_toolkit components for the harness console.

Syntax highlighting, tab completion (commands, subcommands and accessory
paths), styling, and the InteractiveSession wrapper.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.lexers import Lexer
from prompt_toolkit.styles import Style

from .commands.base import SubcommandInfo, get_canonical_command, get_command_registry
from .commands.handler import CommandHandler
from .commands.history import History

HISTORY_FILE = Path.home() / ".haptest_history"

CONSOLE_STYLE = Style.from_dict(
    {
        "command": "#00aa00 bold",
        "alias": "#00aa00",
        "subcommand": "#0088ff",
        "option": "#ff8800",
        "number": "#aa00aa",
        "path": "#00aaaa",
        # Prompt - network up (white) vs disconnected (gray)
        "prompt.connected": "#ffffff bold",
        "prompt.disconnected": "#888888",
    }
)

# Commands whose leading arguments are accessory/service/characteristic
PATH_COMMANDS = {"list": 1, "get": 3, "set": 3}


def _lookup(words: list[str]) -> tuple[Optional[SubcommandInfo], int]:
    """Walk the command tree along `words`.

    Returns (info, depth) where depth is the number of words consumed as
    command or subcommand names.
    """
    if not words:
        return None, 0
    registry = get_command_registry()
    info: Optional[SubcommandInfo] = registry.get(words[0].lower())
    if info is None:
        return None, 0
    depth = 1
    for word in words[1:]:
        word = word.lower()
        if word in ("help", "?") and (info.subcommands or info.args):
            return info, depth + 1
        if word not in info.subcommands:
            break
        info = info.subcommands[word]
        depth += 1
    return info, depth


def _is_number(word: str) -> bool:
    return word.replace(".", "", 1).replace("-", "", 1).isdigit()


class ConsoleLexer(Lexer):
    """Syntax highlighter for console commands."""

    def lex_document(self, document):
        registry = get_command_registry()

        def get_line_tokens(line_number):
            line = document.lines[line_number]
            tokens = []
            words = line.split()
            info, depth = _lookup(words)
            path_args = PATH_COMMANDS.get(info.name, 0) if isinstance(info, SubcommandInfo) and depth == 1 else 0
            pos = 0

            for i, word in enumerate(words):
                start = line.find(word, pos)
                if start > pos:
                    tokens.append(("", line[pos:start]))

                lower = word.lower()
                if i == 0 and lower in registry:
                    style = "class:command" if registry[lower].name == lower else "class:alias"
                elif 0 < i < depth:
                    style = "class:subcommand"
                elif i >= depth and i - depth < path_args:
                    style = "class:path"
                elif _is_number(word):
                    style = "class:number"
                elif lower in ("on", "off", "true", "false"):
                    style = "class:option"
                else:
                    style = ""
                tokens.append((style, word))
                pos = start + len(word)

            if pos < len(line):
                tokens.append(("", line[pos:]))
            return tokens

        return get_line_tokens


class ConsoleCompleter(Completer):
    """Tab completion for console commands.

    Args:
        handler: When given, accessory paths are completed from its harness.
    """

    def __init__(self, handler: Optional[CommandHandler] = None):
        self._handler = handler

    def _get_commands(self) -> list[tuple[str, str]]:
        seen = set()
        commands = []
        for info in get_command_registry().values():
            if info.name in seen:
                continue
            seen.add(info.name)
            commands.append((info.name, info.description))
            for alias in info.aliases:
                commands.append((alias, f"Alias for {info.name}"))
        return sorted(commands, key=lambda x: x[0])

    def _get_candidates(self, completed_words: list[str]) -> list[tuple[str, str]]:
        info, depth = _lookup(completed_words)
        if info is None:
            return []

        candidates: list[tuple[str, str]] = []
        if depth == len(completed_words):
            seen = set()
            for sub in info.subcommands.values():
                if sub.name not in seen:
                    seen.add(sub.name)
                    candidates.append((sub.name, sub.description))
            if info.subcommands or info.args:
                candidates.append(("help", "Show help for this command"))

        path_args = PATH_COMMANDS.get(info.name, 0) if depth == 1 else 0
        arg_index = len(completed_words) - depth
        if self._handler is not None and arg_index < path_args:
            path = completed_words[depth:]
            candidates.extend((name, "") for name in self._handler.path_completions(path))
        elif arg_index < len(info.args):
            arg = info.args[arg_index]
            if arg.arg_type == "bool_toggle":
                candidates.extend([("on", "Enable"), ("off", "Disable")])
            elif arg.choices:
                candidates.extend((c, "") for c in arg.choices)
        return candidates

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        words = text.split()
        if not text or text.endswith(" "):
            word_before = ""
            completed_words = words
        else:
            word_before = words[-1]
            completed_words = words[:-1]

        if completed_words:
            candidates = self._get_candidates(completed_words)
        else:
            candidates = self._get_commands()

        for name, desc in candidates:
            if name.lower().startswith(word_before.lower()):
                yield Completion(name, start_position=-len(word_before), display_meta=desc)


@dataclass
class InputLine:
    """Processed input line from an interactive session."""

    original: str  # Original input (may be !!, !n, etc.)
    resolved: str  # Resolved command (after history recall)
    was_history_recall: bool


class InteractiveSession:
    """Interactive prompt session with history recall and cleanup.

    Usage:
        session = InteractiveSession(handler, history_file)
        async for input_line in session.input_loop(stop_check=stop_event.is_set):
            result = await handler.execute(input_line.resolved)
            session.handle_result(input_line, result.success)
            if result.message:
                print(session.format_output(input_line, result.message))
    """

    def __init__(
        self,
        handler: Optional[CommandHandler] = None,
        history_file: Optional[str] = None,
        is_connected: Optional[Callable[[], bool]] = None,
        prompt_text: str = "haptest> ",
    ):
        self._prompt_text = prompt_text
        self._is_connected = is_connected
        self._history = History(history_file)
        self._session = PromptSession(
            history=self._history.prompt_toolkit_history,
            completer=ConsoleCompleter(handler),
            complete_while_typing=False,
            lexer=ConsoleLexer(),
            style=CONSOLE_STYLE,
            auto_suggest=AutoSuggestFromHistory(),
            enable_history_search=True,
        )

    @property
    def history(self) -> History:
        return self._history

    def _get_prompt(self) -> Any:
        if self._is_connected is None:
            return self._prompt_text
        style = "class:prompt.connected" if self._is_connected() else "class:prompt.disconnected"
        return FormattedText([(style, self._prompt_text)])

    def resolve_history_recall(self, line: str) -> tuple[str, bool, Optional[str]]:
        """Resolve history recall commands (!!, !n, !-n).

        Returns:
            (resolved_line, was_history_recall, error_message)
        """
        result = self._history.resolve_recall(line)
        if result is None:
            return line, False, None
        resolved_cmd, message = result
        if resolved_cmd is None:
            return line, False, message
        return resolved_cmd, True, None

    def handle_result(self, input_line: InputLine, success: bool) -> None:
        """Tidy history after a command ran.

        Failed commands are dropped, recalls are replaced by what they ran,
        and aliases by their canonical names.
        """
        if not success:
            self._history.remove_last_entry()
        elif input_line.was_history_recall:
            self._history.replace_last_entry(input_line.resolved)
        else:
            canonical = get_canonical_command(input_line.resolved)
            if canonical:
                self._history.replace_last_entry(canonical)

    def format_output(self, input_line: InputLine, message: str) -> str:
        if input_line.was_history_recall:
            return f">>> {input_line.original} -> {input_line.resolved}\n>>> {message}"
        return f">>> {message}"

    async def prompt_async(self) -> Optional[str]:
        """Read one line; None on EOF."""
        try:
            line = await self._session.prompt_async(self._get_prompt)
            return line.strip() if line else ""
        except EOFError:
            return None
        except KeyboardInterrupt:
            return ""

    async def input_loop(self, stop_check: Optional[Callable[[], bool]] = None):
        """Async generator yielding processed input lines until EOF or stop."""
        while True:
            if stop_check and stop_check():
                break

            line = await self.prompt_async()
            if line is None:
                break
            if not line:
                continue

            resolved, was_recall, error = self.resolve_history_recall(line)
            if error:
                print(f">>> {error}")
                continue

            yield InputLine(original=line, resolved=resolved, was_history_recall=was_recall)
