# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Base infrastructure for console commands.

This module provides the core types, decorators, and parsing utilities
used by all command mixins.
"""

import functools
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional


@dataclass
class CommandResult:
    """Result of executing a command."""

    success: bool
    message: str
    data: Optional[dict] = None


@dataclass
class ArgSpec:
    """Specification for a command argument.

    Attributes:
        name: Argument name for error messages and usage
        arg_type: One of string, int, float, bool_toggle, choice, value, time
        required: Whether the argument is required
        default: Default value when not provided
        choices: Valid choices for "choice" type
        description: Help text describing this argument
        min_value: Minimum value for numeric types
        max_value: Maximum value for numeric types
    """

    name: str
    arg_type: str
    required: bool = True
    default: Any = None
    choices: Optional[list[str]] = None
    description: str = ""
    min_value: Optional[float] = None
    max_value: Optional[float] = None

    def generate_usage(self) -> str:
        """Generate usage string for this argument."""
        if self.arg_type == "choice" and self.choices:
            inner = "|".join(self.choices)
        elif self.arg_type == "bool_toggle":
            inner = "on|off"
        else:
            inner = self.name

        if self.required:
            return f"<{inner}>"
        return f"[{inner}]"


_BOOL_TRUE = ("on", "true", "1", "yes")
_BOOL_FALSE = ("off", "false", "0", "no")


def parse_value(text: str) -> Any:
    """Parse a characteristic value typed at the prompt.

    JSON literals (true, 42, 2.5, "quoted text", null) are decoded; anything
    else is taken as a plain string.
    """
    try:
        return json.loads(text)
    except ValueError:
        return text


def parse_time(text: str) -> float:
    """Parse milliseconds since epoch or an ISO 8601 timestamp into ms."""
    try:
        return float(text)
    except ValueError:
        pass
    return datetime.fromisoformat(text).timestamp() * 1000


def _check_range(parsed: float, value: str, spec: ArgSpec) -> Optional[str]:
    if spec.min_value is not None and parsed < spec.min_value:
        return f"'{value}' is below minimum ({spec.min_value:g})"
    if spec.max_value is not None and parsed > spec.max_value:
        return f"'{value}' is above maximum ({spec.max_value:g})"
    return None


def parse_arg(value: str, spec: ArgSpec) -> tuple[Any, Optional[str]]:
    """Parse and validate an argument value.

    Returns:
        (parsed_value, error_message) - error_message is None on success
    """
    if spec.arg_type == "string":
        return value, None

    elif spec.arg_type == "int":
        try:
            parsed = int(value)
        except ValueError:
            return None, f"'{value}' is not a valid integer"
        error = _check_range(parsed, value, spec)
        return (None, error) if error else (parsed, None)

    elif spec.arg_type == "float":
        try:
            parsed = float(value)
        except ValueError:
            return None, f"'{value}' is not a valid number"
        error = _check_range(parsed, value, spec)
        return (None, error) if error else (parsed, None)

    elif spec.arg_type == "bool_toggle":
        v = value.lower()
        if v in _BOOL_TRUE:
            return True, None
        elif v in _BOOL_FALSE:
            return False, None
        return None, f"'{value}' is not valid. Use on/off"

    elif spec.arg_type == "choice":
        for c in spec.choices or []:
            if c.lower() == value.lower():
                return c, None
        choices_str = ", ".join(spec.choices) if spec.choices else "none"
        return None, f"'{value}' is not valid. Choose from: {choices_str}"

    elif spec.arg_type == "value":
        return parse_value(value), None

    elif spec.arg_type == "time":
        try:
            return parse_time(value), None
        except ValueError:
            return None, f"'{value}' is not a timestamp (ms since epoch or ISO 8601)"

    return value, None


@dataclass
class SubcommandInfo:
    """Metadata about a command or subcommand.

    Commands and subcommands share the same structure, allowing arbitrary nesting.
    """

    name: str
    aliases: list[str] = field(default_factory=list)
    description: str = ""
    usage: Optional[str] = None
    handler: Optional[Callable] = None
    args: list[ArgSpec] = field(default_factory=list)
    # Maps name and aliases to SubcommandInfo
    subcommands: dict[str, "SubcommandInfo"] = field(default_factory=dict)

    def generate_usage(self) -> str:
        """Generate usage string from args or subcommands."""
        if self.args:
            return " ".join(arg.generate_usage() for arg in self.args)
        elif self.subcommands:
            names = sorted(set(info.name for info in self.subcommands.values()))
            return "[" + "|".join(names) + "]" if names else ""
        return ""


@dataclass
class CommandInfo(SubcommandInfo):
    """Metadata about a top-level command."""

    category: str = "misc"
    interactive_only: bool = False  # Hidden and rejected outside the interactive prompt


# Registry of commands (populated by decorator)
_command_registry: dict[str, CommandInfo] = {}


def get_command_registry() -> dict[str, CommandInfo]:
    """Get the global command registry."""
    return _command_registry


def get_canonical_command(line: str) -> Optional[str]:
    """Get the canonical form of a command (replace aliases with full names).

    Resolves command aliases (ls -> list) and subcommand aliases at any
    depth (net down -> net disconnect).

    Returns the canonical command string if any alias was replaced,
    or None if no replacement is needed.
    """
    parts = line.split()
    if not parts or parts[0].lower() not in _command_registry:
        return None

    modified = False
    info: SubcommandInfo = _command_registry[parts[0].lower()]
    if info.name != parts[0]:
        parts[0] = info.name
        modified = True

    idx = 1
    while idx < len(parts) and info.subcommands:
        word = parts[idx].lower()
        if word not in info.subcommands:
            break
        info = info.subcommands[word]
        if info.name != parts[idx]:
            parts[idx] = info.name
            modified = True
        idx += 1

    return " ".join(parts) if modified else None


def command(
    name: str,
    aliases: Optional[list[str]] = None,
    description: str = "",
    usage: Optional[str] = None,
    category: str = "misc",
    args: Optional[list[ArgSpec]] = None,
    interactive_only: bool = False,
):
    """Decorator to register a method as a command.

    Args:
        name: Primary command name
        aliases: Alternative names/shortcuts for the command
        description: Help text for the command
        usage: Usage string - auto-generated from args if not provided
        category: Category for grouping in help output
        args: List of ArgSpec for argument parsing
        interactive_only: If True, command only works in interactive mode
    """

    def decorator(func: Callable) -> Callable:
        info = CommandInfo(
            name=name,
            aliases=aliases or [],
            description=description,
            usage=usage,
            category=category,
            handler=func,
            args=args or [],
            interactive_only=interactive_only,
        )
        if info.usage is None:
            info.usage = info.generate_usage() or None

        _command_registry[name] = info
        for alias in info.aliases:
            _command_registry[alias] = info

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return func(*args, **kwargs)

        wrapper._command_info = info
        return wrapper

    return decorator


def subcommand(
    parent: str,
    name: str,
    aliases: Optional[list[str]] = None,
    description: str = "",
    usage: Optional[str] = None,
    args: Optional[list[ArgSpec]] = None,
):
    """Decorator to register a method as a subcommand handler.

    The parent command must be registered (decorated) earlier in the same
    class body. Subcommands are attached when the CommandHandler is built.
    """

    def decorator(func: Callable) -> Callable:
        sub_info = SubcommandInfo(
            name=name,
            aliases=aliases or [],
            description=description,
            usage=usage,
            handler=func,
            args=args or [],
        )
        if sub_info.usage is None:
            sub_info.usage = sub_info.generate_usage() or None

        func._subcommand_info = sub_info
        func._parent = parent
        return func

    return decorator
