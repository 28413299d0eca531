# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Interactive console for exploring accessories under simulated conditions.

Loads accessories from JSON fixtures (or a demo lamp), then lets you read
and write characteristics while injecting latency, packet loss and
disconnects, and stepping the virtual clock.

Usage:
    haptest-console -f accessories.json
    haptest-console -c "net latency 200" -c "refresh"
"""

import asyncio
import logging
import sys
from typing import Optional

from prompt_toolkit.patch_stdout import patch_stdout

from ..fixtures import accessory_from_dict, load_accessories
from ..harness import HarnessOptions, TestHarness, TimeOptions
from ..network import NetworkSimulator
from .commands import CommandHandler
from .prompt_common import HISTORY_FILE, InteractiveSession

logger = logging.getLogger(__name__)

DEMO_ACCESSORY = {
    "displayName": "Desk Lamp",
    "services": [
        {
            "type": "Lightbulb",
            "displayName": "Light",
            "characteristics": [
                {
                    "type": "On",
                    "value": False,
                    "props": {"format": "bool", "perms": ["pr", "pw", "ev"]},
                },
                {
                    "type": "Brightness",
                    "value": 100,
                    "props": {
                        "format": "int",
                        "perms": ["pr", "pw", "ev"],
                        "minValue": 0,
                        "maxValue": 100,
                        "minStep": 1,
                        "unit": "percentage",
                    },
                },
            ],
        },
        {
            "type": "AccessoryInformation",
            "displayName": "Info",
            "characteristics": [
                {"type": "Manufacturer", "value": "haptest", "props": {"format": "string", "perms": ["pr"]}},
                {"type": "Identify", "value": None, "props": {"format": "bool", "perms": ["pw"]}},
            ],
        },
    ],
}


async def run_console(
    fixtures: Optional[list[str]] = None,
    history_file: Optional[str] = None,
    commands: Optional[list[str]] = None,
    seed: Optional[int] = None,
    real_time: bool = False,
) -> bool:
    """Run the console until exit/EOF, or run `commands` and return.

    Args:
        fixtures: JSON fixture files to load (a demo accessory when empty)
        history_file: History file path, "none" for in-memory
        commands: Commands to run non-interactively, in order
        seed: Seed for packet loss draws
        real_time: Use the wall clock instead of virtual time

    Returns:
        True if every batch command succeeded (always True interactively)
    """
    harness = await TestHarness.create(HarnessOptions(time=TimeOptions(use_fake_timers=not real_time)))
    harness.registry.set_network_simulator(NetworkSimulator(time_source=harness.time, seed=seed))

    if fixtures:
        for path in fixtures:
            for accessory in load_accessories(path):
                harness.registry.add_accessory(accessory)
    else:
        harness.registry.add_accessory(accessory_from_dict(DEMO_ACCESSORY))

    stop_event = asyncio.Event()
    cmd_handler = CommandHandler(harness, stop_event.set)
    all_success = True

    try:
        if commands:
            for line in commands:
                result = await cmd_handler.execute(line)
                if result.message:
                    print(f">>> {result.message}")
                if not result.success:
                    all_success = False
                    logger.error(f"Command failed: {line}")
                    break
                if stop_event.is_set():
                    break
            return all_success

        cmd_handler.set_interactive_mode(True)
        simulator = harness.registry.network_simulator
        session = InteractiveSession(
            cmd_handler,
            history_file if history_file else str(HISTORY_FILE),
            is_connected=lambda: not simulator.get_conditions().disconnected,
        )
        cmd_handler.set_history(session.history)

        with patch_stdout():
            # Reinstall logging on the patched stderr so log lines don't break the prompt
            root_logger = logging.getLogger()
            for handler in root_logger.handlers[:]:
                if isinstance(handler, logging.StreamHandler):
                    root_logger.removeHandler(handler)
            new_handler = logging.StreamHandler(sys.stderr)
            new_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
            root_logger.addHandler(new_handler)

            async for input_line in session.input_loop(stop_check=stop_event.is_set):
                result = await cmd_handler.execute(input_line.resolved)
                session.handle_result(input_line, result.success)
                if result.message:
                    print(session.format_output(input_line, result.message))
        return all_success
    finally:
        cmd_handler.close()
        harness.shutdown()


def main():
    """CLI entry point for the console."""
    import argparse

    parser = argparse.ArgumentParser(
        description="haptest console - drive simulated accessories by hand"
    )
    parser.add_argument(
        "--fixture", "-f",
        action="append",
        dest="fixtures",
        metavar="FILE",
        help="JSON accessory fixture to load. Can be specified multiple times. "
             "A demo lamp is loaded when omitted."
    )
    parser.add_argument(
        "--command", "-c",
        action="append",
        dest="commands",
        metavar="COMMAND",
        help="Run a command and exit. Can be specified multiple times; "
             "stops at the first failure."
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--history",
        metavar="FILE",
        default=str(HISTORY_FILE),
        help=f"History file path, or 'none' to disable (default: {HISTORY_FILE})"
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed for packet loss (default: random)"
    )
    parser.add_argument(
        "--real-time",
        action="store_true",
        help="Use the wall clock instead of virtual time"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        success = asyncio.run(
            run_console(
                fixtures=args.fixtures,
                history_file=args.history,
                commands=args.commands,
                seed=args.seed,
                real_time=args.real_time,
            )
        )
    except KeyboardInterrupt:
        success = True
    sys.exit(0 if success else 1)
