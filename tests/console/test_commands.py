# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for console commands."""
from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from haptest import Characteristic, NetworkSimulator
from haptest.console import CommandHandler, CommandResult, run_console
from haptest.console.commands import History, get_canonical_command
from haptest.platform import generate_uuid

from ..helpers import LAMP_UUID, START_TIME_MS, make_lamp


# ============================================================================
# Test Fixtures
# ============================================================================

@pytest.fixture
def console_lamp(harness):
    """A lamp registered with the harness."""
    lamp = make_lamp()
    harness.registry.add_accessory(lamp)
    return lamp


@pytest.fixture
def command_handler(harness, console_lamp):
    """Create a command handler for the harness."""
    handler = CommandHandler(harness, stop_callback=MagicMock())
    yield handler
    handler.close()


# ============================================================================
# Accessory Command Tests
# ============================================================================

class TestListCommand:
    """Tests for the list command."""

    @pytest.mark.asyncio
    async def test_list_all(self, command_handler):
        """list with no args should show every accessory."""
        result = await command_handler.execute("list")
        assert result.success is True
        assert "Accessories (1):" in result.message
        assert LAMP_UUID in result.message
        assert result.data == {"accessories": [LAMP_UUID]}

    @pytest.mark.asyncio
    async def test_list_one_shows_tree(self, command_handler):
        """list <accessory> should show services and characteristics."""
        result = await command_handler.execute("ls LAMP-0001")
        assert result.success is True
        assert "Light (Lightbulb)" in result.message
        assert "Brightness (Brightness) = 50" in result.message
        assert "[pr]" in result.message

    @pytest.mark.asyncio
    async def test_list_by_display_name(self, harness, command_handler):
        """Accessories can be named by display name, case-insensitively."""
        harness.registry.add_accessory(make_lamp("PORCH-1", "Porch"))
        result = await command_handler.execute("list porch")
        assert result.success is True
        assert "Porch (PORCH-1)" in result.message

    @pytest.mark.asyncio
    async def test_list_unknown(self, command_handler):
        """Unknown accessories should fail."""
        result = await command_handler.execute("list nope")
        assert result.success is False
        assert "No accessory: nope" in result.message

    @pytest.mark.asyncio
    async def test_list_empty(self, harness):
        """An empty registry says so."""
        handler = CommandHandler(harness, stop_callback=MagicMock())
        result = await handler.execute("list")
        assert result.success is True
        assert "No accessories" in result.message


class TestGetSetCommands:
    """Tests for characteristic reads and writes."""

    @pytest.mark.asyncio
    async def test_get(self, command_handler):
        """get should read the current value."""
        result = await command_handler.execute("get LAMP-0001 Lightbulb Brightness")
        assert result.success is True
        assert result.message == "Brightness = 50"
        assert result.data == {"value": 50}

    @pytest.mark.asyncio
    async def test_get_missing_service(self, command_handler):
        """get should name the missing part of the path."""
        result = await command_handler.execute("g LAMP-0001 Fan On")
        assert result.success is False
        assert "No service Fan" in result.message

    @pytest.mark.asyncio
    async def test_get_write_only(self, command_handler):
        """Reading a write-only characteristic reports the permission error."""
        result = await command_handler.execute("get LAMP-0001 Info Identify")
        assert result.success is False
        assert result.message.startswith("Error:")

    @pytest.mark.asyncio
    async def test_set(self, command_handler, console_lamp):
        """set should write a JSON value."""
        result = await command_handler.execute("set LAMP-0001 Light Brightness 75")
        assert result.success is True
        assert result.data == {"old_value": 50, "new_value": 75}
        assert console_lamp.get_service("Lightbulb").get_characteristic("Brightness").value == 75

    @pytest.mark.asyncio
    async def test_set_bool(self, command_handler, console_lamp):
        """true/false are decoded as booleans."""
        result = await command_handler.execute("s LAMP-0001 Light On true")
        assert result.success is True
        assert console_lamp.get_service("Lightbulb").get_characteristic("On").value is True

    @pytest.mark.asyncio
    async def test_set_out_of_range(self, command_handler, console_lamp):
        """Invalid writes fail and leave the value unchanged."""
        result = await command_handler.execute("set LAMP-0001 Light Brightness 150")
        assert result.success is False
        assert "Characteristic validation failed" in result.message
        assert console_lamp.get_service("Lightbulb").get_characteristic("Brightness").value == 50

    @pytest.mark.asyncio
    async def test_set_value_with_spaces(self, command_handler, console_lamp):
        """The value soaks up the rest of the line."""
        console_lamp.get_service("Info").add_characteristic(
            Characteristic("Name", "Name", "Lamp", {"format": "string", "perms": ["pr", "pw"]})
        )
        result = await command_handler.execute("set LAMP-0001 Info Name Reading Lamp")
        assert result.success is True
        assert console_lamp.get_service("Info").get_characteristic("Name").value == "Reading Lamp"

    @pytest.mark.asyncio
    async def test_quoted_arguments_keep_spaces(self, command_handler, console_lamp):
        """Quoted display names and values keep their inner spaces."""
        console_lamp.get_service("Info").add_characteristic(
            Characteristic("Name", "Name", "Lamp", {"format": "string", "perms": ["pr", "pw"]})
        )
        result = await command_handler.execute('get "Desk Lamp" Light Brightness')
        assert result.success is True
        assert result.data == {"value": 50}

        result = await command_handler.execute('set "desk lamp" Info Name "Reading   Lamp"')
        assert result.success is True
        assert console_lamp.get_service("Info").get_characteristic("Name").value == "Reading   Lamp"

    @pytest.mark.asyncio
    async def test_unbalanced_quote(self, command_handler):
        """An unterminated quote is reported, not raised."""
        result = await command_handler.execute('get "Desk Lamp Light Brightness')
        assert result.success is False
        assert "Could not parse command" in result.message

    @pytest.mark.asyncio
    async def test_set_missing_value(self, command_handler):
        """set without a value shows usage."""
        result = await command_handler.execute("set LAMP-0001 Light Brightness")
        assert result.success is False
        assert "Missing required argument: value" in result.message

    @pytest.mark.asyncio
    async def test_get_completes_under_latency(self, harness, command_handler):
        """Reads under latency complete by advancing the virtual clock."""
        simulator = NetworkSimulator(time_source=harness.time)
        simulator.set_latency(250)
        harness.registry.set_network_simulator(simulator)

        result = await command_handler.execute("get LAMP-0001 Lightbulb On")
        assert result.success is True
        assert harness.time.now() == START_TIME_MS + 250

    @pytest.mark.asyncio
    async def test_refresh_under_latency(self, harness, command_handler):
        """refresh advances the clock once per read."""
        simulator = NetworkSimulator(time_source=harness.time)
        simulator.set_latency(10)
        harness.registry.set_network_simulator(simulator)

        result = await command_handler.execute("refresh")
        assert result.success is True
        # On, Brightness, Hue, Manufacturer
        assert len(result.data["values"]) == 4
        assert harness.time.now() == START_TIME_MS + 40


class TestEventCommands:
    """Tests for events, watch and pair."""

    @pytest.mark.asyncio
    async def test_events_empty(self, command_handler):
        """events with no history says so."""
        result = await command_handler.execute("events")
        assert result.success is True
        assert result.message == "No events yet"

    @pytest.mark.asyncio
    async def test_events_shows_latest(self, command_handler):
        """events N shows the last N changes."""
        await command_handler.execute("set LAMP-0001 Light Brightness 10")
        await command_handler.execute("set LAMP-0001 Light Brightness 20")
        await command_handler.execute("set LAMP-0001 Light Brightness 30")

        result = await command_handler.execute("ev 2")
        assert result.success is True
        assert "Events (2 of 3):" in result.message
        assert [e["newValue"] for e in result.data["events"]] == [20, 30]

    @pytest.mark.asyncio
    async def test_events_count_validated(self, command_handler):
        """The count must be at least 1."""
        result = await command_handler.execute("events 0")
        assert result.success is False
        assert "below minimum" in result.message

    @pytest.mark.asyncio
    async def test_watch_logs_changes(self, command_handler, caplog):
        """watch on logs every change until turned off."""
        result = await command_handler.execute("watch on")
        assert result.success is True
        assert (await command_handler.execute("watch")).message == "Watch: on"

        with caplog.at_level(logging.INFO, logger="haptest.console"):
            await command_handler.execute("set LAMP-0001 Light On true")
        assert "Lightbulb.On: False -> True" in caplog.text

        await command_handler.execute("watch off")
        caplog.clear()
        with caplog.at_level(logging.INFO, logger="haptest.console"):
            await command_handler.execute("set LAMP-0001 Light On false")
        assert "Lightbulb.On" not in caplog.text

    @pytest.mark.asyncio
    async def test_pair(self, harness, command_handler):
        """pair off/on toggles the controller pairing."""
        result = await command_handler.execute("pair off")
        assert result.data == {"paired": False}
        assert not harness.registry.is_paired()

        result = await command_handler.execute("pair")
        assert "unpaired" in result.message

        await command_handler.execute("pair on")
        assert harness.registry.is_paired()


# ============================================================================
# Network and Time Command Tests
# ============================================================================

class TestNetCommand:
    """Tests for the net command family."""

    @pytest.mark.asyncio
    async def test_net_installs_simulator(self, harness, command_handler):
        """net with no args shows status and installs a simulator."""
        assert harness.registry.network_simulator is None
        result = await command_handler.execute("net")
        assert result.success is True
        assert "Network:" in result.message
        assert harness.registry.network_simulator is not None

    @pytest.mark.asyncio
    async def test_net_latency_and_loss(self, harness, command_handler):
        """latency and loss change the conditions."""
        assert (await command_handler.execute("net latency 150")).success
        assert (await command_handler.execute("net loss 0.5")).success
        result = await command_handler.execute("net status")
        assert result.data == {"latency_ms": 150, "packet_loss_rate": 0.5, "disconnected": False}

    @pytest.mark.asyncio
    async def test_net_loss_out_of_range(self, command_handler):
        """Loss rates above 1 are rejected by argument parsing."""
        result = await command_handler.execute("net loss 2")
        assert result.success is False
        assert "above maximum" in result.message

    @pytest.mark.asyncio
    async def test_net_disconnect_fails_reads(self, command_handler):
        """Reads fail while disconnected and work after reconnecting."""
        await command_handler.execute("net down")
        result = await command_handler.execute("get LAMP-0001 Lightbulb On")
        assert result.success is False
        assert "disconnected" in result.message.lower()

        await command_handler.execute("net up")
        result = await command_handler.execute("get LAMP-0001 Lightbulb On")
        assert result.success is True

    @pytest.mark.asyncio
    async def test_net_reset(self, harness, command_handler):
        """reset clears every condition."""
        await command_handler.execute("net latency 10")
        await command_handler.execute("net disconnect")
        await command_handler.execute("net reset")
        conditions = harness.registry.network_simulator.get_conditions()
        assert conditions.latency_ms == 0
        assert conditions.disconnected is False

    @pytest.mark.asyncio
    async def test_net_unknown_subcommand(self, command_handler):
        """Unknown subcommands list the available ones."""
        result = await command_handler.execute("net jitter 5")
        assert result.success is False
        assert "Available:" in result.message
        assert "latency" in result.message


class TestTimeCommand:
    """Tests for the time command family."""

    @pytest.mark.asyncio
    async def test_time_now(self, command_handler):
        """time shows virtual time and pending timers."""
        result = await command_handler.execute("time")
        assert result.success is True
        assert result.data["now"] == START_TIME_MS
        assert result.data["mode"] == "virtual"

    @pytest.mark.asyncio
    async def test_time_advance_fires_timers(self, harness, command_handler):
        """advance moves the clock and fires due timers."""
        fired = []
        harness.time.call_later(500, fired.append, "x")
        result = await command_handler.execute("time + 500")
        assert result.success is True
        assert fired == ["x"]
        assert harness.time.now() == START_TIME_MS + 500

    @pytest.mark.asyncio
    async def test_time_set_iso(self, harness, command_handler):
        """set accepts ISO 8601 timestamps."""
        result = await command_handler.execute("time set 2024-01-01T00:00:00+00:00")
        assert result.success is True
        assert harness.time.now() == 1_704_067_200_000

    @pytest.mark.asyncio
    async def test_time_set_invalid(self, command_handler):
        """Unparseable timestamps are rejected."""
        result = await command_handler.execute("time set yesterday")
        assert result.success is False
        assert "not a timestamp" in result.message

    @pytest.mark.asyncio
    async def test_time_freeze(self, harness, command_handler):
        """freeze reports frozen mode."""
        await command_handler.execute("time freeze")
        result = await command_handler.execute("time now")
        assert result.data["mode"] == "frozen"


# ============================================================================
# Info and Control Command Tests
# ============================================================================

class TestInfoCommands:
    """Tests for status, help and dispatch errors."""

    @pytest.mark.asyncio
    async def test_status(self, command_handler):
        """status summarizes the harness."""
        result = await command_handler.execute("status")
        assert result.success is True
        assert "Harness State:" in result.message
        assert result.data["accessories"] == 1
        assert result.data["characteristics"] == 5
        assert result.data["paired"] is True

    @pytest.mark.asyncio
    async def test_help(self, command_handler):
        """help lists commands by category."""
        result = await command_handler.execute("help")
        assert result.success is True
        for heading in ("Accessories:", "Network:", "Time:", "Info:", "Control:"):
            assert heading in result.message

    @pytest.mark.asyncio
    async def test_subcommand_help(self, command_handler):
        """'net help' lists the net subcommands."""
        result = await command_handler.execute("net help")
        assert result.success is True
        assert "net subcommands:" in result.message
        assert "disconnect (down)" in result.message

    @pytest.mark.asyncio
    async def test_arg_help(self, command_handler):
        """'set ?' explains the arguments."""
        result = await command_handler.execute("set ?")
        assert result.success is True
        assert "Arguments:" in result.message
        assert "characteristic:" in result.message

    @pytest.mark.asyncio
    async def test_unknown_command(self, command_handler):
        """Unknown commands fail with a hint."""
        result = await command_handler.execute("frobnicate")
        assert result.success is False
        assert "Unknown command: frobnicate" in result.message

    @pytest.mark.asyncio
    async def test_empty_command(self, command_handler):
        """Empty input is rejected."""
        result = await command_handler.execute("")
        assert result.success is False

    @pytest.mark.asyncio
    async def test_extra_arguments(self, command_handler):
        """Commands without arguments reject extra words."""
        result = await command_handler.execute("refresh now")
        assert result.success is False
        assert "takes no arguments" in result.message


class TestInteractiveOnlyCommands:
    """Tests for commands only available at the prompt."""

    @pytest.mark.asyncio
    async def test_history_rejected_when_not_interactive(self, command_handler):
        """history should be unknown outside interactive mode."""
        result = await command_handler.execute("history")
        assert result.success is False
        assert "Unknown command" in result.message

    @pytest.mark.asyncio
    async def test_help_hides_interactive_commands(self, command_handler):
        """help should not list interactive-only commands in batch mode."""
        result = await command_handler.execute("help")
        assert "history" not in result.message
        command_handler.set_interactive_mode(True)
        result = await command_handler.execute("help")
        assert "history" in result.message

    @pytest.mark.asyncio
    async def test_history_in_interactive_mode(self, command_handler):
        """history shows entries from the attached History."""
        history = History()
        history.append("net latency 5")
        history.append("refresh")
        command_handler.set_history(history)
        command_handler.set_interactive_mode(True)

        result = await command_handler.execute("history 1")
        assert result.success is True
        assert "refresh" in result.message
        assert "net latency" not in result.message

        result = await command_handler.execute("hist clear")
        assert result.success is True
        assert history.get_entries() == []

    @pytest.mark.asyncio
    async def test_history_invalid_argument(self, command_handler):
        """history rejects arguments that are neither a number nor clear."""
        command_handler.set_history(History())
        command_handler.set_interactive_mode(True)
        result = await command_handler.execute("history lots")
        assert result.success is False


class TestControlCommands:
    """Tests for exit and debug."""

    @pytest.mark.asyncio
    async def test_exit_calls_stop(self, command_handler):
        """exit should call the stop callback."""
        result = await command_handler.execute("q")
        assert result.success is True
        command_handler.stop_callback.assert_called_once()

    @pytest.mark.asyncio
    async def test_debug_toggle(self, command_handler):
        """debug on/off sets the package log level."""
        package_logger = logging.getLogger("haptest")
        previous = package_logger.level
        try:
            await command_handler.execute("debug on")
            assert (await command_handler.execute("debug")).message == "Debug logging: on"
            await command_handler.execute("debug off")
            assert (await command_handler.execute("debug")).message == "Debug logging: off"
        finally:
            package_logger.setLevel(previous)


# ============================================================================
# History Tests
# ============================================================================

class TestHistory:
    """Tests for history recall and canonical command names."""

    def test_recall_last(self):
        """!! recalls the previous command."""
        history = History()
        history.append("net latency 5")
        history.append("!!")
        assert history.resolve_recall("!!") == ("net latency 5", "!! -> net latency 5")

    def test_recall_by_position(self):
        """!n and !-n index from the start and the end."""
        history = History()
        for line in ("list", "refresh", "status"):
            history.append(line)
        assert history.resolve_recall("!1")[0] == "list"
        assert history.resolve_recall("!-2")[0] == "refresh"

    def test_recall_out_of_range(self):
        """Positions past the end are errors."""
        history = History()
        history.append("list")
        assert history.resolve_recall("!5") == (None, "Only 1 commands in history")
        assert history.resolve_recall("!0") == (None, "History positions start at 1")

    def test_not_a_recall(self):
        """Ordinary commands are left alone."""
        assert History().resolve_recall("list") is None

    def test_replace_and_remove(self):
        """The last entry can be replaced or dropped."""
        history = History()
        history.append("list")
        history.append("ls")
        assert history.replace_last_entry("list LAMP")
        assert history.get_entries() == ["list", "list LAMP"]
        assert history.remove_last_entry()
        assert history.get_entries() == ["list"]

    def test_file_history_persists(self, tmp_path):
        """File-backed history rewrites the file after edits."""
        path = tmp_path / "history"
        history = History(path)
        history.append("list")
        history.append("bogus")
        history.remove_last_entry()
        assert "+list" in path.read_text()
        assert "+bogus" not in path.read_text()

    def test_canonical_command(self):
        """Aliases are expanded at every level."""
        assert get_canonical_command("net down") == "net disconnect"
        assert get_canonical_command("clock + 10") == "time advance 10"
        assert get_canonical_command("net disconnect") is None
        assert get_canonical_command("frobnicate") is None


# ============================================================================
# Batch Mode Tests
# ============================================================================

class TestRunConsole:
    """Tests for run_console in batch mode."""

    @pytest.mark.asyncio
    async def test_batch_commands(self, capsys):
        """Batch commands run against the demo lamp."""
        uuid = generate_uuid("Desk Lamp")
        success = await run_console(
            commands=[f"set {uuid} Lightbulb Brightness 40", f"get {uuid} Lightbulb Brightness"],
            seed=1,
        )
        assert success is True
        out = capsys.readouterr().out
        assert ">>> Brightness = 40" in out

    @pytest.mark.asyncio
    async def test_batch_stops_at_failure(self, capsys):
        """The first failing command ends the batch."""
        success = await run_console(commands=["net down", "refresh", "bogus", "status"])
        assert success is False
        out = capsys.readouterr().out
        assert "Unknown command: bogus" in out
        assert "Harness State" not in out

    @pytest.mark.asyncio
    async def test_batch_fixture(self, tmp_path, capsys):
        """Fixtures replace the demo accessory."""
        path = tmp_path / "fixture.json"
        path.write_text(
            '[{"uuid": "FAN-1", "displayName": "Fan", "services": []}]'
        )
        assert await run_console(fixtures=[str(path)], commands=["list"])
        out = capsys.readouterr().out
        assert "FAN-1" in out
        assert "Desk Lamp" not in out


class TestCommandResult:
    """Tests for CommandResult defaults."""

    def test_data_defaults_to_none(self):
        """data is optional."""
        assert CommandResult(True, "ok").data is None
