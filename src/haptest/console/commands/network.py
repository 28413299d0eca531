# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Network fault injection commands."""

from typing import TYPE_CHECKING

from ...network import NetworkSimulator
from .base import ArgSpec, CommandResult, command, subcommand

if TYPE_CHECKING:
    from ...harness import TestHarness


class NetworkCommandsMixin:
    """Mixin providing the `net` command family."""

    harness: "TestHarness"

    def _network(self) -> NetworkSimulator:
        """The registry's simulator, installed on first use."""
        simulator = self.harness.registry.network_simulator
        if simulator is None:
            simulator = NetworkSimulator(time_source=self.harness.time)
            self.harness.registry.set_network_simulator(simulator)
        return simulator

    @command("net", ["network"], "Show or change simulated network conditions", category="network")
    def net(self) -> CommandResult:
        """Show network conditions (default action)."""
        return self.net_status()

    @subcommand("net", "status", ["st"], "Show current conditions")
    def net_status(self) -> CommandResult:
        c = self._network().get_conditions()
        lines = [
            "Network:",
            f"  Link: {'DOWN' if c.disconnected else 'up'}",
            f"  Latency: {c.latency_ms:g}ms",
            f"  Packet loss: {c.packet_loss_rate:.0%}",
        ]
        data = {
            "latency_ms": c.latency_ms,
            "packet_loss_rate": c.packet_loss_rate,
            "disconnected": c.disconnected,
        }
        return CommandResult(True, "\n".join(lines), data)

    @subcommand(
        "net",
        "latency",
        ["lat"],
        "Delay every read and write",
        args=[ArgSpec("ms", "float", min_value=0, description="Latency in milliseconds")],
    )
    def net_latency(self, ms: float) -> CommandResult:
        self._network().set_latency(ms)
        return CommandResult(True, f"Latency set to {ms:g}ms")

    @subcommand(
        "net",
        "loss",
        [],
        "Drop a fraction of reads and writes",
        args=[ArgSpec("rate", "float", min_value=0, max_value=1, description="Loss probability (0-1)")],
    )
    def net_loss(self, rate: float) -> CommandResult:
        self._network().set_packet_loss(rate)
        return CommandResult(True, f"Packet loss set to {rate:.0%}")

    @subcommand("net", "disconnect", ["down"], "Fail every read and write")
    def net_disconnect(self) -> CommandResult:
        self._network().disconnect()
        return CommandResult(True, "Network disconnected")

    @subcommand("net", "reconnect", ["up"], "Restore the link")
    def net_reconnect(self) -> CommandResult:
        self._network().reconnect()
        return CommandResult(True, "Network reconnected")

    @subcommand("net", "reset", [], "Clear latency, loss and disconnect")
    def net_reset(self) -> CommandResult:
        self._network().reset()
        return CommandResult(True, "Network conditions reset")
