# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Pytest configuration and fixtures for haptest tests."""
from __future__ import annotations

from typing import Callable

import pytest

from haptest import Accessory, AccessoryRegistry, HarnessOptions, NetworkSimulator, TestHarness, TimeController

from .helpers import START_TIME_MS, make_lamp


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def time_controller() -> TimeController:
    """Virtual clock in fake-timer mode."""
    controller = TimeController(initial_time=START_TIME_MS)
    yield controller
    controller.reset()


@pytest.fixture
def registry(time_controller) -> AccessoryRegistry:
    """Registry on the virtual clock."""
    return AccessoryRegistry(time_source=time_controller)


@pytest.fixture
def lamp(registry) -> Accessory:
    """A lamp registered with the registry."""
    accessory = make_lamp()
    registry.add_accessory(accessory)
    return accessory


@pytest.fixture
def network(registry, time_controller) -> NetworkSimulator:
    """Seeded network simulator attached to the registry."""
    simulator = NetworkSimulator(time_source=time_controller, seed=1234)
    registry.set_network_simulator(simulator)
    return simulator


@pytest.fixture
async def harness() -> TestHarness:
    """A harness without a platform, on virtual time."""
    h = await TestHarness.create(HarnessOptions())
    h.time.set_time(START_TIME_MS)
    yield h
    h.shutdown()


@pytest.fixture
def callback_tracker() -> dict[str, list]:
    """Track callback invocations by name."""
    return {}


@pytest.fixture
def make_callback(callback_tracker):
    """Factory for recording callbacks."""
    def factory(name: str = "callback") -> Callable[..., None]:
        def callback(*args, **kwargs):
            callback_tracker.setdefault(name, []).append((args, kwargs))
        return callback
    return factory
