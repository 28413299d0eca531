# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Exception hierarchy for the accessory protocol simulator.

Every failure surfaces to the caller as a subclass of HapTestError and
carries enough identity (characteristic type, operation, violated
constraint) to diagnose a failing test without extra logging.
"""
from __future__ import annotations

import json
from enum import Enum
from typing import Any, Optional


class HapTestError(Exception):
    """Base class for all simulator errors."""


# ============================================================================
# Protocol validation
# ============================================================================

def _describe_value(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"<{len(value)} bytes>"
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)


class CharacteristicValidationError(HapTestError):
    """A characteristic value or operation failed protocol validation.

    Attributes:
        characteristic_type: Type of the characteristic that failed
        value: The value that was read or written (None for permission checks)
        constraint: Human-readable description of the violated rule
        context: Optional extra details (bounds, valid values, ...)
    """

    def __init__(
        self,
        characteristic_type: str,
        value: Any,
        constraint: str,
        context: Optional[dict] = None,
    ):
        self.characteristic_type = characteristic_type
        self.value = value
        self.constraint = constraint
        self.context = context
        self.suggestions = self._suggestions()

        lines = [
            f'Characteristic validation failed for "{characteristic_type}"',
            "",
            f"Constraint: {constraint}",
            f"Attempted value: {_describe_value(value)}",
        ]
        if context:
            lines.append(f"Context: {_describe_value(context)}")
        if self.suggestions:
            lines.append("")
            lines.append("Suggestions:")
            lines.extend(f"  - {s}" for s in self.suggestions)
        super().__init__("\n".join(lines))

    def _suggestions(self) -> list[str]:
        return []


class PermissionDeniedError(CharacteristicValidationError):
    """The characteristic does not grant the permission an operation needs."""

    def __init__(self, characteristic_type: str, operation: str, required_perm: str, value: Any = None):
        self.operation = operation
        self.required_perm = required_perm
        super().__init__(
            characteristic_type,
            value,
            f"Permission denied for {operation}: '{required_perm}' permission required",
            {"operation": operation, "required": required_perm},
        )

    def _suggestions(self) -> list[str]:
        return [f'Ensure the characteristic has "{self.required_perm}" permission in its props']


class FormatMismatchError(CharacteristicValidationError):
    """The value's type does not match the characteristic format."""

    def __init__(self, characteristic_type: str, value: Any, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(
            characteristic_type,
            value,
            f"Invalid format: expected {expected}, got {actual}",
            {"expected": expected, "actual": actual},
        )

    def _suggestions(self) -> list[str]:
        return [
            "Verify the value type matches the characteristic format "
            "(bool, int, float, uint8-64, string, data, tlv8)"
        ]


class NotInEnumerationError(CharacteristicValidationError):
    """The value is not one of the characteristic's valid values."""

    def __init__(self, characteristic_type: str, value: Any, valid_values: list):
        self.valid_values = list(valid_values)
        allowed = ", ".join(str(v) for v in self.valid_values)
        super().__init__(
            characteristic_type,
            value,
            f"Value {value} not in valid values: {allowed}",
            {"validValues": self.valid_values},
        )

    def _suggestions(self) -> list[str]:
        return [f"Valid values are: {_describe_value(self.valid_values)}"]


class OutOfRangeError(CharacteristicValidationError):
    """A numeric value is below minValue or above maxValue."""

    def __init__(self, characteristic_type: str, value: Any, bound: str, limit: float, context: Optional[dict] = None):
        self.bound = bound
        self.limit = limit
        relation = "less than minimum" if bound == "min" else "greater than maximum"
        super().__init__(
            characteristic_type,
            value,
            f"Value {value} is {relation} {limit}",
            context,
        )

    def _suggestions(self) -> list[str]:
        context = self.context or {}
        if context.get("minValue") is not None and context.get("maxValue") is not None:
            return [f"Value must be between {context['minValue']} and {context['maxValue']}"]
        return ["Check the minValue and maxValue properties of the characteristic"]


class StepMisalignedError(CharacteristicValidationError):
    """A numeric value is not a whole number of steps above minValue."""

    def __init__(self, characteristic_type: str, value: Any, step: float, min_value: float):
        self.step = step
        self.min_value = min_value
        super().__init__(
            characteristic_type,
            value,
            f"Value {value} does not align with step {step} (from {min_value})",
            {"minStep": step, "minValue": min_value},
        )


# ============================================================================
# Network simulation
# ============================================================================

class NetworkErrorType(str, Enum):
    """Kinds of network failure."""

    DISCONNECTED = "disconnected"
    PACKET_LOSS = "packet-loss"
    CONNECTION_REFUSED = "connection-refused"
    TIMEOUT = "timeout"
    CONNECTION_RESET = "connection-reset"
    DNS_FAILURE = "dns-failure"
    NETWORK_UNREACHABLE = "network-unreachable"
    SSL_ERROR = "ssl-error"


class NetworkError(HapTestError):
    """A (simulated) network failure."""

    def __init__(self, error_type: NetworkErrorType, message: Optional[str] = None, context: Any = None):
        self.error_type = error_type
        self.context = context
        super().__init__(message or f"Network error: {error_type.value}")


class DisconnectedError(NetworkError):
    """The network link is disconnected."""

    def __init__(self, message: str = "Network disconnected", context: Any = None):
        super().__init__(NetworkErrorType.DISCONNECTED, message, context)


class PacketLossError(NetworkError):
    """The request was dropped."""

    def __init__(self, message: str = "Packet lost", context: Any = None):
        super().__init__(NetworkErrorType.PACKET_LOSS, message, context)


# ============================================================================
# Timeouts and subscriptions
# ============================================================================

class HomeKitTimeoutError(HapTestError, TimeoutError):
    """An operation did not complete within its timeout."""

    def __init__(self, operation: str, timeout_ms: float, context: Any = None):
        self.operation = operation
        self.timeout_ms = timeout_ms
        self.context = context
        super().__init__(f'HomeKit operation "{operation}" timed out after {timeout_ms}ms')


class SubscriptionError(HapTestError):
    """Base class for event subscription failures."""


class SubscriptionTimeoutError(SubscriptionError, HomeKitTimeoutError):
    """No event arrived before the wait timed out."""

    def __init__(self, timeout_ms: float, characteristic_type: Optional[str] = None):
        self.characteristic_type = characteristic_type
        HomeKitTimeoutError.__init__(
            self,
            "waitForNext",
            timeout_ms,
            {"characteristic": characteristic_type} if characteristic_type else None,
        )


class SubscriptionCancelledError(SubscriptionError):
    """The subscription was cancelled while a wait was pending."""

    def __init__(self, message: str = "Subscription cancelled"):
        super().__init__(message)


class SubscriptionInactiveError(SubscriptionError):
    """The subscription has already been unsubscribed."""

    def __init__(self, message: str = "Subscription is inactive"):
        super().__init__(message)


class SubscriptionBusyError(SubscriptionError):
    """A wait is already pending on this subscription."""

    def __init__(self, message: str = "A wait is already pending on this subscription"):
        super().__init__(message)


# ============================================================================
# Configuration and lookup
# ============================================================================

class InvalidConfigurationError(HapTestError, ValueError):
    """An argument or option is out of range."""


class NotFoundError(HapTestError, LookupError):
    """An accessory, service or characteristic could not be found."""
