# Copyright (c) 2025 Preston Elder
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Protocol validation for characteristic values.

Pure functions, composed by the characteristic read/write path in a fixed
order: permission, then format, then constraints.

- Permissions: read -> "pr", write -> "pw", notify -> "ev". Missing
  permission metadata (None) grants everything.
- Formats: bool, int, float, uint8-64, string, data/tlv8 (bytes or str).
  Unrecognized formats always pass.
- Constraints: validValues membership, then minValue/maxValue and minStep
  for numeric values only.
"""
from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any, Iterable, Optional

from .const import (
    BUFFER_FORMATS,
    OPERATION_PERMS,
    PERM_ALIASES,
    STEP_TOLERANCE,
    UNSIGNED_FORMATS,
    Format,
    Perm,
)
from .errors import (
    FormatMismatchError,
    NotInEnumerationError,
    OutOfRangeError,
    PermissionDeniedError,
    StepMisalignedError,
)

if TYPE_CHECKING:
    from .accessory import CharacteristicProps

logger = logging.getLogger(__name__)

_BUFFER_TYPES = (bytes, bytearray, memoryview)


def is_number(value: Any) -> bool:
    """Return True for int/float values (bool is not a number here)."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integral(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()


def normalize_perm(perm: Any) -> Optional[Perm]:
    """Map a permission spelling ("pr", "readable", Perm.READ, ...) to a Perm."""
    if isinstance(perm, Perm):
        return perm
    text = str(perm).lower()
    try:
        return Perm(text)
    except ValueError:
        return PERM_ALIASES.get(text)


def has_permission(operation: str, perms: Optional[Iterable[Any]]) -> bool:
    """Check whether `perms` grants `operation` ("read", "write" or "notify")."""
    if perms is None:
        return True
    required = OPERATION_PERMS[operation]
    return any(normalize_perm(p) is required for p in perms)


def check_permission(
    operation: str,
    perms: Optional[Iterable[Any]],
    characteristic_type: str = "",
    value: Any = None,
) -> None:
    """Raise PermissionDeniedError unless `perms` grants `operation`."""
    if operation not in OPERATION_PERMS:
        raise ValueError(f"Unknown operation: {operation}")
    if not has_permission(operation, perms):
        raise PermissionDeniedError(
            characteristic_type, operation, OPERATION_PERMS[operation].value, value
        )


def format_name(fmt: Any) -> str:
    """Return the protocol spelling of a format ("uint8", "bool", ...)."""
    if isinstance(fmt, Format):
        return fmt.value
    return str(fmt).lower()


def matches_format(value: Any, fmt: Any) -> bool:
    """Return True if `value` satisfies the characteristic format `fmt`."""
    try:
        kind = Format(format_name(fmt))
    except ValueError:
        return True

    if kind is Format.BOOL:
        return isinstance(value, bool)
    if kind is Format.INT:
        return _is_integral(value)
    if kind is Format.FLOAT:
        return is_number(value)
    if kind in UNSIGNED_FORMATS:
        return _is_integral(value) and value >= 0
    if kind is Format.STRING:
        return isinstance(value, str)
    if kind in BUFFER_FORMATS:
        return isinstance(value, _BUFFER_TYPES) or isinstance(value, str)
    return True


def check_format(value: Any, fmt: Any, characteristic_type: str = "") -> None:
    """Raise FormatMismatchError if `value` does not satisfy `fmt`."""
    if not matches_format(value, fmt):
        raise FormatMismatchError(characteristic_type, value, format_name(fmt), type(value).__name__)


def _is_exact_member(value: Any, valid_values: Iterable[Any]) -> bool:
    # True == 1 in Python; enumerations are matched on type as well as value
    for candidate in valid_values:
        if isinstance(candidate, bool) != isinstance(value, bool):
            continue
        if candidate == value:
            return True
    return False


def is_step_aligned(value: float, step: float, min_value: float = 0) -> bool:
    """Return True if `value` is a whole number of `step`s above `min_value`."""
    offset = value - min_value
    if isinstance(offset, int) and isinstance(step, int):
        return offset % step == 0
    quotient = offset / step
    if not math.isfinite(quotient):
        return False
    return math.isclose(quotient, round(quotient), rel_tol=STEP_TOLERANCE, abs_tol=STEP_TOLERANCE)


def check_constraints(value: Any, props: "CharacteristicProps", characteristic_type: str = "") -> None:
    """Raise if `value` violates validValues, minValue/maxValue or minStep."""
    if props.valid_values is not None and not _is_exact_member(value, props.valid_values):
        raise NotInEnumerationError(characteristic_type, value, props.valid_values)

    # Non-numeric values skip numeric checks even when bounds are set
    if not is_number(value):
        return

    bounds = {"minValue": props.min_value, "maxValue": props.max_value}
    if props.min_value is not None and value < props.min_value:
        raise OutOfRangeError(characteristic_type, value, "min", props.min_value, bounds)
    if props.max_value is not None and value > props.max_value:
        raise OutOfRangeError(characteristic_type, value, "max", props.max_value, bounds)

    if props.min_step is not None and props.min_step > 0:
        min_value = props.min_value if props.min_value is not None else 0
        # NaN and infinity are never a whole number of steps
        if not math.isfinite(value) or not is_step_aligned(value, props.min_step, min_value):
            raise StepMisalignedError(characteristic_type, value, props.min_step, min_value)


def validate_characteristic_value(
    characteristic_type: str,
    value: Any,
    props: "CharacteristicProps",
    operation: str = "write",
) -> None:
    """Run the full validation chain: permission, format, constraints."""
    check_permission(operation, props.perms, characteristic_type, value)
    check_format(value, props.format, characteristic_type)
    check_constraints(value, props, characteristic_type)
    logger.debug(f"Validated {operation} of {characteristic_type}: {value!r}")
