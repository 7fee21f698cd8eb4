"""Comparison functions for scalar field values."""

from __future__ import annotations

import math
from typing import Any, Optional

from .models import FieldType


def compare_floating(
    actual: float,
    expected: float,
    tolerance: Optional[float] = None
) -> bool:
    """
    Compare two floating point values with optional tolerance.

    Args:
        actual: The actual value
        expected: The expected value
        tolerance: Maximum allowed absolute difference

    Returns:
        True if the values match. NaN never matches, not even itself.
    """
    if tolerance is not None:
        if not (math.isfinite(actual) and math.isfinite(expected)):
            return False
        return abs(actual - expected) <= tolerance
    return actual == expected


def compare_scalar(
    field_type: FieldType,
    actual: Any,
    expected: Any,
    tolerance: Optional[float] = None
) -> bool:
    """
    Compare two values of a scalar field.

    Args:
        field_type: Declared type of the field
        actual: The actual value
        expected: The expected value
        tolerance: Tolerance for double and float fields

    Returns:
        True if the values match
    """
    if field_type.is_floating:
        return compare_floating(actual, expected, tolerance)
    return type(actual) is type(expected) and actual == expected


def compare_opaque(actual: Any, expected: Any) -> bool:
    """Raw equality, used for unknown field payloads."""
    return type(actual) is type(expected) and actual == expected
