"""Utility functions for ProtoDiff engine."""

from __future__ import annotations

import math
from typing import Any


def is_numeric(value: Any) -> bool:
    """True for int and float values; bool does not count as a number."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_finite_number(value: Any) -> bool:
    """Check if a value is a finite int or float."""
    return is_numeric(value) and math.isfinite(value)


def indexed_name(name: str, index: int) -> str:
    """Name of one element of a repeated field, e.g. 'values[2]'."""
    return f"{name}[{index}]"


def keyed_name(name: str, key: Any) -> str:
    """Name of one entry of a map field, e.g. "labels['env']" or 'counts[3]'."""
    if isinstance(key, str):
        return f"{name}['{key}']"
    return f"{name}[{key}]"


def build_path(parent_path: str, name: str) -> str:
    """Build a dotted field path from parent path and field name."""
    if not parent_path:
        return name
    return f"{parent_path}.{name}"


def to_jsonable(value: Any) -> Any:
    """Convert a field value to a JSON-compatible value for inspection output."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return value.decode('utf-8', errors='replace')
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if hasattr(value, 'to_dict'):
        return to_jsonable(value.to_dict())
    return repr(value)
