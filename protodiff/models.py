"""Enums and configuration models for ProtoDiff engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FieldType(Enum):
    DOUBLE = "double"
    FLOAT = "float"
    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    SINT32 = "sint32"
    SINT64 = "sint64"
    FIXED32 = "fixed32"
    FIXED64 = "fixed64"
    SFIXED32 = "sfixed32"
    SFIXED64 = "sfixed64"
    BOOL = "bool"
    STRING = "string"
    BYTES = "bytes"
    ENUM = "enum"
    MESSAGE = "message"
    GROUP = "group"

    @property
    def is_message(self) -> bool:
        return self in (FieldType.MESSAGE, FieldType.GROUP)

    @property
    def is_floating(self) -> bool:
        return self in (FieldType.DOUBLE, FieldType.FLOAT)

    @property
    def is_integer(self) -> bool:
        return self in _INTEGER_TYPES


_INTEGER_TYPES = frozenset({
    FieldType.INT32, FieldType.INT64, FieldType.UINT32, FieldType.UINT64,
    FieldType.SINT32, FieldType.SINT64, FieldType.FIXED32, FieldType.FIXED64,
    FieldType.SFIXED32, FieldType.SFIXED64, FieldType.ENUM,
})


class Label(Enum):
    OPTIONAL = "optional"
    REQUIRED = "required"
    REPEATED = "repeated"


class Syntax(Enum):
    PROTO2 = "proto2"
    PROTO3 = "proto3"


class WireType(Enum):
    """Wire types an unknown field value may carry."""
    VARINT = 0
    FIXED64 = 1
    LENGTH_DELIMITED = 2
    GROUP = 3
    FIXED32 = 5

    @property
    def key(self) -> str:
        return self.name.lower()


# Iteration order used when grouping unknown fields.
WIRE_TYPE_ORDER = (
    WireType.VARINT,
    WireType.FIXED32,
    WireType.FIXED64,
    WireType.LENGTH_DELIMITED,
    WireType.GROUP,
)


class ScopeResult(Enum):
    """Decision of a field scope for one field.

    The value is ``(included, recursive)``: whether the field takes part in
    the comparison, and whether that decision holds for the whole subtree
    below the field.
    """
    INCLUDED_RECURSIVELY = (True, True)
    INCLUDED_NONRECURSIVELY = (True, False)
    EXCLUDED_RECURSIVELY = (False, True)
    EXCLUDED_NONRECURSIVELY = (False, False)

    @property
    def included(self) -> bool:
        return self.value[0]

    @property
    def recursive(self) -> bool:
        return self.value[1]

    @classmethod
    def of(cls, included: bool, recursive: bool) -> ScopeResult:
        return cls((included, recursive))


class Verdict(Enum):
    MATCHED = "MATCHED"
    ADDED = "ADDED"
    REMOVED = "REMOVED"
    MODIFIED = "MODIFIED"
    IGNORED = "IGNORED"
    # Only produced when comparing a repeated field as a subsequence.
    MOVED_OUT_OF_ORDER = "MOVED_OUT_OF_ORDER"

    @property
    def is_matched(self) -> bool:
        return self in (Verdict.MATCHED, Verdict.IGNORED)


class VerdictBuilder:
    """
    Computes a Verdict. Starts as MATCHED and can be changed exactly once;
    every mark after the first successful one is a no-op.
    """

    def __init__(self):
        self._state = Verdict.MATCHED

    def mark_added_if(self, condition: bool):
        self._set_if(condition, Verdict.ADDED)

    def mark_removed_if(self, condition: bool):
        self._set_if(condition, Verdict.REMOVED)

    def mark_modified_if(self, condition: bool):
        self._set_if(condition, Verdict.MODIFIED)

    def build(self) -> Verdict:
        return self._state

    def _set_if(self, condition: bool, state: Verdict):
        if condition and self._state == Verdict.MATCHED:
            self._state = state


@dataclass
class EngineConfig:
    """Global configuration for the diff engine."""
    max_depth: int = 100
