"""Immutable message values and unknown-field sets."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

from .models import FieldType, WireType, WIRE_TYPE_ORDER
from .schema import FieldDescriptor, MessageDescriptor
from .exceptions import ValidationError

UNKNOWN_KEY = "$unknown"


@dataclass(frozen=True)
class UnknownFieldKey:
    """Identifies the values of an unknown field with one wire type."""
    number: int
    wire_type: WireType

    @property
    def name(self) -> str:
        return str(self.number)


# One step of a field path: a declared field, or an unknown field.
FieldStep = Union[FieldDescriptor, UnknownFieldKey]


class UnknownField:
    """All values recorded for one unknown field number, by wire type."""

    def __init__(
        self,
        varint: Iterable[int] = (),
        fixed32: Iterable[int] = (),
        fixed64: Iterable[int] = (),
        length_delimited: Iterable[bytes] = (),
        group: Iterable[UnknownFieldSet] = (),
    ):
        self._values = {
            WireType.VARINT: tuple(varint),
            WireType.FIXED32: tuple(fixed32),
            WireType.FIXED64: tuple(fixed64),
            WireType.LENGTH_DELIMITED: tuple(length_delimited),
            WireType.GROUP: tuple(group),
        }

    def values(self, wire_type: WireType) -> tuple:
        return self._values[wire_type]

    def wire_types(self) -> list[WireType]:
        """Wire types that carry at least one value."""
        return [t for t in WIRE_TYPE_ORDER if self._values[t]]

    def to_dict(self) -> dict:
        result = {}
        for wire_type in self.wire_types():
            values = self._values[wire_type]
            if wire_type == WireType.GROUP:
                result[wire_type.key] = [g.to_dict() for g in values]
            else:
                result[wire_type.key] = list(values)
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UnknownField):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"UnknownField({self.to_dict()})"


class UnknownFieldSet:
    """Values present on the wire but not declared in the schema."""

    def __init__(self, fields: Optional[dict[int, UnknownField]] = None):
        self._fields = dict(sorted((fields or {}).items()))

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> UnknownFieldSet:
        """
        Build a set from {field_number: {wire_type_name: [values]}}.

        Group values are themselves unknown-field-set dicts.
        """
        if not data:
            return EMPTY_UNKNOWN_FIELDS
        if not isinstance(data, dict):
            raise ValidationError(
                "Unknown fields must be a mapping of field number to values",
                {"type": type(data).__name__},
            )

        fields = {}
        for number, spec in data.items():
            try:
                number = int(number)
            except (TypeError, ValueError):
                raise ValidationError(f"Invalid unknown field number: {number!r}")
            if not isinstance(spec, dict):
                raise ValidationError(
                    f"Unknown field {number} must map wire types to value lists",
                    {"field_number": number},
                )
            kwargs = {}
            for key, values in spec.items():
                if key not in _WIRE_TYPE_KEYS:
                    raise ValidationError(
                        f"Unknown wire type '{key}' for unknown field {number}",
                        {"field_number": number, "wire_type": key},
                    )
                if not isinstance(values, (list, tuple)):
                    raise ValidationError(
                        f"Unknown field {number} expects a list of {key} values",
                        {"field_number": number, "wire_type": key, "type": type(values).__name__},
                    )
                try:
                    if key == WireType.GROUP.key:
                        kwargs[key] = [_to_group(g) for g in values]
                    elif key == WireType.LENGTH_DELIMITED.key:
                        kwargs[key] = [_to_bytes(v) for v in values]
                    else:
                        kwargs[key] = [_to_int(v) for v in values]
                except (TypeError, ValueError) as e:
                    raise ValidationError(
                        f"Invalid {key} value for unknown field {number}: {e}",
                        {"field_number": number, "wire_type": key},
                    )
            fields[number] = UnknownField(**kwargs)
        return cls(fields)

    def as_map(self) -> dict[int, UnknownField]:
        return dict(self._fields)

    def is_empty(self) -> bool:
        return not self._fields

    def to_dict(self) -> dict:
        return {number: f.to_dict() for number, f in self._fields.items()}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UnknownFieldSet):
            return NotImplemented
        return self._fields == other._fields

    def __repr__(self) -> str:
        return f"UnknownFieldSet({self.to_dict()})"


EMPTY_UNKNOWN_FIELDS = UnknownFieldSet()

_WIRE_TYPE_KEYS = frozenset(t.key for t in WireType)


class Message:
    """
    An immutable message value described by a MessageDescriptor.

    Values are stored per field: scalars as Python values, submessages as
    Message, repeated fields as tuples, and map fields as tuples of map-entry
    messages (the representation used on the wire).
    """

    def __init__(
        self,
        descriptor: MessageDescriptor,
        fields: Optional[dict[FieldDescriptor, Any]] = None,
        unknown_fields: Optional[UnknownFieldSet] = None,
    ):
        self._descriptor = descriptor
        self._fields = dict(sorted((fields or {}).items(), key=lambda item: item[0].number))
        self._unknown_fields = unknown_fields or EMPTY_UNKNOWN_FIELDS

    @classmethod
    def from_dict(cls, descriptor: MessageDescriptor, payload: Optional[dict]) -> Message:
        """
        Build a message from a payload keyed by field name.

        Args:
            descriptor: The message type
            payload: Field name -> value. Submessages are dicts, repeated
                fields are lists, map fields are dicts. The reserved key
                '$unknown' holds unknown fields.

        Returns:
            The message
        """
        if payload is None:
            return cls.default_instance(descriptor)
        if isinstance(payload, Message):
            return payload
        if not isinstance(payload, dict):
            raise ValidationError(
                f"Payload for {descriptor.full_name} must be an object",
                {"type": type(payload).__name__},
            )

        fields = {}
        unknown_fields = None
        for name, value in payload.items():
            if name == UNKNOWN_KEY:
                unknown_fields = UnknownFieldSet.from_dict(value)
                continue

            fd = descriptor.find_field_by_name(name)
            if fd is None:
                raise ValidationError(
                    f"Message type {descriptor.full_name} has no field named '{name}'",
                    {"type": descriptor.full_name, "field": name},
                )
            if value is None:
                continue

            if fd.is_map:
                entries = _map_entries(fd, value)
                if entries:
                    fields[fd] = entries
            elif fd.is_repeated:
                if not isinstance(value, (list, tuple)):
                    raise ValidationError(
                        f"Repeated field {fd.full_name} expects a list",
                        {"field": fd.full_name, "type": type(value).__name__},
                    )
                if value:
                    fields[fd] = tuple(_coerce(fd, v) for v in value)
            else:
                coerced = _coerce(fd, value)
                if not fd.has_presence and _is_default(fd, coerced):
                    # Implicit presence: a default value is indistinguishable from unset.
                    continue
                fields[fd] = coerced

        return cls(descriptor, fields, unknown_fields)

    @classmethod
    def default_instance(cls, descriptor: MessageDescriptor) -> Message:
        if descriptor._default_instance is None:
            descriptor._default_instance = cls(descriptor)
        return descriptor._default_instance

    @property
    def descriptor(self) -> MessageDescriptor:
        return self._descriptor

    @property
    def unknown_fields(self) -> UnknownFieldSet:
        return self._unknown_fields

    def all_fields(self) -> dict[FieldDescriptor, Any]:
        """Set fields with their values, ordered by field number."""
        return dict(self._fields)

    def has_field(self, fd: FieldDescriptor) -> bool:
        return fd in self._fields

    def get_field(self, fd: FieldDescriptor) -> Any:
        if fd in self._fields:
            return self._fields[fd]
        return fd.default_value()

    def __getitem__(self, name: str) -> Any:
        fd = self._descriptor.find_field_by_name(name)
        if fd is None:
            raise KeyError(name)
        return self.get_field(fd)

    def to_dict(self) -> dict:
        result = {}
        for fd, value in self._fields.items():
            result[fd.name] = _value_to_dict(fd, value)
        if not self._unknown_fields.is_empty():
            result[UNKNOWN_KEY] = self._unknown_fields.to_dict()
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return (
            self._descriptor is other._descriptor
            and self._fields == other._fields
            and self._unknown_fields == other._unknown_fields
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"{self._descriptor.full_name}({self.to_dict()})"


def _map_entries(fd: FieldDescriptor, value: Any) -> tuple:
    entry_type = fd.message_type
    if isinstance(value, dict):
        items = list(value.items())
    elif isinstance(value, (list, tuple)):
        # List of {'key': ..., 'value': ...} entries, kept in serialization order.
        try:
            items = [(entry['key'], entry.get('value')) for entry in value]
        except (KeyError, TypeError, AttributeError):
            raise ValidationError(
                f"Map field {fd.full_name} entries must have a 'key'",
                {"field": fd.full_name},
            )
    else:
        raise ValidationError(
            f"Map field {fd.full_name} expects a mapping",
            {"field": fd.full_name, "type": type(value).__name__},
        )

    key_field = entry_type.find_field_by_number(1)
    value_field = entry_type.find_field_by_number(2)
    entries = []
    for key, item in items:
        entry_fields = {key_field: _coerce(key_field, key)}
        if item is not None:
            entry_fields[value_field] = _coerce(value_field, item)
        entries.append(Message(entry_type, entry_fields))
    return tuple(entries)


def _coerce(fd: FieldDescriptor, value: Any) -> Any:
    """Check a payload value against its field type."""
    if fd.is_message:
        return Message.from_dict(fd.message_type, value)

    field_type = fd.type
    if field_type.is_floating:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    elif field_type.is_integer:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    elif field_type == FieldType.BOOL:
        if isinstance(value, bool):
            return value
    elif field_type == FieldType.STRING:
        if isinstance(value, str):
            return value
    elif field_type == FieldType.BYTES:
        if isinstance(value, (bytes, bytearray, str)):
            return _to_bytes(value)

    raise ValidationError(
        f"Field {fd.full_name} of type {field_type.value} cannot hold {value!r}",
        {"field": fd.full_name, "type": type(value).__name__},
    )


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode('utf-8')
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    raise TypeError(f"expected bytes or text, got {value!r}")


def _to_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected an integer, got {value!r}")
    return value


def _to_group(value: Any) -> UnknownFieldSet:
    if not isinstance(value, dict):
        raise TypeError(f"expected a mapping of unknown fields, got {value!r}")
    return UnknownFieldSet.from_dict(value)


def _is_default(fd: FieldDescriptor, value: Any) -> bool:
    """Whether a value equals the field default, telling -0.0 from 0.0 and NaN from itself."""
    default = fd.default_value()
    if isinstance(value, float):
        return (
            not math.isnan(value)
            and value == default
            and math.copysign(1.0, value) == math.copysign(1.0, default)
        )
    return value == default


def _value_to_dict(fd: FieldDescriptor, value: Any) -> Any:
    if fd.is_map:
        key_field = fd.message_type.find_field_by_number(1)
        value_field = fd.message_type.find_field_by_number(2)
        return {
            entry.get_field(key_field): _value_to_dict(value_field, entry.get_field(value_field))
            for entry in value
        }
    if isinstance(value, tuple):
        return [_value_to_dict(fd, v) for v in value]
    if isinstance(value, Message):
        return value.to_dict()
    return value
