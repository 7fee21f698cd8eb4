"""Schema loading and message descriptors for ProtoDiff engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .models import FieldType, Label, Syntax
from .exceptions import SchemaParseError, ValidationError

logger = logging.getLogger(__name__)

_SCALAR_TYPES = {t.value: t for t in FieldType if not t.is_message}

# Map keys may be any integral or string type.
_MAP_KEY_TYPES = frozenset({
    FieldType.INT32, FieldType.INT64, FieldType.UINT32, FieldType.UINT64,
    FieldType.SINT32, FieldType.SINT64, FieldType.FIXED32, FieldType.FIXED64,
    FieldType.SFIXED32, FieldType.SFIXED64, FieldType.BOOL, FieldType.STRING,
})


@dataclass(eq=False)
class FieldDescriptor:
    """
    A declared field of a message type.

    Descriptors compare by identity: two fields are the same field only if
    they come from the same MessageDescriptor of the same registry.
    """
    name: str
    number: int
    type: FieldType
    label: Optional[Label] = None
    type_name: Optional[str] = None
    default: Any = None
    containing_type: Optional[MessageDescriptor] = field(default=None, repr=False)
    registry: Optional[SchemaRegistry] = field(default=None, repr=False)

    @property
    def full_name(self) -> str:
        if self.containing_type is None:
            return self.name
        return f"{self.containing_type.full_name}.{self.name}"

    @property
    def is_repeated(self) -> bool:
        return self.label == Label.REPEATED

    @property
    def is_message(self) -> bool:
        return self.type.is_message

    @property
    def message_type(self) -> Optional[MessageDescriptor]:
        if not self.is_message:
            return None
        return self.registry.get(self.type_name)

    @property
    def is_map(self) -> bool:
        return self.is_repeated and self.is_message and self.message_type.is_map_entry

    @property
    def has_presence(self) -> bool:
        if self.is_repeated:
            return False
        if self.is_message:
            return True
        if self.containing_type.syntax == Syntax.PROTO2:
            return True
        return self.label == Label.OPTIONAL

    def default_value(self) -> Any:
        """The value a reader sees when this field is not set."""
        if self.is_repeated:
            return ()
        if self.is_message:
            from .message import Message
            return Message.default_instance(self.message_type)
        if self.default is not None:
            return self.default
        return _scalar_default(self.type)

    def __str__(self) -> str:
        return self.full_name


@dataclass(eq=False)
class MessageDescriptor:
    """A message type: a named, ordered collection of fields."""
    full_name: str
    syntax: Syntax = Syntax.PROTO2
    is_map_entry: bool = False
    fields: list[FieldDescriptor] = field(default_factory=list, repr=False)
    registry: Optional[SchemaRegistry] = field(default=None, repr=False)

    def __post_init__(self):
        self._by_number: dict[int, FieldDescriptor] = {}
        self._by_name: dict[str, FieldDescriptor] = {}
        self._default_instance = None

    @property
    def name(self) -> str:
        return self.full_name.rsplit('.', 1)[-1]

    def add_field(self, field_descriptor: FieldDescriptor):
        if field_descriptor.number in self._by_number:
            raise SchemaParseError(
                f"Duplicate field number {field_descriptor.number} in {self.full_name}",
                type_name=self.full_name,
            )
        if field_descriptor.name in self._by_name:
            raise SchemaParseError(
                f"Duplicate field name '{field_descriptor.name}' in {self.full_name}",
                type_name=self.full_name,
            )
        field_descriptor.containing_type = self
        field_descriptor.registry = self.registry
        self.fields.append(field_descriptor)
        self.fields.sort(key=lambda f: f.number)
        self._by_number[field_descriptor.number] = field_descriptor
        self._by_name[field_descriptor.name] = field_descriptor

    def find_field_by_number(self, number: int) -> Optional[FieldDescriptor]:
        return self._by_number.get(number)

    def find_field_by_name(self, name: str) -> Optional[FieldDescriptor]:
        return self._by_name.get(name)

    def __str__(self) -> str:
        return self.full_name


class SchemaRegistry:
    """
    Holds the message types of one schema document.

    Message types refer to each other by name, so recursive and mutually
    recursive types are allowed. References are resolved lazily but checked
    once, when the document is loaded.

    Usage:
        registry = SchemaRegistry.from_yaml("schema.yaml")
        node_type = registry.get("Node")
    """

    def __init__(self, package: str = ""):
        self.package = package
        self._types: dict[str, MessageDescriptor] = {}

    @classmethod
    def from_dict(cls, schema: dict) -> SchemaRegistry:
        """
        Build a registry from a schema document.

        Args:
            schema: Mapping with optional 'package' and 'syntax' keys and a
                'messages' mapping of type name -> {'fields': [...]}

        Returns:
            Registry with every declared type
        """
        if not isinstance(schema, dict):
            raise SchemaParseError(
                "Schema document must be a mapping",
                reason=f"got {type(schema).__name__}",
            )

        registry = cls(schema.get('package') or "")
        default_syntax = _parse_syntax(schema.get('syntax', 'proto2'), "<root>")
        messages = schema.get('messages') or {}

        # First pass declares every type so fields can reference any of them.
        pending = []
        for name, body in messages.items():
            body = body or {}
            syntax = _parse_syntax(body.get('syntax', default_syntax.value), name)
            descriptor = MessageDescriptor(
                full_name=registry._qualify(name),
                syntax=syntax,
                registry=registry,
            )
            registry._register(descriptor)
            pending.append((descriptor, body.get('fields') or []))

        for descriptor, fields in pending:
            for field_spec in fields:
                registry._add_field(descriptor, field_spec)

        registry._check_references()
        logger.debug("Loaded schema with %d message types", len(registry._types))
        return registry

    @classmethod
    def from_yaml(cls, path: str | Path) -> SchemaRegistry:
        """Load a schema document from a YAML (or JSON) file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Schema file not found: {path}")

        with open(path, 'r') as f:
            content = f.read()

        try:
            schema = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise SchemaParseError(f"Failed to parse schema file: {e}", reason=str(e))
        return cls.from_dict(schema)

    def get(self, name: str) -> MessageDescriptor:
        """Look up a message type by full or package-relative name."""
        descriptor = self._types.get(name)
        if descriptor is None:
            descriptor = self._types.get(self._qualify(name))
        if descriptor is None:
            raise SchemaParseError(f"Unknown message type: {name}", type_name=name)
        return descriptor

    def __contains__(self, name: str) -> bool:
        return name in self._types or self._qualify(name) in self._types

    @property
    def message_types(self) -> list[MessageDescriptor]:
        return list(self._types.values())

    def _qualify(self, name: str) -> str:
        if self.package and not name.startswith(self.package + '.'):
            return f"{self.package}.{name}"
        return name

    def _register(self, descriptor: MessageDescriptor):
        if descriptor.full_name in self._types:
            raise SchemaParseError(
                f"Duplicate message type: {descriptor.full_name}",
                type_name=descriptor.full_name,
            )
        self._types[descriptor.full_name] = descriptor

    def _add_field(self, descriptor: MessageDescriptor, spec: dict):
        try:
            name = spec['name']
            number = int(spec['number'])
            type_spec = str(spec['type'])
        except (KeyError, TypeError, ValueError) as e:
            raise SchemaParseError(
                f"Invalid field declaration in {descriptor.full_name}: {spec}",
                type_name=descriptor.full_name,
                reason=str(e),
            )
        if number <= 0:
            raise SchemaParseError(
                f"Field numbers must be positive: {descriptor.full_name}.{name} = {number}",
                type_name=descriptor.full_name,
            )

        label = _parse_label(spec.get('label'), descriptor.full_name)

        if type_spec == 'map':
            if label is not None:
                raise SchemaParseError(
                    f"Map field {descriptor.full_name}.{name} cannot have a label",
                    type_name=descriptor.full_name,
                )
            entry = self._make_map_entry(descriptor, name, spec)
            descriptor.add_field(FieldDescriptor(
                name=name,
                number=number,
                type=FieldType.MESSAGE,
                label=Label.REPEATED,
                type_name=entry.full_name,
            ))
            return

        if type_spec == 'group':
            type_name = spec.get('message_type')
            if not type_name:
                raise SchemaParseError(
                    f"Group field {descriptor.full_name}.{name} needs a message_type",
                    type_name=descriptor.full_name,
                )
            field_type = FieldType.GROUP
        elif type_spec in _SCALAR_TYPES:
            type_name = None
            field_type = _SCALAR_TYPES[type_spec]
        else:
            type_name = type_spec
            field_type = FieldType.MESSAGE

        default = spec.get('default')
        if default is not None and (field_type.is_message or label == Label.REPEATED):
            raise SchemaParseError(
                f"Only singular scalar fields may declare a default: "
                f"{descriptor.full_name}.{name}",
                type_name=descriptor.full_name,
            )

        fd = FieldDescriptor(
            name=name,
            number=number,
            type=field_type,
            label=label,
            type_name=type_name,
        )
        descriptor.add_field(fd)
        if default is not None:
            fd.default = _parse_default(fd, default)

    def _make_map_entry(self, parent: MessageDescriptor, name: str, spec: dict) -> MessageDescriptor:
        key_type = _SCALAR_TYPES.get(str(spec.get('key_type')))
        if key_type not in _MAP_KEY_TYPES:
            raise SchemaParseError(
                f"Invalid map key type for {parent.full_name}.{name}: {spec.get('key_type')}",
                type_name=parent.full_name,
            )
        value_spec = spec.get('value_type')
        if not value_spec or value_spec in ('map', 'group'):
            raise SchemaParseError(
                f"Invalid map value type for {parent.full_name}.{name}: {value_spec}",
                type_name=parent.full_name,
            )

        entry_name = ''.join(part[:1].upper() + part[1:] for part in name.split('_')) + 'Entry'
        entry = MessageDescriptor(
            full_name=f"{parent.full_name}.{entry_name}",
            syntax=parent.syntax,
            is_map_entry=True,
            registry=self,
        )
        self._register(entry)
        entry.add_field(FieldDescriptor(name='key', number=1, type=key_type, label=Label.OPTIONAL))
        if value_spec in _SCALAR_TYPES:
            value_field = FieldDescriptor(
                name='value', number=2, type=_SCALAR_TYPES[value_spec], label=Label.OPTIONAL
            )
        else:
            value_field = FieldDescriptor(
                name='value', number=2, type=FieldType.MESSAGE, type_name=value_spec
            )
        entry.add_field(value_field)
        return entry

    def _check_references(self):
        for descriptor in list(self._types.values()):
            for fd in descriptor.fields:
                if fd.is_message and fd.type_name not in self:
                    raise SchemaParseError(
                        f"Cannot resolve type '{fd.type_name}' of field {fd.full_name}",
                        type_name=descriptor.full_name,
                        reason="Type not declared",
                    )


def _parse_syntax(value: Any, where: str) -> Syntax:
    try:
        return Syntax(value)
    except ValueError:
        raise SchemaParseError(f"Unknown syntax '{value}' for {where}", type_name=where)


def _parse_label(value: Any, where: str) -> Optional[Label]:
    if value is None:
        return None
    try:
        return Label(value)
    except ValueError:
        raise SchemaParseError(f"Unknown field label '{value}' in {where}", type_name=where)


def _parse_default(fd: FieldDescriptor, value: Any) -> Any:
    """Convert a declared default to the field's type; text defaults are parsed."""
    from .message import _coerce

    try:
        if isinstance(value, str):
            if fd.type.is_integer:
                value = int(value)
            elif fd.type.is_floating:
                value = float(value)
            elif fd.type == FieldType.BOOL and value in ('true', 'false'):
                value = value == 'true'
        return _coerce(fd, value)
    except (ValueError, ValidationError) as e:
        raise SchemaParseError(
            f"Invalid default for {fd.full_name}: {value!r}",
            type_name=fd.containing_type.full_name,
            reason=str(e),
        )


def _scalar_default(field_type: FieldType) -> Any:
    if field_type.is_floating:
        return 0.0
    if field_type == FieldType.BOOL:
        return False
    if field_type == FieldType.STRING:
        return ""
    if field_type == FieldType.BYTES:
        return b""
    return 0
