"""JSONPath utilities: field paths like ``$.header.timestamp`` resolved against a schema."""

from __future__ import annotations

from jsonpath_ng import parse as jsonpath_parse
from jsonpath_ng.exceptions import JsonPathLexerError, JsonPathParserError
from jsonpath_ng.jsonpath import Child, Fields, Root, Slice

from .schema import FieldDescriptor, MessageDescriptor
from .exceptions import ConfigError


class FieldPathResolver:
    """Utility class for turning JSONPath expressions into field descriptors."""

    # Cache for compiled JSONPath expressions
    _cache: dict = {}

    @classmethod
    def compile(cls, path: str):
        """Compile and cache a JSONPath expression."""
        if path not in cls._cache:
            try:
                cls._cache[path] = jsonpath_parse(path)
            except (JsonPathLexerError, JsonPathParserError) as e:
                raise ConfigError(f"Invalid JSONPath expression '{path}': {e}", key=path)
        return cls._cache[path]

    @classmethod
    def field_names(cls, path: str) -> list[str]:
        """
        The field names along a path.

        Only plain field steps are allowed, plus ``[*]`` for the elements of
        a repeated field, which does not change the field being named.
        """
        return _flatten(cls.compile(path), path)

    @classmethod
    def resolve(cls, descriptor: MessageDescriptor, path: str) -> FieldDescriptor:
        """
        Resolve a field path against a root message type.

        Args:
            descriptor: The root message type
            path: JSONPath expression, e.g. '$.header.timestamp' or 'items[*].price'

        Returns:
            Descriptor of the last field on the path
        """
        names = cls.field_names(path)
        if not names:
            raise ConfigError(f"Field path '{path}' does not name a field", key=path)

        current = descriptor
        fd = None
        for name in names:
            if current is None:
                raise ConfigError(
                    f"Field path '{path}': {fd.full_name} is not a message field",
                    key=path,
                )
            fd = current.find_field_by_name(name)
            if fd is None:
                raise ConfigError(
                    f"Field path '{path}': {current.full_name} has no field named '{name}'",
                    key=path,
                )
            current = fd.message_type
        return fd


def _flatten(node, path: str) -> list[str]:
    if isinstance(node, Child):
        return _flatten(node.left, path) + _flatten(node.right, path)
    if isinstance(node, Root):
        return []
    if isinstance(node, Fields):
        if len(node.fields) != 1:
            raise ConfigError(f"Field path '{path}' must name one field per step", key=path)
        return [node.fields[0]]
    if isinstance(node, Slice) and node.start is None and node.end is None and node.step is None:
        return []
    raise ConfigError(
        f"Field path '{path}' uses unsupported JSONPath syntax: {node}",
        key=path,
    )


def resolve_field_path(descriptor: MessageDescriptor, path: str) -> FieldDescriptor:
    """Resolve a JSONPath field path against a message type."""
    return FieldPathResolver.resolve(descriptor, path)


def resolve_field_paths(descriptor: MessageDescriptor, paths: list[str]) -> list[FieldDescriptor]:
    return [FieldPathResolver.resolve(descriptor, path) for path in paths]
