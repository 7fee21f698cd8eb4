"""Field selection trees built from the fields set on a reference message."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from .models import WireType
from .schema import FieldDescriptor
from .message import FieldStep, Message, UnknownFieldKey, UnknownFieldSet


@dataclass(frozen=True)
class SelectorKey:
    """Child key of a FieldSelector: a field number, plus the wire type for unknown fields."""
    number: int
    wire_type: Optional[WireType] = None

    @classmethod
    def for_step(cls, step: FieldStep) -> SelectorKey:
        if isinstance(step, UnknownFieldKey):
            return cls(step.number, step.wire_type)
        return cls(step.number)


class FieldSelector:
    """
    The set of field paths that were set on a reference message.

    Repeated and submessage fields get one child subtree: the recursive merge
    of the selectors of every element, so a path is present if it was set in
    any element. Selectors are never modified once built.
    """

    def __init__(self):
        # Modified only while building, in from_message().
        self._children: dict[SelectorKey, FieldSelector] = {}

    @classmethod
    def from_message(cls, message: Message) -> FieldSelector:
        """Build the selector of every field path set on the message."""
        selector = cls()

        for fd, value in message.all_fields().items():
            child = cls()
            selector._children[SelectorKey(fd.number)] = child
            if fd.is_message:
                elements = value if fd.is_repeated else (value,)
                for element in elements:
                    child._merge(cls.from_message(element))

        selector._merge(cls._from_unknown_fields(message.unknown_fields))
        return selector

    @classmethod
    def _from_unknown_fields(cls, unknown_fields: UnknownFieldSet) -> FieldSelector:
        selector = cls()
        for number, unknown_field in unknown_fields.as_map().items():
            for wire_type in unknown_field.wire_types():
                child = cls()
                selector._children[SelectorKey(number, wire_type)] = child
                if wire_type == WireType.GROUP:
                    for group in unknown_field.values(wire_type):
                        child._merge(cls._from_unknown_fields(group))
        return selector

    def _merge(self, other: FieldSelector):
        """Add the paths of another selector onto this one."""
        for key, subtree in other._children.items():
            existing = self._children.get(key)
            if existing is None:
                self._children[key] = subtree
            else:
                existing._merge(subtree)

    def has_child(self, step: FieldStep) -> bool:
        return SelectorKey.for_step(step) in self._children

    def child(self, step: FieldStep) -> FieldSelector:
        return self._children.get(SelectorKey.for_step(step), EMPTY_SELECTOR)

    def is_empty(self) -> bool:
        return not self._children

    def matches(
        self,
        path: Sequence[FieldStep],
        terminal_field: Optional[FieldDescriptor] = None,
    ) -> bool:
        """
        Whether the field path, and optionally one more field below it, was
        set on the reference message.
        """
        node = self
        for step in path:
            node = node._children.get(SelectorKey.for_step(step))
            if node is None:
                return False
        return terminal_field is None or SelectorKey(terminal_field.number) in node._children

    def to_dict(self) -> dict:
        result = {}
        for key, subtree in self._children.items():
            name = str(key.number) if key.wire_type is None else f"{key.number}:{key.wire_type.key}"
            result[name] = subtree.to_dict()
        return result

    def __repr__(self) -> str:
        return f"FieldSelector({self.to_dict()})"


EMPTY_SELECTOR = FieldSelector()
