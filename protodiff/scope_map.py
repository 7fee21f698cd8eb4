"""Per-field settings keyed by field scope."""

from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from .scope import FieldValidator, ScopeCache, ScopeLogic
from .schema import MessageDescriptor
from .message import FieldStep

V = TypeVar('V')


class ScopedValueMap(Generic[V]):
    """
    Maps field scopes to values, like a range map over field paths.

    Entries are kept newest first: the value of the most recently added
    scope that includes a field wins.
    """

    def __init__(self, entries: tuple = ()):
        self._entries: tuple[tuple[ScopeLogic, V], ...] = tuple(entries)

    @classmethod
    def empty(cls) -> ScopedValueMap:
        return _EMPTY

    def with_(self, logic: ScopeLogic, value: V) -> ScopedValueMap[V]:
        return ScopedValueMap(((logic, value),) + self._entries)

    def get(self, root_descriptor: MessageDescriptor, step: FieldStep,
            cache: Optional[ScopeCache] = None) -> Optional[V]:
        if cache is None:
            cache = ScopeCache(root_descriptor)
        for logic, value in self._entries:
            if cache.policy_for(logic, step).included:
                return value
        return None

    def sub_scope(self, root_descriptor: MessageDescriptor, step: FieldStep,
                  cache: Optional[ScopeCache] = None) -> ScopedValueMap[V]:
        if not self._entries:
            return self
        if cache is None:
            cache = ScopeCache(root_descriptor)
        entries = []
        changed = False
        for logic, value in self._entries:
            sub = cache.sub_scope(logic, step)
            changed = changed or sub is not logic
            if not sub.is_none():
                entries.append((sub, value))
        if not changed:
            return self
        return ScopedValueMap(entries)

    def validate(self, root_descriptor: MessageDescriptor, field_validator: FieldValidator):
        for logic, _ in self._entries:
            logic.validate(root_descriptor, field_validator)

    def values(self) -> list[Any]:
        return [value for _, value in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ScopedValueMap({list(self._entries)!r})"


_EMPTY = ScopedValueMap()
