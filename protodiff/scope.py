"""
Field scopes: composable rules deciding which field paths take part in a
comparison.

A scope is one of a closed set of variants. Leaves decide on their own
(everything, nothing, the fields set on a reference message, or specific
fields by number or descriptor); compound scopes combine other scopes by
intersection, union or negation. For a field, a scope yields a ScopeResult,
which also says whether the decision holds for the field's whole subtree. A
recursive decision lets the differ skip the subtree, or hand it the constant
all/none scope, without looking inside it.

Scopes are immutable and may be shared freely. All memoization happens in a
ScopeCache that lives for exactly one diff call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from functools import reduce
from typing import Optional

from .models import FieldType, ScopeResult
from .schema import FieldDescriptor, MessageDescriptor
from .message import FieldStep, Message, UnknownFieldKey
from .selector import FieldSelector
from .exceptions import InvalidScopeError

logger = logging.getLogger(__name__)

INCLUDED_RECURSIVELY = ScopeResult.INCLUDED_RECURSIVELY
INCLUDED_NONRECURSIVELY = ScopeResult.INCLUDED_NONRECURSIVELY
EXCLUDED_RECURSIVELY = ScopeResult.EXCLUDED_RECURSIVELY
EXCLUDED_NONRECURSIVELY = ScopeResult.EXCLUDED_NONRECURSIVELY


class FieldValidator(Enum):
    """Checks that a field named by a scope makes sense for the setting using it."""
    ALLOW_ALL = "allow_all"
    IS_FIELD_WITH_ABSENCE = "is_field_with_absence"
    IS_FIELD_WITH_ORDER = "is_field_with_order"
    IS_FIELD_WITH_EXTRA_ELEMENTS = "is_field_with_extra_elements"
    IS_DOUBLE_FIELD = "is_double_field"
    IS_FLOAT_FIELD = "is_float_field"

    def validate(self, fd: FieldDescriptor):
        if self == FieldValidator.IS_FIELD_WITH_ABSENCE:
            _check(not fd.is_repeated,
                   f"{fd} is a repeated field; repeated fields cannot be absent, only empty")
            _check(fd.has_presence, f"{fd} is a field without presence; it cannot be absent")
        elif self == FieldValidator.IS_FIELD_WITH_ORDER:
            _check(not fd.is_map, f"{fd} is a map field; it has no order")
            _check(fd.is_repeated, f"{fd} is not a repeated field; it has no order")
        elif self == FieldValidator.IS_FIELD_WITH_EXTRA_ELEMENTS:
            _check(fd.is_repeated,
                   f"{fd} is not a repeated field or a map field; "
                   f"it cannot contain extra elements")
        elif self == FieldValidator.IS_DOUBLE_FIELD:
            _check(fd.type == FieldType.DOUBLE, f"{fd} is not a double field")
        elif self == FieldValidator.IS_FLOAT_FIELD:
            _check(fd.type == FieldType.FLOAT, f"{fd} is not a float field")


def _check(condition: bool, message: str):
    if not condition:
        raise InvalidScopeError(message)


class ScopeLogic:
    """Base class of every field scope variant."""

    def policy_for(
        self,
        root_descriptor: MessageDescriptor,
        step: FieldStep,
        cache: Optional[ScopeCache] = None,
    ) -> ScopeResult:
        """Decide whether the field is in scope, relative to the root message type."""
        if cache is None:
            cache = ScopeCache(root_descriptor)
        return cache.policy_for(self, step)

    def sub_scope(
        self,
        root_descriptor: MessageDescriptor,
        step: FieldStep,
        cache: Optional[ScopeCache] = None,
    ) -> ScopeLogic:
        """The scope to apply to the children of the given field."""
        if cache is None:
            cache = ScopeCache(root_descriptor)
        return cache.sub_scope(self, step)

    def validate(
        self,
        root_descriptor: MessageDescriptor,
        field_validator: FieldValidator = FieldValidator.ALLOW_ALL,
    ):
        """
        Check this scope can be used against the given root message type.

        Raises:
            InvalidScopeError: if a field number does not exist on the root
                type, a field fails the validator, or a scope built from a
                reference message has a different type
        """
        logger.debug("Validating %r against %s (%s)",
                     self, root_descriptor.full_name, field_validator.value)
        _validate(self, root_descriptor, field_validator)

    def is_all(self) -> bool:
        return isinstance(self, AllScope)

    def is_none(self) -> bool:
        return isinstance(self, NoneScope)

    # Composition

    def intersect(self, other: ScopeLogic) -> ScopeLogic:
        return IntersectionScope(self, other)

    def union(self, other: ScopeLogic) -> ScopeLogic:
        return UnionScope(self, other)

    def negate(self) -> ScopeLogic:
        return NegationScope(self)

    __and__ = intersect
    __or__ = union
    __invert__ = negate

    def ignoring_fields(self, *field_numbers: int) -> ScopeLogic:
        if not field_numbers:
            return self
        return IntersectionScope(self, NegationScope(field_numbers_scope(*field_numbers)))

    def ignoring_field_descriptors(self, *field_descriptors: FieldDescriptor) -> ScopeLogic:
        if not field_descriptors:
            return self
        return IntersectionScope(
            self, NegationScope(field_descriptors_scope(*field_descriptors))
        )

    def allowing_fields(self, *field_numbers: int) -> ScopeLogic:
        if not field_numbers:
            return self
        return UnionScope(self, field_numbers_scope(*field_numbers))

    def allowing_field_descriptors(self, *field_descriptors: FieldDescriptor) -> ScopeLogic:
        if not field_descriptors:
            return self
        return UnionScope(self, field_descriptors_scope(*field_descriptors))


# Leaves


@dataclass(frozen=True, eq=False)
class AllScope(ScopeLogic):
    def __repr__(self) -> str:
        return "all_fields()"


@dataclass(frozen=True, eq=False)
class NoneScope(ScopeLogic):
    def __repr__(self) -> str:
        return "no_fields()"


@dataclass(frozen=True, eq=False)
class SelectorScope(ScopeLogic):
    """Fields set on a reference message. ``descriptor`` is only set on the root scope."""
    selector: FieldSelector
    descriptor: Optional[MessageDescriptor] = None

    def __repr__(self) -> str:
        return f"from_set_fields({self.selector.to_dict()})"


@dataclass(frozen=True, eq=False)
class FieldNumbersScope(ScopeLogic):
    """Fields of the root message type with one of the given numbers."""
    numbers: frozenset
    recursive: bool = True

    def __repr__(self) -> str:
        return f"allowing_fields({_join(sorted(self.numbers))})"


@dataclass(frozen=True, eq=False)
class FieldDescriptorsScope(ScopeLogic):
    """Fields equal to one of the given descriptors, anywhere in the tree."""
    descriptors: frozenset
    recursive: bool = True

    def __repr__(self) -> str:
        names = sorted(fd.full_name for fd in self.descriptors)
        return f"allowing_field_descriptors({_join(names)})"


# Compounds


@dataclass(frozen=True, eq=False)
class IntersectionScope(ScopeLogic):
    first: ScopeLogic
    second: ScopeLogic

    def __repr__(self) -> str:
        return f"({self.first!r} && {self.second!r})"


@dataclass(frozen=True, eq=False)
class UnionScope(ScopeLogic):
    first: ScopeLogic
    second: ScopeLogic

    def __repr__(self) -> str:
        return f"({self.first!r} || {self.second!r})"


@dataclass(frozen=True, eq=False)
class NegationScope(ScopeLogic):
    operand: ScopeLogic

    def __repr__(self) -> str:
        return f"!({self.operand!r})"


ALL = AllScope()
NONE = NoneScope()


class ScopeCache:
    """
    Memo table for the scope queries of a single diff call.

    Keys hold the scope objects themselves, so a scope derived during the
    call stays alive (and its identity unique) until the cache is dropped.
    """

    def __init__(self, root_descriptor: MessageDescriptor):
        self.root_descriptor = root_descriptor
        self._results: dict[tuple, ScopeResult] = {}
        self._sub_scopes: dict[tuple, ScopeLogic] = {}

    def policy_for(self, logic: ScopeLogic, step: FieldStep) -> ScopeResult:
        key = (logic, step)
        result = self._results.get(key)
        if result is None:
            result = _evaluate(logic, step, self)
            self._results[key] = result
        return result

    def sub_scope(self, logic: ScopeLogic, step: FieldStep) -> ScopeLogic:
        key = (logic, step)
        sub = self._sub_scopes.get(key)
        if sub is None:
            sub = _derive_sub_scope(logic, step, self)
            self._sub_scopes[key] = sub
        return sub

    def __len__(self) -> int:
        return len(self._results) + len(self._sub_scopes)


def _evaluate(logic: ScopeLogic, step: FieldStep, cache: ScopeCache) -> ScopeResult:
    if isinstance(logic, AllScope):
        return INCLUDED_RECURSIVELY
    if isinstance(logic, NoneScope):
        return EXCLUDED_RECURSIVELY
    if isinstance(logic, SelectorScope):
        return INCLUDED_NONRECURSIVELY if logic.selector.has_child(step) else EXCLUDED_RECURSIVELY
    if isinstance(logic, (FieldNumbersScope, FieldDescriptorsScope)):
        if isinstance(step, UnknownFieldKey):
            return EXCLUDED_RECURSIVELY
        if _matches_field(logic, step, cache.root_descriptor):
            return ScopeResult.of(True, logic.recursive)
        # A descendant may still match: the schema can be cyclic, and
        # descriptors can name fields anywhere in the tree.
        return EXCLUDED_NONRECURSIVELY
    if isinstance(logic, IntersectionScope):
        return _intersect_results(
            cache.policy_for(logic.first, step), cache.policy_for(logic.second, step)
        )
    if isinstance(logic, UnionScope):
        return _union_results(
            cache.policy_for(logic.first, step), cache.policy_for(logic.second, step)
        )
    if isinstance(logic, NegationScope):
        result = cache.policy_for(logic.operand, step)
        return ScopeResult.of(not result.included, result.recursive)
    raise TypeError(f"Unknown scope variant: {type(logic).__name__}")


def _intersect_results(a: ScopeResult, b: ScopeResult) -> ScopeResult:
    if a == EXCLUDED_RECURSIVELY or b == EXCLUDED_RECURSIVELY:
        return EXCLUDED_RECURSIVELY
    if not a.included or not b.included:
        return EXCLUDED_NONRECURSIVELY
    if a.recursive and b.recursive:
        return INCLUDED_RECURSIVELY
    return INCLUDED_NONRECURSIVELY


def _union_results(a: ScopeResult, b: ScopeResult) -> ScopeResult:
    if a == INCLUDED_RECURSIVELY or b == INCLUDED_RECURSIVELY:
        return INCLUDED_RECURSIVELY
    if a.included or b.included:
        return INCLUDED_NONRECURSIVELY
    if a.recursive and b.recursive:
        return EXCLUDED_RECURSIVELY
    return EXCLUDED_NONRECURSIVELY


def _matches_field(logic: ScopeLogic, fd: FieldDescriptor, root_descriptor: MessageDescriptor) -> bool:
    if isinstance(logic, FieldNumbersScope):
        return fd.containing_type is root_descriptor and fd.number in logic.numbers
    return fd in logic.descriptors


def _derive_sub_scope(logic: ScopeLogic, step: FieldStep, cache: ScopeCache) -> ScopeLogic:
    result = cache.policy_for(logic, step)
    if result.recursive:
        return ALL if result.included else NONE

    if isinstance(logic, SelectorScope):
        child = logic.selector.child(step)
        return NONE if child.is_empty() else SelectorScope(child)
    if isinstance(logic, (FieldNumbersScope, FieldDescriptorsScope)):
        return logic
    if isinstance(logic, IntersectionScope):
        first = cache.sub_scope(logic.first, step)
        second = cache.sub_scope(logic.second, step)
        if first is logic.first and second is logic.second:
            return logic
        return _simplified_intersection(first, second)
    if isinstance(logic, UnionScope):
        first = cache.sub_scope(logic.first, step)
        second = cache.sub_scope(logic.second, step)
        if first is logic.first and second is logic.second:
            return logic
        return _simplified_union(first, second)
    if isinstance(logic, NegationScope):
        operand = cache.sub_scope(logic.operand, step)
        if operand is logic.operand:
            return logic
        if operand.is_all():
            return NONE
        if operand.is_none():
            return ALL
        return NegationScope(operand)
    raise TypeError(f"Unknown scope variant: {type(logic).__name__}")


def _simplified_intersection(first: ScopeLogic, second: ScopeLogic) -> ScopeLogic:
    if first.is_none() or second.is_none():
        return NONE
    if first.is_all():
        return second
    if second.is_all():
        return first
    return IntersectionScope(first, second)


def _simplified_union(first: ScopeLogic, second: ScopeLogic) -> ScopeLogic:
    if first.is_all() or second.is_all():
        return ALL
    if first.is_none():
        return second
    if second.is_none():
        return first
    return UnionScope(first, second)


def _validate(logic: ScopeLogic, root_descriptor: MessageDescriptor, field_validator: FieldValidator):
    if isinstance(logic, (AllScope, NoneScope)):
        return
    if isinstance(logic, SelectorScope):
        if logic.descriptor is not None and logic.descriptor is not root_descriptor:
            raise InvalidScopeError(
                f"Message given to from_set_fields() does not have the same descriptor "
                f"as the message being tested. Expected {logic.descriptor.full_name}, "
                f"got {root_descriptor.full_name}.",
                type_name=root_descriptor.full_name,
            )
        return
    if isinstance(logic, FieldNumbersScope):
        for number in sorted(logic.numbers):
            fd = root_descriptor.find_field_by_number(number)
            if fd is None:
                raise InvalidScopeError(
                    f"Message type {root_descriptor.full_name} has no field with number {number}.",
                    type_name=root_descriptor.full_name,
                )
            field_validator.validate(fd)
        return
    if isinstance(logic, FieldDescriptorsScope):
        for fd in logic.descriptors:
            field_validator.validate(fd)
        return
    if isinstance(logic, (IntersectionScope, UnionScope)):
        _validate(logic.first, root_descriptor, field_validator)
        _validate(logic.second, root_descriptor, field_validator)
        return
    if isinstance(logic, NegationScope):
        _validate(logic.operand, root_descriptor, field_validator)
        return
    raise TypeError(f"Unknown scope variant: {type(logic).__name__}")


def _join(items) -> str:
    return ", ".join(str(item) for item in items)


# Constructors


def all_fields() -> ScopeLogic:
    """Scope containing every field, recursively."""
    return ALL


def no_fields() -> ScopeLogic:
    """Scope containing no fields."""
    return NONE


def field_numbers_scope(*field_numbers: int, recursive: bool = True) -> FieldNumbersScope:
    for number in field_numbers:
        if not isinstance(number, int) or isinstance(number, bool):
            raise InvalidScopeError(f"Field numbers must be integers, got {number!r}")
    return FieldNumbersScope(frozenset(field_numbers), recursive)


def field_descriptors_scope(
    *field_descriptors: FieldDescriptor, recursive: bool = True
) -> FieldDescriptorsScope:
    for fd in field_descriptors:
        if not isinstance(fd, FieldDescriptor):
            raise InvalidScopeError(f"Expected a FieldDescriptor, got {fd!r}")
    return FieldDescriptorsScope(frozenset(field_descriptors), recursive)


def from_set_fields(*messages: Message) -> ScopeLogic:
    """
    Scope containing exactly the field paths set on any of the messages.

    Repeated submessages contribute the union of the paths set on any element.
    """
    if not messages:
        return NONE

    descriptor = messages[0].descriptor
    scopes = []
    for message in messages:
        if message.descriptor is not descriptor:
            raise InvalidScopeError(
                f"Cannot create scope from messages with different descriptors: "
                f"{descriptor.full_name}, {message.descriptor.full_name}",
                type_name=message.descriptor.full_name,
            )
        scopes.append(SelectorScope(FieldSelector.from_message(message), descriptor))
    return union_all(*scopes)


def ignoring_fields(*field_numbers: int) -> ScopeLogic:
    return ALL.ignoring_fields(*field_numbers)


def ignoring_field_descriptors(*field_descriptors: FieldDescriptor) -> ScopeLogic:
    return ALL.ignoring_field_descriptors(*field_descriptors)


def allowing_fields(*field_numbers: int) -> ScopeLogic:
    return NONE.allowing_fields(*field_numbers)


def allowing_field_descriptors(*field_descriptors: FieldDescriptor) -> ScopeLogic:
    return NONE.allowing_field_descriptors(*field_descriptors)


def intersect_all(*logics: ScopeLogic) -> ScopeLogic:
    if not logics:
        return ALL
    return reduce(lambda acc, logic: IntersectionScope(logic, acc), reversed(logics[:-1]), logics[-1])


def union_all(*logics: ScopeLogic) -> ScopeLogic:
    if not logics:
        return NONE
    return reduce(lambda acc, logic: UnionScope(logic, acc), reversed(logics[:-1]), logics[-1])
