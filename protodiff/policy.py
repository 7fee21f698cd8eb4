"""Comparison policies: which fields get which comparison behaviour."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional

from .scope import (
    ALL,
    NONE,
    FieldValidator,
    ScopeCache,
    ScopeLogic,
    field_descriptors_scope,
    field_numbers_scope,
)
from .models import FieldType
from .scope_map import ScopedValueMap
from .schema import FieldDescriptor, MessageDescriptor
from .message import FieldStep
from .exceptions import InvalidScopeError
from .utils import is_finite_number


def _check_tolerance(tolerance: float) -> float:
    if not is_finite_number(tolerance) or tolerance < 0:
        raise InvalidScopeError(f"Tolerance must be a finite, non-negative number: {tolerance!r}")
    return float(tolerance)


def _add(current: ScopeLogic, addition: ScopeLogic) -> ScopeLogic:
    if current.is_none():
        return addition
    return current.union(addition)


@dataclass(frozen=True)
class DiffPolicy:
    """
    How fields are compared, as opposed to which fields are compared.

    Each boolean setting is held as the scope of fields it applies to, so it
    can be switched on globally or for specific fields. Settings for specific
    fields apply to those fields only, not to their descendants. Builder
    methods return a modified copy.
    """
    ignore_field_absence_scope: ScopeLogic = NONE
    ignore_repeated_field_order_scope: ScopeLogic = NONE
    ignore_extra_repeated_field_elements_scope: ScopeLogic = NONE
    double_tolerances: ScopedValueMap = field(default_factory=ScopedValueMap.empty)
    float_tolerances: ScopedValueMap = field(default_factory=ScopedValueMap.empty)
    compare_expected_fields_only: bool = False

    @classmethod
    def from_flags(
        cls,
        ignore_field_absence: bool = False,
        ignore_repeated_field_order: bool = False,
        ignore_extra_repeated_field_elements: bool = False,
        comparing_expected_fields_only: bool = False,
        double_tolerance: Optional[float] = None,
        float_tolerance: Optional[float] = None,
    ) -> DiffPolicy:
        """Build a policy from global switches."""
        policy = cls()
        if ignore_field_absence:
            policy = policy.ignoring_field_absence()
        if ignore_repeated_field_order:
            policy = policy.ignoring_repeated_field_order()
        if ignore_extra_repeated_field_elements:
            policy = policy.ignoring_extra_repeated_field_elements()
        if comparing_expected_fields_only:
            policy = policy.comparing_expected_fields_only()
        if double_tolerance is not None:
            policy = policy.using_double_tolerance(double_tolerance)
        if float_tolerance is not None:
            policy = policy.using_float_tolerance(float_tolerance)
        return policy

    # Field absence

    def ignoring_field_absence(self) -> DiffPolicy:
        return replace(self, ignore_field_absence_scope=ALL)

    def ignoring_field_absence_of_fields(self, *field_numbers: int) -> DiffPolicy:
        return replace(self, ignore_field_absence_scope=_add(
            self.ignore_field_absence_scope,
            field_numbers_scope(*field_numbers, recursive=False),
        ))

    def ignoring_field_absence_of_field_descriptors(self, *fds: FieldDescriptor) -> DiffPolicy:
        return replace(self, ignore_field_absence_scope=_add(
            self.ignore_field_absence_scope,
            field_descriptors_scope(*fds, recursive=False),
        ))

    # Repeated field order

    def ignoring_repeated_field_order(self) -> DiffPolicy:
        return replace(self, ignore_repeated_field_order_scope=ALL)

    def ignoring_repeated_field_order_of_fields(self, *field_numbers: int) -> DiffPolicy:
        return replace(self, ignore_repeated_field_order_scope=_add(
            self.ignore_repeated_field_order_scope,
            field_numbers_scope(*field_numbers, recursive=False),
        ))

    def ignoring_repeated_field_order_of_field_descriptors(self, *fds: FieldDescriptor) -> DiffPolicy:
        return replace(self, ignore_repeated_field_order_scope=_add(
            self.ignore_repeated_field_order_scope,
            field_descriptors_scope(*fds, recursive=False),
        ))

    # Extra repeated field elements

    def ignoring_extra_repeated_field_elements(self) -> DiffPolicy:
        return replace(self, ignore_extra_repeated_field_elements_scope=ALL)

    def ignoring_extra_repeated_field_elements_of_fields(self, *field_numbers: int) -> DiffPolicy:
        return replace(self, ignore_extra_repeated_field_elements_scope=_add(
            self.ignore_extra_repeated_field_elements_scope,
            field_numbers_scope(*field_numbers, recursive=False),
        ))

    def ignoring_extra_repeated_field_elements_of_field_descriptors(
        self, *fds: FieldDescriptor
    ) -> DiffPolicy:
        return replace(self, ignore_extra_repeated_field_elements_scope=_add(
            self.ignore_extra_repeated_field_elements_scope,
            field_descriptors_scope(*fds, recursive=False),
        ))

    # Tolerances

    def using_double_tolerance(self, tolerance: float) -> DiffPolicy:
        return replace(self, double_tolerances=self.double_tolerances.with_(
            ALL, _check_tolerance(tolerance)))

    def using_double_tolerance_for_fields(self, tolerance: float, *field_numbers: int) -> DiffPolicy:
        return replace(self, double_tolerances=self.double_tolerances.with_(
            field_numbers_scope(*field_numbers, recursive=False), _check_tolerance(tolerance)))

    def using_double_tolerance_for_field_descriptors(
        self, tolerance: float, *fds: FieldDescriptor
    ) -> DiffPolicy:
        return replace(self, double_tolerances=self.double_tolerances.with_(
            field_descriptors_scope(*fds, recursive=False), _check_tolerance(tolerance)))

    def using_float_tolerance(self, tolerance: float) -> DiffPolicy:
        return replace(self, float_tolerances=self.float_tolerances.with_(
            ALL, _check_tolerance(tolerance)))

    def using_float_tolerance_for_fields(self, tolerance: float, *field_numbers: int) -> DiffPolicy:
        return replace(self, float_tolerances=self.float_tolerances.with_(
            field_numbers_scope(*field_numbers, recursive=False), _check_tolerance(tolerance)))

    def using_float_tolerance_for_field_descriptors(
        self, tolerance: float, *fds: FieldDescriptor
    ) -> DiffPolicy:
        return replace(self, float_tolerances=self.float_tolerances.with_(
            field_descriptors_scope(*fds, recursive=False), _check_tolerance(tolerance)))

    def comparing_expected_fields_only(self) -> DiffPolicy:
        return replace(self, compare_expected_fields_only=True)

    def validate(self, root_descriptor: MessageDescriptor):
        """
        Check every field named by a setting suits that setting.

        Raises:
            InvalidScopeError: e.g. ignoring the absence of a repeated field
        """
        self.ignore_field_absence_scope.validate(
            root_descriptor, FieldValidator.IS_FIELD_WITH_ABSENCE)
        self.ignore_repeated_field_order_scope.validate(
            root_descriptor, FieldValidator.IS_FIELD_WITH_ORDER)
        self.ignore_extra_repeated_field_elements_scope.validate(
            root_descriptor, FieldValidator.IS_FIELD_WITH_EXTRA_ELEMENTS)
        self.double_tolerances.validate(root_descriptor, FieldValidator.IS_DOUBLE_FIELD)
        self.float_tolerances.validate(root_descriptor, FieldValidator.IS_FLOAT_FIELD)


class ComparisonScopes:
    """
    The comparison scope and every per-field setting, positioned at one
    message in the tree. Moving to a child field sub-scopes all of them
    together.
    """

    def __init__(
        self,
        scope: ScopeLogic,
        absence: ScopeLogic,
        order: ScopeLogic,
        extra_elements: ScopeLogic,
        double_tolerances: ScopedValueMap,
        float_tolerances: ScopedValueMap,
        cache: ScopeCache,
    ):
        self.scope = scope
        self.absence = absence
        self.order = order
        self.extra_elements = extra_elements
        self.double_tolerances = double_tolerances
        self.float_tolerances = float_tolerances
        self.cache = cache

    @classmethod
    def root(cls, scope: ScopeLogic, policy: DiffPolicy, cache: ScopeCache) -> ComparisonScopes:
        return cls(
            scope,
            policy.ignore_field_absence_scope,
            policy.ignore_repeated_field_order_scope,
            policy.ignore_extra_repeated_field_elements_scope,
            policy.double_tolerances,
            policy.float_tolerances,
            cache,
        )

    def sub_scope(self, step: FieldStep) -> ComparisonScopes:
        root = self.cache.root_descriptor
        return ComparisonScopes(
            self.cache.sub_scope(self.scope, step),
            self.cache.sub_scope(self.absence, step),
            self.cache.sub_scope(self.order, step),
            self.cache.sub_scope(self.extra_elements, step),
            self.double_tolerances.sub_scope(root, step, self.cache),
            self.float_tolerances.sub_scope(root, step, self.cache),
            self.cache,
        )

    def policy_for(self, step: FieldStep):
        return self.cache.policy_for(self.scope, step)

    def ignores_field_absence(self, step: FieldStep) -> bool:
        return self.cache.policy_for(self.absence, step).included

    def ignores_repeated_field_order(self, step: FieldStep) -> bool:
        return self.cache.policy_for(self.order, step).included

    def ignores_extra_repeated_field_elements(self, step: FieldStep) -> bool:
        return self.cache.policy_for(self.extra_elements, step).included

    def hides_unknown_field_absence(self) -> bool:
        return self.absence.is_all()

    def tolerance_for(self, fd: FieldDescriptor) -> Optional[float]:
        root = self.cache.root_descriptor
        if fd.type == FieldType.DOUBLE:
            return self.double_tolerances.get(root, fd, self.cache)
        if fd.type == FieldType.FLOAT:
            return self.float_tolerances.get(root, fd, self.cache)
        return None
