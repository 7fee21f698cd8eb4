"""Structural comparison of two messages under a field scope."""

from __future__ import annotations

from typing import Any, Optional

from .models import EngineConfig, ScopeResult, Verdict, VerdictBuilder, WireType, WIRE_TYPE_ORDER
from .schema import FieldDescriptor
from .message import (
    EMPTY_UNKNOWN_FIELDS,
    Message,
    UnknownField,
    UnknownFieldKey,
    UnknownFieldSet,
)
from .policy import ComparisonScopes
from .result import (
    DiffResult,
    DiffResultBuilder,
    FieldDiff,
    PairResult,
    RepeatedFieldDiff,
    SingularFieldDiff,
    UnknownFieldSetDiff,
)
from .comparators import compare_opaque, compare_scalar
from .exceptions import MaxDepthExceededError
from .utils import build_path, indexed_name, keyed_name

_EMPTY_UNKNOWN_FIELD = UnknownField()


class Differ:
    """
    Performs the recursive comparison of two messages of the same type.

    Handles:
    - Scope decisions, skipping whole subtrees on recursive exclusions
    - Repeated fields by index, ignoring order, or as a subsequence
    - Map fields by key
    - Floating point tolerances
    - Unknown fields, by number and wire type
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.fields_compared = 0

    def diff(
        self,
        actual: Message,
        expected: Message,
        scopes: ComparisonScopes,
        path: str = "",
        depth: int = 0
    ) -> DiffResult:
        """
        Compare two messages.

        Args:
            actual: The actual message
            expected: The expected message
            scopes: Scope and per-field settings positioned at these messages
            path: Dotted field path of these messages, for error reporting
            depth: Current nesting depth

        Returns:
            The diff of every field set on either side
        """
        if depth > self.config.max_depth:
            raise MaxDepthExceededError(depth, path or "<root>")

        # A max_depth above the interpreter's recursion limit still ends in
        # MaxDepthExceededError.
        try:
            return self._diff_message(actual, expected, scopes, path, depth)
        except RecursionError:
            raise MaxDepthExceededError(depth, path or "<root>")

    def _diff_message(
        self,
        actual: Message,
        expected: Message,
        scopes: ComparisonScopes,
        path: str,
        depth: int
    ) -> DiffResult:
        builder = DiffResultBuilder(actual, expected)
        actual_fields = actual.all_fields()
        expected_fields = expected.all_fields()
        fds = sorted(
            set(actual_fields) | set(expected_fields),
            key=lambda fd: fd.number,
        )

        for fd in fds:
            if fd.is_map:
                diffs = self._diff_map_field(
                    fd, actual_fields.get(fd, ()), expected_fields.get(fd, ()), scopes, path, depth
                )
            elif fd.is_repeated:
                diffs = self._diff_repeated_field(
                    fd, actual_fields.get(fd, ()), expected_fields.get(fd, ()), scopes, path, depth
                )
            else:
                diffs = [self._diff_singular_field(
                    fd, actual_fields.get(fd), expected_fields.get(fd), scopes, path, depth
                )]
            for field_diff in diffs:
                builder.add_field(field_diff)

        # Unknown fields have no defaults to compare against.
        if not scopes.hides_unknown_field_absence():
            builder.set_unknown_fields(self._diff_unknown_fields(
                actual.unknown_fields, expected.unknown_fields, scopes, path, depth
            ))

        return builder.build()

    # Singular values

    def _diff_singular_field(
        self,
        fd: FieldDescriptor,
        actual: Any,
        expected: Any,
        scopes: ComparisonScopes,
        path: str,
        depth: int
    ) -> SingularFieldDiff:
        result = scopes.policy_for(fd)
        if result == ScopeResult.EXCLUDED_RECURSIVELY:
            return SingularFieldDiff(fd.name, fd, Verdict.IGNORED, actual, expected)

        if scopes.ignores_field_absence(fd):
            if actual is None:
                actual = fd.default_value()
            if expected is None:
                expected = fd.default_value()

        return self._diff_value(fd.name, fd, actual, expected, scopes, result, path, depth)

    def _diff_value(
        self,
        name: str,
        fd: FieldDescriptor,
        actual: Any,
        expected: Any,
        scopes: ComparisonScopes,
        result: ScopeResult,
        path: str,
        depth: int
    ) -> SingularFieldDiff:
        """Compare one value of a field; None means the value is absent."""
        if not fd.is_message and not result.included:
            return SingularFieldDiff(name, fd, Verdict.IGNORED, actual, expected)

        verdict = VerdictBuilder()
        verdict.mark_removed_if(actual is None)
        verdict.mark_added_if(expected is None)

        if fd.is_message:
            default = Message.default_instance(fd.message_type)
            breakdown = self.diff(
                default if actual is None else actual,
                default if expected is None else expected,
                scopes.sub_scope(fd),
                build_path(path, name),
                depth + 1,
            )
            if not result.included and breakdown.is_ignored():
                return SingularFieldDiff(name, fd, Verdict.IGNORED, actual, expected)
            verdict.mark_modified_if(not breakdown.is_matched())
            return SingularFieldDiff(name, fd, verdict.build(), actual, expected, breakdown)

        self.fields_compared += 1
        if actual is not None and expected is not None:
            tolerance = scopes.tolerance_for(fd)
            verdict.mark_modified_if(not compare_scalar(fd.type, actual, expected, tolerance))
        return SingularFieldDiff(name, fd, verdict.build(), actual, expected)

    # Maps

    def _diff_map_field(
        self,
        fd: FieldDescriptor,
        actual_entries: tuple,
        expected_entries: tuple,
        scopes: ComparisonScopes,
        path: str,
        depth: int
    ) -> list[SingularFieldDiff]:
        result = scopes.policy_for(fd)
        if result == ScopeResult.EXCLUDED_RECURSIVELY:
            return [SingularFieldDiff(fd.name, fd, Verdict.IGNORED, actual_entries, expected_entries)]

        entry_type = fd.message_type
        key_fd = entry_type.find_field_by_number(1)
        value_fd = entry_type.find_field_by_number(2)

        # Keys are always compared; only the value position is scoped.
        entry_scopes = scopes.sub_scope(fd)
        value_result = entry_scopes.policy_for(value_fd)
        if value_result == ScopeResult.EXCLUDED_RECURSIVELY or (
            not value_fd.is_message and not value_result.included
        ):
            return [SingularFieldDiff(fd.name, fd, Verdict.IGNORED, actual_entries, expected_entries)]

        actual_map = _map_values(actual_entries, key_fd, value_fd)
        expected_map = _map_values(expected_entries, key_fd, value_fd)
        ignore_extra = bool(expected_map) and scopes.ignores_extra_repeated_field_elements(fd)

        keys = list(actual_map) + [key for key in expected_map if key not in actual_map]
        diffs = []
        for key in keys:
            name = keyed_name(fd.name, key)
            actual = actual_map.get(key)
            expected = expected_map.get(key)
            if expected is None and ignore_extra:
                diffs.append(SingularFieldDiff(name, value_fd, Verdict.IGNORED, actual, None))
                continue
            diffs.append(self._diff_value(
                name, value_fd, actual, expected, entry_scopes, value_result, path, depth,
            ))

        if not result.included and diffs and all(d.is_ignored() for d in diffs):
            return [SingularFieldDiff(fd.name, fd, Verdict.IGNORED, actual_entries, expected_entries)]
        return diffs

    # Repeated fields

    def _diff_repeated_field(
        self,
        fd: FieldDescriptor,
        actual: tuple,
        expected: tuple,
        scopes: ComparisonScopes,
        path: str,
        depth: int
    ) -> list[FieldDiff]:
        result = scopes.policy_for(fd)
        if result == ScopeResult.EXCLUDED_RECURSIVELY or (not fd.is_message and not result.included):
            return [SingularFieldDiff(fd.name, fd, Verdict.IGNORED, actual, expected)]

        if scopes.ignores_repeated_field_order(fd):
            diffs = [self._diff_unordered(fd, actual, expected, scopes, result, path, depth)]
        elif expected and scopes.ignores_extra_repeated_field_elements(fd):
            diffs = [self._diff_subsequence(fd, actual, expected, scopes, result, path, depth)]
        else:
            diffs = [
                self._diff_value(
                    indexed_name(fd.name, i),
                    fd,
                    actual[i] if i < len(actual) else None,
                    expected[i] if i < len(expected) else None,
                    scopes,
                    result,
                    path,
                    depth,
                )
                for i in range(max(len(actual), len(expected)))
            ]

        if not result.included and all(d.is_ignored() for d in diffs):
            return [SingularFieldDiff(fd.name, fd, Verdict.IGNORED, actual, expected)]
        return diffs

    def _compare_elements(
        self,
        fd: FieldDescriptor,
        index: int,
        actual: Any,
        expected: Any,
        scopes: ComparisonScopes,
        result: ScopeResult,
        path: str,
        depth: int
    ) -> tuple[Verdict, Optional[DiffResult]]:
        """Compare one candidate pairing of repeated field elements."""
        if not fd.is_message:
            self.fields_compared += 1
            matched = compare_scalar(fd.type, actual, expected, scopes.tolerance_for(fd))
            return (Verdict.MATCHED if matched else Verdict.MODIFIED), None

        breakdown = self.diff(
            actual, expected, scopes.sub_scope(fd), build_path(path, indexed_name(fd.name, index)), depth + 1
        )
        if not result.included and breakdown.is_ignored():
            return Verdict.IGNORED, breakdown
        return (Verdict.MATCHED if breakdown.is_matched() else Verdict.MODIFIED), breakdown

    def _unpaired(
        self,
        fd: FieldDescriptor,
        verdict: Verdict,
        actual_index: Optional[int],
        expected_index: Optional[int],
        actual: Any,
        expected: Any,
        scopes: ComparisonScopes,
        result: ScopeResult,
        path: str,
        depth: int
    ) -> PairResult:
        """
        An element left without a partner.

        When the field itself is excluded but some descendant may not be,
        the element is compared against the default instance and reported
        IGNORED if nothing in scope differs.
        """
        if verdict != Verdict.IGNORED and not result.included:
            default = Message.default_instance(fd.message_type)
            index = actual_index if actual_index is not None else expected_index
            compared, breakdown = self._compare_elements(
                fd,
                index,
                default if actual is None else actual,
                default if expected is None else expected,
                scopes,
                result,
                path,
                depth,
            )
            if compared == Verdict.IGNORED:
                return PairResult(Verdict.IGNORED, actual_index, expected_index, actual, expected, breakdown)
        return PairResult(verdict, actual_index, expected_index, actual, expected)

    def _diff_unordered(
        self,
        fd: FieldDescriptor,
        actual: tuple,
        expected: tuple,
        scopes: ComparisonScopes,
        result: ScopeResult,
        path: str,
        depth: int
    ) -> RepeatedFieldDiff:
        """
        Pair elements regardless of order.

        Each actual element, in order, takes the first remaining expected
        element it fully matches. This is a greedy matching, not a maximum
        one, so some inputs with many near-duplicate elements can report a
        mismatch an optimal pairing would avoid.
        """
        pairs = []
        remaining = list(range(len(expected)))
        unmatched_actual = []

        for i, actual_element in enumerate(actual):
            for j in remaining:
                verdict, breakdown = self._compare_elements(
                    fd, i, actual_element, expected[j], scopes, result, path, depth
                )
                if verdict.is_matched:
                    pairs.append(PairResult(verdict, i, j, actual_element, expected[j], breakdown))
                    remaining.remove(j)
                    break
            else:
                unmatched_actual.append(i)

        extra_verdict = Verdict.ADDED
        if expected and scopes.ignores_extra_repeated_field_elements(fd):
            extra_verdict = Verdict.IGNORED
        for i in unmatched_actual:
            pairs.append(self._unpaired(
                fd, extra_verdict, i, None, actual[i], None, scopes, result, path, depth
            ))
        for j in remaining:
            pairs.append(self._unpaired(
                fd, Verdict.REMOVED, None, j, None, expected[j], scopes, result, path, depth
            ))

        return RepeatedFieldDiff(fd.name, fd, pairs, actual, expected)

    def _diff_subsequence(
        self,
        fd: FieldDescriptor,
        actual: tuple,
        expected: tuple,
        scopes: ComparisonScopes,
        result: ScopeResult,
        path: str,
        depth: int
    ) -> RepeatedFieldDiff:
        """
        Match expected elements, in order, against a subsequence of actual.

        An expected element found only among the actual elements already
        passed over is reported MOVED_OUT_OF_ORDER. Actual elements never
        paired are ignored.
        """
        pairs = []
        cursor = 0
        skipped: list[int] = []

        for j, expected_element in enumerate(expected):
            found = None
            for i in range(cursor, len(actual)):
                verdict, breakdown = self._compare_elements(
                    fd, i, actual[i], expected_element, scopes, result, path, depth
                )
                if verdict.is_matched:
                    found = (i, verdict, breakdown)
                    break

            if found is not None:
                i, verdict, breakdown = found
                skipped.extend(range(cursor, i))
                cursor = i + 1
                pairs.append(PairResult(verdict, i, j, actual[i], expected_element, breakdown))
                continue

            for i in skipped:
                verdict, breakdown = self._compare_elements(
                    fd, i, actual[i], expected_element, scopes, result, path, depth
                )
                if verdict.is_matched:
                    skipped.remove(i)
                    pairs.append(PairResult(
                        Verdict.MOVED_OUT_OF_ORDER, i, j, actual[i], expected_element, breakdown
                    ))
                    break
            else:
                pairs.append(self._unpaired(
                    fd, Verdict.REMOVED, None, j, None, expected_element, scopes, result, path, depth
                ))

        for i in skipped + list(range(cursor, len(actual))):
            pairs.append(PairResult(Verdict.IGNORED, i, None, actual[i], None))

        return RepeatedFieldDiff(fd.name, fd, pairs, actual, expected)

    # Unknown fields

    def _diff_unknown_fields(
        self,
        actual: UnknownFieldSet,
        expected: UnknownFieldSet,
        scopes: ComparisonScopes,
        path: str,
        depth: int
    ) -> UnknownFieldSetDiff:
        if depth > self.config.max_depth:
            raise MaxDepthExceededError(depth, path or "<root>")

        actual_map = actual.as_map()
        expected_map = expected.as_map()
        diffs = []

        for number in sorted(set(actual_map) | set(expected_map)):
            actual_field = actual_map.get(number, _EMPTY_UNKNOWN_FIELD)
            expected_field = expected_map.get(number, _EMPTY_UNKNOWN_FIELD)

            for wire_type in WIRE_TYPE_ORDER:
                actual_values = actual_field.values(wire_type)
                expected_values = expected_field.values(wire_type)
                if not actual_values and not expected_values:
                    continue

                key = UnknownFieldKey(number, wire_type)
                base_name = f"{number}:{wire_type.key}"
                result = scopes.policy_for(key)
                if result == ScopeResult.EXCLUDED_RECURSIVELY:
                    diffs.append(SingularFieldDiff(
                        base_name, key, Verdict.IGNORED, actual_values, expected_values
                    ))
                    continue

                for i in range(max(len(actual_values), len(expected_values))):
                    diffs.append(self._diff_unknown_value(
                        indexed_name(base_name, i),
                        key,
                        actual_values[i] if i < len(actual_values) else None,
                        expected_values[i] if i < len(expected_values) else None,
                        scopes,
                        result,
                        path,
                        depth,
                    ))

        return UnknownFieldSetDiff(diffs)

    def _diff_unknown_value(
        self,
        name: str,
        key: UnknownFieldKey,
        actual: Any,
        expected: Any,
        scopes: ComparisonScopes,
        result: ScopeResult,
        path: str,
        depth: int
    ) -> SingularFieldDiff:
        verdict = VerdictBuilder()
        verdict.mark_removed_if(actual is None)
        verdict.mark_added_if(expected is None)

        if key.wire_type == WireType.GROUP:
            breakdown = self._diff_unknown_fields(
                EMPTY_UNKNOWN_FIELDS if actual is None else actual,
                EMPTY_UNKNOWN_FIELDS if expected is None else expected,
                scopes.sub_scope(key),
                build_path(path, name),
                depth + 1,
            )
            if not result.included and breakdown.is_ignored():
                return SingularFieldDiff(name, key, Verdict.IGNORED, actual, expected)
            verdict.mark_modified_if(not breakdown.is_matched())
            return SingularFieldDiff(name, key, verdict.build(), actual, expected, breakdown)

        if not result.included:
            return SingularFieldDiff(name, key, Verdict.IGNORED, actual, expected)
        self.fields_compared += 1
        verdict.mark_modified_if(not compare_opaque(actual, expected))
        return SingularFieldDiff(name, key, verdict.build(), actual, expected)


def _map_values(entries: tuple, key_fd: FieldDescriptor, value_fd: FieldDescriptor) -> dict:
    """Flatten map entries to key -> value; the last entry for a key wins."""
    values = {}
    for entry in entries:
        values[entry.get_field(key_fd)] = entry.get_field(value_fd)
    return values
