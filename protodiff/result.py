"""Diff result tree for ProtoDiff engine."""

from __future__ import annotations

from typing import Any, Optional, Union

from .models import Verdict
from .message import FieldStep
from .utils import to_jsonable


class SingularFieldDiff:
    """
    Result of comparing one singular value: a singular field, one element of
    a repeated field compared by index, one map entry, or one unknown value.
    """

    def __init__(
        self,
        name: str,
        step: FieldStep,
        verdict: Verdict,
        actual: Any = None,
        expected: Any = None,
        breakdown: Optional[Union[DiffResult, UnknownFieldSetDiff]] = None,
    ):
        self.name = name
        self.step = step
        self.verdict = verdict
        self.actual = actual
        self.expected = expected
        self.breakdown = breakdown

    def is_matched(self) -> bool:
        return self.verdict.is_matched

    def is_ignored(self) -> bool:
        return self.verdict == Verdict.IGNORED

    def is_any_child_matched(self) -> bool:
        if self.verdict == Verdict.MATCHED:
            return True
        return self.breakdown is not None and self.breakdown.is_any_child_matched()

    def is_any_child_ignored(self) -> bool:
        if self.verdict == Verdict.IGNORED:
            return True
        return self.breakdown is not None and self.breakdown.is_any_child_ignored()

    def to_dict(self) -> dict:
        result = {
            "name": self.name,
            "verdict": self.verdict.value,
            "actual": to_jsonable(self.actual),
            "expected": to_jsonable(self.expected),
        }
        if self.breakdown is not None:
            result["breakdown"] = self.breakdown.to_dict()
        return result

    def __repr__(self) -> str:
        return f"SingularFieldDiff({self.name!r}, {self.verdict.value})"


class PairResult:
    """One actual/expected pairing of a repeated field comparison."""

    def __init__(
        self,
        verdict: Verdict,
        actual_index: Optional[int] = None,
        expected_index: Optional[int] = None,
        actual: Any = None,
        expected: Any = None,
        breakdown: Optional[DiffResult] = None,
    ):
        self.verdict = verdict
        self.actual_index = actual_index
        self.expected_index = expected_index
        self.actual = actual
        self.expected = expected
        self.breakdown = breakdown

    def is_matched(self) -> bool:
        return self.verdict.is_matched

    def is_ignored(self) -> bool:
        return self.verdict == Verdict.IGNORED

    def to_dict(self) -> dict:
        result = {
            "verdict": self.verdict.value,
            "actual_index": self.actual_index,
            "expected_index": self.expected_index,
            "actual": to_jsonable(self.actual),
            "expected": to_jsonable(self.expected),
        }
        if self.breakdown is not None:
            result["breakdown"] = self.breakdown.to_dict()
        return result

    def __repr__(self) -> str:
        return (
            f"PairResult({self.verdict.value}, actual_index={self.actual_index}, "
            f"expected_index={self.expected_index})"
        )


class RepeatedFieldDiff:
    """Result of comparing a repeated field without regard to element positions."""

    def __init__(
        self,
        name: str,
        step: FieldStep,
        pairs: list[PairResult],
        actual: tuple = (),
        expected: tuple = (),
    ):
        self.name = name
        self.step = step
        self.pairs = tuple(pairs)
        self.actual = tuple(actual)
        self.expected = tuple(expected)
        self._matched = all(p.is_matched() for p in self.pairs)
        self._ignored = bool(self.pairs) and all(p.is_ignored() for p in self.pairs)

    @property
    def verdict(self) -> Verdict:
        if self._ignored:
            return Verdict.IGNORED
        return Verdict.MATCHED if self._matched else Verdict.MODIFIED

    def is_matched(self) -> bool:
        return self._matched

    def is_ignored(self) -> bool:
        return self._ignored

    def is_any_child_matched(self) -> bool:
        return any(p.verdict == Verdict.MATCHED for p in self.pairs)

    def is_any_child_ignored(self) -> bool:
        return any(p.is_ignored() for p in self.pairs)

    def pairs_with(self, verdict: Verdict) -> list[PairResult]:
        return [p for p in self.pairs if p.verdict == verdict]

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "verdict": self.verdict.value,
            "pairs": [p.to_dict() for p in self.pairs],
        }

    def __repr__(self) -> str:
        return f"RepeatedFieldDiff({self.name!r}, {self.verdict.value}, {len(self.pairs)} pairs)"


FieldDiff = Union[SingularFieldDiff, RepeatedFieldDiff]


class _FieldDiffs:
    """Shared aggregate predicates over an ordered list of field diffs."""

    def __init__(self, fields: list[FieldDiff]):
        self.fields = tuple(fields)
        self._by_name = {f.name: f for f in self.fields}

    def field(self, name: str) -> Optional[FieldDiff]:
        return self._by_name.get(name)

    def __getitem__(self, name: str) -> FieldDiff:
        return self._by_name[name]

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __iter__(self):
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)


class UnknownFieldSetDiff(_FieldDiffs):
    """Result of comparing two unknown field sets, one diff per value."""

    def __init__(self, fields: list[SingularFieldDiff]):
        super().__init__(fields)
        self._matched = all(f.is_matched() for f in self.fields)
        self._ignored = all(f.is_ignored() for f in self.fields)

    def is_matched(self) -> bool:
        return self._matched

    def is_ignored(self) -> bool:
        return self._ignored

    def is_any_child_matched(self) -> bool:
        return any(f.is_any_child_matched() for f in self.fields)

    def is_any_child_ignored(self) -> bool:
        return any(f.is_any_child_ignored() for f in self.fields)

    def to_dict(self) -> dict:
        return {
            "matched": self._matched,
            "fields": [f.to_dict() for f in self.fields],
        }


class DiffResult(_FieldDiffs):
    """
    Result of comparing two messages.

    Holds one entry per compared field, ordered by field number, and the
    unknown field comparison, if one was made. Immutable once built.
    """

    def __init__(
        self,
        actual: Any,
        expected: Any,
        fields: list[FieldDiff],
        unknown_fields: Optional[UnknownFieldSetDiff] = None,
    ):
        super().__init__(fields)
        self.actual = actual
        self.expected = expected
        self.unknown_fields = unknown_fields

        unknown_matched = unknown_fields is None or unknown_fields.is_matched()
        unknown_ignored = unknown_fields is None or unknown_fields.is_ignored()
        self._matched = unknown_matched and all(f.is_matched() for f in self.fields)
        self._ignored = unknown_ignored and all(f.is_ignored() for f in self.fields)

    @property
    def singular_fields(self) -> list[SingularFieldDiff]:
        return [f for f in self.fields if isinstance(f, SingularFieldDiff)]

    @property
    def repeated_fields(self) -> list[RepeatedFieldDiff]:
        return [f for f in self.fields if isinstance(f, RepeatedFieldDiff)]

    def is_matched(self) -> bool:
        """True if every compared value matched or was ignored."""
        return self._matched

    def is_ignored(self) -> bool:
        """True if every compared value was ignored."""
        return self._ignored

    def is_any_child_matched(self) -> bool:
        if any(f.is_any_child_matched() for f in self.fields):
            return True
        return self.unknown_fields is not None and self.unknown_fields.is_any_child_matched()

    def is_any_child_ignored(self) -> bool:
        if any(f.is_any_child_ignored() for f in self.fields):
            return True
        return self.unknown_fields is not None and self.unknown_fields.is_any_child_ignored()

    def to_dict(self) -> dict:
        result = {
            "matched": self._matched,
            "fields": [f.to_dict() for f in self.fields],
        }
        if self.unknown_fields is not None:
            result["unknown_fields"] = self.unknown_fields.to_dict()
        return result

    def __repr__(self) -> str:
        state = "matched" if self._matched else "mismatched"
        return f"DiffResult({state}, {len(self.fields)} fields)"


class DiffResultBuilder:
    """Accumulates field diffs for one message, then builds the immutable DiffResult."""

    def __init__(self, actual: Any, expected: Any):
        self.actual = actual
        self.expected = expected
        self._fields: list[FieldDiff] = []
        self._unknown_fields: Optional[UnknownFieldSetDiff] = None

    def add_field(self, field_diff: FieldDiff) -> DiffResultBuilder:
        self._fields.append(field_diff)
        return self

    def set_unknown_fields(self, unknown_fields: UnknownFieldSetDiff) -> DiffResultBuilder:
        self._unknown_fields = unknown_fields
        return self

    def build(self) -> DiffResult:
        return DiffResult(self.actual, self.expected, self._fields, self._unknown_fields)
