"""Main comparison engine for ProtoDiff."""

from __future__ import annotations

import logging
import time
from typing import Optional

from .models import EngineConfig
from .schema import MessageDescriptor
from .message import Message
from .scope import ALL, ScopeCache, ScopeLogic, from_set_fields
from .policy import ComparisonScopes, DiffPolicy
from .differ import Differ
from .result import DiffResult
from .exceptions import SchemaMismatchError, ValidationError

logger = logging.getLogger(__name__)


class DiffEngine:
    """
    Compares messages under a fixed scope and policy.

    The scope and policy are validated against each message type the first
    time the engine sees it. Every call to diff() uses its own scope cache,
    so one engine may be reused for any number of comparisons.

    Usage:
        engine = DiffEngine(scope=ignoring_fields(3), policy=DiffPolicy().ignoring_repeated_field_order())
        result = engine.diff(actual, expected)
        assert result.is_matched()
    """

    def __init__(
        self,
        scope: Optional[ScopeLogic] = None,
        policy: Optional[DiffPolicy] = None,
        config: Optional[EngineConfig] = None
    ):
        """
        Initialize the engine.

        Args:
            scope: Fields to compare (all fields if not provided)
            policy: How to compare them (exact comparison if not provided)
            config: Engine configuration (uses defaults if not provided)
        """
        self.scope = scope if scope is not None else ALL
        self.policy = policy if policy is not None else DiffPolicy()
        self.config = config or EngineConfig()
        self._validated: set[MessageDescriptor] = set()

    def diff(self, actual: Message, expected: Message) -> DiffResult:
        """
        Compare two messages of the same type.

        Args:
            actual: The message under test
            expected: The reference message

        Returns:
            DiffResult tree; ``result.is_matched()`` gives the overall outcome

        Raises:
            SchemaMismatchError: if the messages have different types
            InvalidScopeError: if the scope or policy does not fit the type
        """
        self._validate_inputs(actual, expected)
        descriptor = actual.descriptor
        self.validate(descriptor)

        scope = self.scope
        if self.policy.compare_expected_fields_only:
            scope = scope.intersect(from_set_fields(expected))

        start_time = time.time()
        cache = ScopeCache(descriptor)
        differ = Differ(self.config)
        result = differ.diff(actual, expected, ComparisonScopes.root(scope, self.policy, cache))

        logger.debug(
            "Compared %s: matched=%s, %d values compared, %d scope cache entries, %.1f ms",
            descriptor.full_name,
            result.is_matched(),
            differ.fields_compared,
            len(cache),
            (time.time() - start_time) * 1000,
        )
        return result

    def validate(self, descriptor: MessageDescriptor):
        """Validate the scope and policy against a message type, once per type."""
        if descriptor in self._validated:
            return
        self.scope.validate(descriptor)
        self.policy.validate(descriptor)
        self._validated.add(descriptor)

    def _validate_inputs(self, actual: Message, expected: Message):
        """Validate input parameters."""
        if not isinstance(actual, Message):
            raise ValidationError(
                "actual must be a Message",
                {"type": type(actual).__name__}
            )
        if not isinstance(expected, Message):
            raise ValidationError(
                "expected must be a Message",
                {"type": type(expected).__name__}
            )
        if actual.descriptor is not expected.descriptor:
            raise SchemaMismatchError(
                actual.descriptor.full_name,
                expected.descriptor.full_name,
            )


def diff(
    actual: Message,
    expected: Message,
    scope: Optional[ScopeLogic] = None,
    policy: Optional[DiffPolicy] = None,
    config: Optional[EngineConfig] = None
) -> DiffResult:
    """Compare two messages with a one-off engine."""
    return DiffEngine(scope, policy, config).diff(actual, expected)
