"""Comparison configuration documents for ProtoDiff engine."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from .models import EngineConfig
from .schema import MessageDescriptor
from .scope import ALL, NONE, ScopeLogic
from .policy import DiffPolicy
from .engine import DiffEngine
from .jsonpath_utils import resolve_field_paths
from .exceptions import ConfigError, InvalidScopeError
from .utils import is_numeric

logger = logging.getLogger(__name__)

_BOOLEAN_KEYS = (
    'ignore_field_absence',
    'ignore_repeated_field_order',
    'ignore_extra_repeated_field_elements',
    'comparing_expected_fields_only',
)

_KNOWN_KEYS = frozenset(_BOOLEAN_KEYS + (
    'ignoring_fields',
    'allowing_fields',
    'ignoring_field_paths',
    'allowing_field_paths',
    'double_tolerance',
    'float_tolerance',
    'field_double_tolerances',
    'field_float_tolerances',
    'ignore_field_absence_of',
    'ignore_repeated_field_order_of',
    'ignore_extra_repeated_field_elements_of',
    'max_depth',
))


class ComparisonConfig:
    """
    A field scope and comparison policy loaded from a configuration document.

    The scope starts from all fields, or from no fields when any
    ``allowing_*`` key is present; allowed fields are added first, then
    ignored fields are removed. Field paths are JSONPath expressions such as
    ``$.header.timestamp``, resolved against the root message type.

    Usage:
        config = ComparisonConfig.from_yaml("comparison.yaml", registry.get("Order"))
        result = config.engine().diff(actual, expected)
    """

    def __init__(
        self,
        descriptor: MessageDescriptor,
        scope: ScopeLogic = ALL,
        policy: Optional[DiffPolicy] = None,
        engine_config: Optional[EngineConfig] = None,
    ):
        self.descriptor = descriptor
        self.scope = scope
        self.policy = policy or DiffPolicy()
        self.engine_config = engine_config or EngineConfig()

    @classmethod
    def from_yaml(cls, path: str | Path, descriptor: MessageDescriptor) -> ComparisonConfig:
        """Load a configuration document from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, 'r') as f:
            content = f.read()

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse config file: {e}")

        logger.debug("Loaded comparison config from %s", path)
        return cls.from_dict(data or {}, descriptor)

    @classmethod
    def from_dict(cls, data: dict, descriptor: MessageDescriptor) -> ComparisonConfig:
        """
        Build a configuration from a parsed document.

        Args:
            data: The configuration mapping
            descriptor: Root message type the configuration applies to

        Returns:
            The validated configuration
        """
        if not isinstance(data, dict):
            raise ConfigError(f"Config document must be a mapping, got {type(data).__name__}")

        unknown = sorted(set(data) - _KNOWN_KEYS)
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}", key=unknown[0])

        try:
            scope = cls._build_scope(data, descriptor)
            policy = cls._build_policy(data, descriptor)
            scope.validate(descriptor)
            policy.validate(descriptor)
        except InvalidScopeError as e:
            raise ConfigError(f"Invalid comparison config: {e}") from e

        engine_config = EngineConfig()
        if 'max_depth' in data:
            engine_config.max_depth = _int(data, 'max_depth')

        logger.debug("Comparison config for %s: scope=%r", descriptor.full_name, scope)
        return cls(descriptor, scope, policy, engine_config)

    @staticmethod
    def _build_scope(data: dict, descriptor: MessageDescriptor) -> ScopeLogic:
        allowing_numbers = _int_list(data, 'allowing_fields')
        allowing_paths = _str_list(data, 'allowing_field_paths')
        scope = NONE if ('allowing_fields' in data or 'allowing_field_paths' in data) else ALL

        scope = scope.allowing_fields(*allowing_numbers)
        scope = scope.allowing_field_descriptors(*resolve_field_paths(descriptor, allowing_paths))
        scope = scope.ignoring_fields(*_int_list(data, 'ignoring_fields'))
        scope = scope.ignoring_field_descriptors(
            *resolve_field_paths(descriptor, _str_list(data, 'ignoring_field_paths'))
        )
        return scope

    @staticmethod
    def _build_policy(data: dict, descriptor: MessageDescriptor) -> DiffPolicy:
        flags = {key: _bool(data, key) for key in _BOOLEAN_KEYS}
        policy = DiffPolicy.from_flags(
            double_tolerance=_number(data, 'double_tolerance'),
            float_tolerance=_number(data, 'float_tolerance'),
            **flags,
        )

        fds = resolve_field_paths(descriptor, _str_list(data, 'ignore_field_absence_of'))
        if fds:
            policy = policy.ignoring_field_absence_of_field_descriptors(*fds)
        fds = resolve_field_paths(descriptor, _str_list(data, 'ignore_repeated_field_order_of'))
        if fds:
            policy = policy.ignoring_repeated_field_order_of_field_descriptors(*fds)
        fds = resolve_field_paths(
            descriptor, _str_list(data, 'ignore_extra_repeated_field_elements_of')
        )
        if fds:
            policy = policy.ignoring_extra_repeated_field_elements_of_field_descriptors(*fds)

        for path, tolerance in _tolerance_map(data, 'field_double_tolerances').items():
            fds = resolve_field_paths(descriptor, [path])
            policy = policy.using_double_tolerance_for_field_descriptors(tolerance, *fds)
        for path, tolerance in _tolerance_map(data, 'field_float_tolerances').items():
            fds = resolve_field_paths(descriptor, [path])
            policy = policy.using_float_tolerance_for_field_descriptors(tolerance, *fds)
        return policy

    def engine(self) -> DiffEngine:
        """A DiffEngine using this configuration."""
        return DiffEngine(self.scope, self.policy, self.engine_config)

    def to_dict(self) -> dict:
        return {
            "type": self.descriptor.full_name,
            "scope": repr(self.scope),
            "max_depth": self.engine_config.max_depth,
        }


def _bool(data: dict, key: str) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false, got {value!r}", key=key)
    return value


def _int(data: dict, key: str) -> int:
    value = data[key]
    if not isinstance(value, int) or isinstance(value, bool):
        raise ConfigError(f"'{key}' must be an integer, got {value!r}", key=key)
    return value


def _number(data: dict, key: str) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    if not is_numeric(value):
        raise ConfigError(f"'{key}' must be a number, got {value!r}", key=key)
    return value


def _int_list(data: dict, key: str) -> list[int]:
    values = _list(data, key)
    for value in values:
        if not isinstance(value, int) or isinstance(value, bool):
            raise ConfigError(f"'{key}' must list field numbers, got {value!r}", key=key)
    return values


def _str_list(data: dict, key: str) -> list[str]:
    values = _list(data, key)
    for value in values:
        if not isinstance(value, str):
            raise ConfigError(f"'{key}' must list field paths, got {value!r}", key=key)
    return values


def _list(data: dict, key: str) -> list[Any]:
    values = data.get(key) or []
    if not isinstance(values, list):
        raise ConfigError(f"'{key}' must be a list", key=key)
    return values


def _tolerance_map(data: dict, key: str) -> dict[str, float]:
    values = data.get(key) or {}
    if not isinstance(values, dict):
        raise ConfigError(f"'{key}' must map field paths to tolerances", key=key)
    for path, tolerance in values.items():
        if not is_numeric(tolerance):
            raise ConfigError(f"'{key}': tolerance for '{path}' must be a number", key=key)
    return values
