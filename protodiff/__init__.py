"""
ProtoDiff - Structural Diff Engine for Schema-Described Messages

Compares two messages of the same schema field by field. A composable field
scope decides which field paths take part in the comparison, and a policy
decides how repeated fields, absent fields and floating point values are
compared. The result is an inspectable tree of per-field verdicts.
"""

from .engine import DiffEngine, diff
from .models import (
    EngineConfig,
    FieldType,
    Label,
    Syntax,
    WireType,
    ScopeResult,
    Verdict,
)
from .schema import (
    FieldDescriptor,
    MessageDescriptor,
    SchemaRegistry,
)
from .message import (
    Message,
    UnknownField,
    UnknownFieldKey,
    UnknownFieldSet,
)
from .selector import FieldSelector
from .scope import (
    FieldValidator,
    ScopeCache,
    ScopeLogic,
    all_fields,
    no_fields,
    from_set_fields,
    ignoring_fields,
    ignoring_field_descriptors,
    allowing_fields,
    allowing_field_descriptors,
    intersect_all,
    union_all,
)
from .scope_map import ScopedValueMap
from .policy import DiffPolicy
from .result import (
    DiffResult,
    SingularFieldDiff,
    RepeatedFieldDiff,
    PairResult,
    UnknownFieldSetDiff,
)
from .config import ComparisonConfig
from .exceptions import (
    ProtoDiffError,
    ValidationError,
    SchemaParseError,
    SchemaMismatchError,
    InvalidScopeError,
    ConfigError,
    MaxDepthExceededError,
)

__version__ = "1.0.0"
__all__ = [
    # Engine
    "DiffEngine",
    "diff",
    "EngineConfig",
    "DiffPolicy",
    # Schema and messages
    "FieldType",
    "Label",
    "Syntax",
    "WireType",
    "FieldDescriptor",
    "MessageDescriptor",
    "SchemaRegistry",
    "Message",
    "UnknownField",
    "UnknownFieldKey",
    "UnknownFieldSet",
    # Scopes
    "FieldSelector",
    "FieldValidator",
    "ScopeCache",
    "ScopeLogic",
    "ScopeResult",
    "ScopedValueMap",
    "all_fields",
    "no_fields",
    "from_set_fields",
    "ignoring_fields",
    "ignoring_field_descriptors",
    "allowing_fields",
    "allowing_field_descriptors",
    "intersect_all",
    "union_all",
    # Results
    "Verdict",
    "DiffResult",
    "SingularFieldDiff",
    "RepeatedFieldDiff",
    "PairResult",
    "UnknownFieldSetDiff",
    # Configuration
    "ComparisonConfig",
    # Errors
    "ProtoDiffError",
    "ValidationError",
    "SchemaParseError",
    "SchemaMismatchError",
    "InvalidScopeError",
    "ConfigError",
    "MaxDepthExceededError",
]
