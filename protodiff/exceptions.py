"""Custom exceptions for ProtoDiff engine."""


class ProtoDiffError(Exception):
    """Base exception for ProtoDiff errors."""
    pass


class ValidationError(ProtoDiffError):
    """Raised when a message payload does not fit its schema."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SchemaParseError(ProtoDiffError):
    """Raised when schema parsing fails."""
    def __init__(self, message: str, type_name: str = None, reason: str = None):
        super().__init__(message)
        self.message = message
        self.type_name = type_name
        self.reason = reason


class SchemaMismatchError(ProtoDiffError):
    """Raised when the actual and expected messages have different schemas."""
    def __init__(self, actual_type: str, expected_type: str):
        super().__init__(
            f"The actual [{actual_type}] and expected [{expected_type}] "
            f"message descriptors do not match."
        )
        self.actual_type = actual_type
        self.expected_type = expected_type


class InvalidScopeError(ProtoDiffError):
    """Raised when a field scope or policy is not valid for a schema."""
    def __init__(self, message: str, type_name: str = None):
        super().__init__(message)
        self.message = message
        self.type_name = type_name


class ConfigError(ProtoDiffError):
    """Raised when a comparison configuration document is invalid."""
    def __init__(self, message: str, key: str = None):
        super().__init__(message)
        self.message = message
        self.key = key


class MaxDepthExceededError(ProtoDiffError):
    """Raised when maximum recursion depth is exceeded."""
    def __init__(self, depth: int, path: str):
        super().__init__(f"Maximum depth ({depth}) exceeded at path: {path}")
        self.depth = depth
        self.path = path
