"""Exception types shared across the service.

Configuration and validation errors are meant to reach the caller.
Cache errors are caught by CacheManager and degrade to a miss.
API errors propagate with the upstream status attached.
"""

from enum import Enum
from typing import Any


class PodmatchError(Exception):
    """Base class for all service errors."""


class ConfigurationError(PodmatchError):
    """Invalid construction parameters. Fatal, never retried."""


class MatchValidationError(PodmatchError):
    """A match batch failed validation; the whole batch is rejected."""

    def __init__(self, message: str, index: int | None = None, field: str | None = None):
        super().__init__(message)
        self.index = index
        self.field = field


class CacheErrorKind(str, Enum):
    STORAGE_ERROR = "STORAGE_ERROR"
    RETRIEVAL_ERROR = "RETRIEVAL_ERROR"
    INVALIDATION_ERROR = "INVALIDATION_ERROR"


class CacheError(PodmatchError):
    def __init__(self, message: str, kind: CacheErrorKind, details: Any = None):
        super().__init__(message)
        self.kind = kind
        self.details = details


class ApiError(PodmatchError):
    """Upstream HTTP failure. ``status_code`` is None for transport errors."""

    def __init__(self, status_code: int | None, message: str):
        super().__init__(f"[{status_code}] {message}" if status_code else message)
        self.status_code = status_code
        self.message = message


class PersistenceError(PodmatchError):
    pass


class DuplicateRecordError(PersistenceError):
    pass


class RecordNotFoundError(PersistenceError):
    pass


class InvalidStatusTransitionError(PersistenceError):
    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move match from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class InvalidRecordError(PersistenceError):
    """Input that cannot be stored as given (missing reason, contact details...)."""
