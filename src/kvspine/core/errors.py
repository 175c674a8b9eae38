"""
Structured error types for kv-spine.

Every failure a datastore caller can observe is a ``KVSpineError`` subclass
carrying a category, a retry hint, structured context and the chained driver
exception (``cause``). Callers branch on the class (``NotFoundError`` vs
``BackendError``); logging and alerting read ``to_dict()``.

Manifesto:
    - **Typed taxonomy:** absence, bad input and backend failure are distinct
      classes, never inferred from message text
    - **Local translation:** "no row" and "0 rows affected" become
      ``NotFoundError`` inside the datastore, raw driver errors never leak
    - **Chaining:** wrapped driver exceptions stay reachable as ``cause`` and
      ``__cause__``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                        KVSpineError                          │
        │        (category, retryable, retry_after, context, cause)    │
        ├──────────────────────────────────────────────────────────────┤
        │                                                              │
        │  InvalidValueError   NotFoundError      BackendError         │
        │  InvalidQueryError   (STORAGE)          (DATABASE)           │
        │  (VALIDATION)                               │                │
        │                              DatabaseConnectionError         │
        │  ConfigError                 TransactionClosedError          │
        │  MissingConfigError          ScanError (PARSE)               │
        │  InvalidConfigError                                          │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> err = NotFoundError("key not found").with_context(key="/a/1", table="kv")
    >>> err.context.key
    '/a/1'
    >>> err.to_dict()["category"]
    'STORAGE'

Tags:
    error-handling, exception-hierarchy, datastore, kv-spine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    DATABASE = "DATABASE"         # Driver, connection, statement failures
    STORAGE = "STORAGE"           # Key absence and datastore-level conditions
    PARSE = "PARSE"               # Row decoding
    VALIDATION = "VALIDATION"     # Bad values, bad query descriptors
    CONFIG = "CONFIG"             # Missing or invalid settings
    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"           # Uncategorized errors


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        operation: Datastore operation that failed (``get``, ``batch.put`` ...)
        key: Datastore key involved, if any
        table: Backing table name
        dialect: Query provider dialect
        statement: SQL text that failed (never parameters, values stay private)
        metadata: Additional key-value pairs
    """

    operation: str | None = None
    key: str | None = None
    table: str | None = None
    dialect: str | None = None
    statement: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for name in ["operation", "key", "table", "dialect", "statement"]:
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class KVSpineError(Exception):
    """
    Base exception for all kv-spine errors.

    Subclasses set ``default_category`` and ``default_retryable``; callers
    may override either per instance.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> KVSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise NotFoundError("key not found").with_context(key=key)
        """
        for name, value in kwargs.items():
            if name != "metadata" and hasattr(self.context, name):
                setattr(self.context, name, value)
            else:
                self.context.metadata[name] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS (raised before any backend call)
# =============================================================================


class ValidationError(KVSpineError):
    """Caller supplied something the datastore refuses to act on."""

    default_category = ErrorCategory.VALIDATION
    default_retryable = False


class InvalidValueError(ValidationError):
    """A write was attempted with no value (``None``)."""

    def __init__(self, message: str = "invalid value type", **kwargs: Any):
        super().__init__(message, **kwargs)


class InvalidQueryError(ValidationError):
    """A query descriptor is malformed (negative limit or offset)."""


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class NotFoundError(KVSpineError):
    """
    Key is not present in the datastore.

    Raised by ``get``, ``delete`` and ``get_size``. ``has`` reports absence as
    ``False`` instead. ``size`` is the sentinel size reported for a missing
    key (always ``-1``).
    """

    default_category = ErrorCategory.STORAGE
    default_retryable = False

    size: int = -1

    def __init__(self, message: str = "datastore: key not found", **kwargs: Any):
        super().__init__(message, **kwargs)


# =============================================================================
# BACKEND ERRORS
# =============================================================================


class BackendError(KVSpineError):
    """Failure surfaced by the relational backend (driver, statement, constraint)."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class DatabaseConnectionError(BackendError):
    """Could not connect to the backend. Usually transient."""

    default_retryable = True


class TransactionClosedError(BackendError):
    """A batch was used after it committed or rolled back."""

    def __init__(
        self,
        message: str = "transaction has already been committed or rolled back",
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)


class ScanError(BackendError):
    """A result row could not be decoded into an entry during iteration."""

    default_category = ErrorCategory.PARSE


# =============================================================================
# CONFIG ERRORS
# =============================================================================


class ConfigError(KVSpineError):
    """Configuration error. Never retryable."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class MissingConfigError(ConfigError):
    """Required configuration is missing."""

    def __init__(self, key: str, message: str | None = None):
        msg = message or f"Missing required configuration: {key}"
        super().__init__(msg)
        self.with_context(config_key=key)


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        msg = message or f"Invalid configuration for {key}: {value!r}"
        super().__init__(msg)
        self.with_context(config_key=key, config_value=str(value))


# =============================================================================
# HELPERS
# =============================================================================


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, KVSpineError):
        return error.retryable
    return isinstance(error, (ConnectionError, OSError))


def get_retry_after(error: BaseException) -> int | None:
    """Get retry delay from error, if specified."""
    if isinstance(error, KVSpineError):
        return error.retry_after
    return None


def categorize_error(error: BaseException) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, KVSpineError):
        return error.category
    if isinstance(error, (ConnectionError, OSError)):
        return ErrorCategory.DATABASE
    if isinstance(error, (ValueError, TypeError)):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "KVSpineError",
    "ValidationError",
    "InvalidValueError",
    "InvalidQueryError",
    "NotFoundError",
    "BackendError",
    "DatabaseConnectionError",
    "TransactionClosedError",
    "ScanError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "is_retryable",
    "get_retry_after",
    "categorize_error",
]
