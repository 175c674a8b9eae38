"""Tests for the kv-spine error hierarchy."""

from __future__ import annotations

import sqlite3

import pytest

from kvspine.core.errors import (
    BackendError,
    ConfigError,
    DatabaseConnectionError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    InvalidQueryError,
    InvalidValueError,
    KVSpineError,
    MissingConfigError,
    NotFoundError,
    ScanError,
    TransactionClosedError,
    ValidationError,
    categorize_error,
    get_retry_after,
    is_retryable,
)


class TestErrorContext:
    def test_empty_to_dict(self):
        assert ErrorContext().to_dict() == {}

    def test_fields_and_metadata(self):
        ctx = ErrorContext(operation="get", key="/a", metadata={"attempt": 2})
        assert ctx.to_dict() == {"operation": "get", "key": "/a", "attempt": 2}


class TestKVSpineError:
    def test_defaults(self):
        err = KVSpineError("boom")
        assert err.message == "boom"
        assert str(err) == "boom"
        assert err.category == ErrorCategory.INTERNAL
        assert err.retryable is False

    def test_with_context_known_and_unknown_fields(self):
        err = KVSpineError("boom").with_context(key="/a", table="kv", attempt=3)
        assert err.context.key == "/a"
        assert err.context.table == "kv"
        assert err.context.metadata == {"attempt": 3}

    def test_cause_is_chained(self):
        cause = sqlite3.OperationalError("disk I/O error")
        err = BackendError("write failed", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "disk I/O error"

    def test_to_dict(self):
        err = NotFoundError().with_context(key="/a")
        d = err.to_dict()
        assert d["error_type"] == "NotFoundError"
        assert d["category"] == "STORAGE"
        assert d["context"] == {"key": "/a"}

    def test_repr(self):
        assert repr(InvalidQueryError("bad")) == "InvalidQueryError('bad', category=VALIDATION)"


class TestHierarchy:
    def test_validation_errors(self):
        assert issubclass(InvalidValueError, ValidationError)
        assert issubclass(InvalidQueryError, ValidationError)
        assert InvalidValueError().category == ErrorCategory.VALIDATION

    def test_invalid_value_default_message(self):
        assert InvalidValueError().message == "invalid value type"

    def test_not_found_sentinel_size(self):
        err = NotFoundError()
        assert err.size == -1
        assert err.message == "datastore: key not found"

    def test_backend_family(self):
        for cls in (DatabaseConnectionError, TransactionClosedError, ScanError):
            assert issubclass(cls, BackendError)

    def test_scan_error_is_parse(self):
        assert ScanError("bad row").category == ErrorCategory.PARSE

    def test_connection_error_retryable(self):
        assert DatabaseConnectionError("refused").retryable is True
        assert BackendError("syntax").retryable is False

    def test_transaction_closed_default_message(self):
        assert "already been committed" in TransactionClosedError().message

    def test_config_errors(self):
        missing = MissingConfigError("password")
        assert isinstance(missing, ConfigError)
        assert missing.context.metadata["config_key"] == "password"
        invalid = InvalidConfigError("table", "a b")
        assert invalid.context.metadata["config_value"] == "a b"

    def test_catch_all_as_base(self):
        with pytest.raises(KVSpineError):
            raise NotFoundError()


class TestHelpers:
    def test_is_retryable(self):
        assert is_retryable(DatabaseConnectionError("x")) is True
        assert is_retryable(NotFoundError()) is False
        assert is_retryable(ConnectionResetError()) is True
        assert is_retryable(ValueError()) is False

    def test_get_retry_after(self):
        assert get_retry_after(BackendError("x", retry_after=5)) == 5
        assert get_retry_after(RuntimeError()) is None

    def test_categorize_error(self):
        assert categorize_error(ScanError("x")) == ErrorCategory.PARSE
        assert categorize_error(OSError()) == ErrorCategory.DATABASE
        assert categorize_error(TypeError()) == ErrorCategory.VALIDATION
        assert categorize_error(RuntimeError()) == ErrorCategory.UNKNOWN
