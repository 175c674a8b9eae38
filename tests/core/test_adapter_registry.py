"""Tests for the adapter registry."""

from __future__ import annotations

import pytest

from kvspine.core.adapters import (
    AdapterRegistry,
    DatabaseType,
    PostgreSQLAdapter,
    SQLiteAdapter,
    adapter_registry,
    get_adapter,
)
from kvspine.core.errors import ConfigError


class TestAdapterRegistry:
    def test_defaults(self):
        assert adapter_registry.list_adapters() == ["postgres", "postgresql", "sqlite"]

    def test_get_adapter_by_enum(self):
        assert isinstance(get_adapter(DatabaseType.SQLITE), SQLiteAdapter)
        assert isinstance(get_adapter(DatabaseType.POSTGRESQL), PostgreSQLAdapter)

    def test_kwargs_forwarded(self):
        adapter = get_adapter("sqlite", path="/tmp/kv.db")
        assert adapter.config.path == "/tmp/kv.db"

    def test_unknown(self):
        with pytest.raises(ConfigError, match="Unknown database adapter"):
            get_adapter("db2")

    def test_register(self):
        registry = AdapterRegistry()

        class MemoryAdapter(SQLiteAdapter):
            pass

        registry.register("Memory", MemoryAdapter)
        assert isinstance(registry.create("memory"), MemoryAdapter)
        assert "memory" not in adapter_registry.list_adapters()
