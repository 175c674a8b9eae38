"""Tests for datastore bootstrap."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from kvspine.core.adapters import DatabaseAdapter, DatabaseType, SQLiteAdapter, get_adapter
from kvspine.core.errors import BackendError, MissingConfigError
from kvspine.core.settings import DatastoreSettings
from kvspine.datastore import SQLDatastore, create_datastore, create_postgres, create_sqlite
from kvspine.datastore.bootstrap import TABLE_DDL, ensure_table


class TestCreateSQLite:
    def test_memory(self):
        store = create_sqlite()
        assert isinstance(store, SQLDatastore)
        store.put("a", b"1")
        assert store.get("a") == b"1"
        store.close()

    def test_file_persists_and_is_idempotent(self, tmp_path):
        path = str(tmp_path / "nested" / "kv.db")
        first = create_sqlite(path)
        first.put("a", b"1")
        first.close()
        second = create_sqlite(path)
        assert second.get("a") == b"1"
        second.close()

    def test_custom_table(self, tmp_path):
        store = create_sqlite(str(tmp_path / "kv.db"), table="providers")
        assert store.queries.table == "providers"
        row = store.executor.query_row("SELECT name FROM sqlite_master WHERE type = 'table'")
        assert row == ("providers",)
        store.close()


class TestCreateDatastore:
    def test_sqlite_from_settings(self, tmp_path):
        settings = DatastoreSettings(dialect="sqlite", path=str(tmp_path / "kv.db"), table="t1")
        store = create_datastore(settings)
        assert store.queries.name == "sqlite"
        assert store.queries.table == "t1"
        store.close()

    def test_sqlite_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("KVSPINE_DIALECT", "sqlite")
        monkeypatch.setenv("KVSPINE_PATH", str(tmp_path / "env.db"))
        store = create_datastore()
        assert (tmp_path / "env.db").exists()
        store.close()

    def test_postgres_requires_password(self):
        with pytest.raises(MissingConfigError):
            create_datastore(DatastoreSettings(dialect="postgresql"))

    def test_postgres_resolved_through_registry(self):
        settings = DatastoreSettings(dialect="postgresql", password="pw", table="providers", pool_max_size=4)
        with patch("kvspine.datastore.bootstrap.get_adapter") as factory:
            store = create_postgres(settings)
        assert factory.call_args.args == (DatabaseType.POSTGRESQL,)
        kwargs = factory.call_args.kwargs
        assert kwargs["database"] == "datastore"
        assert kwargs["username"] == "postgres"
        assert kwargs["password"] == "pw"
        assert kwargs["sslmode"] == "disable"
        assert kwargs["pool_size"] == 4
        adapter = factory.return_value
        adapter.connect.assert_called_once()
        txn = adapter.transaction.return_value.__enter__.return_value
        txn.execute.assert_called_once_with(
            "CREATE TABLE IF NOT EXISTS providers (key TEXT NOT NULL UNIQUE, data BYTEA NOT NULL)"
        )
        assert store.queries.name == "postgresql"

    def test_sqlite_resolved_through_registry(self, tmp_path):
        path = str(tmp_path / "kv.db")
        with patch("kvspine.datastore.bootstrap.get_adapter", wraps=get_adapter) as spy:
            store = create_sqlite(path)
        spy.assert_called_once_with(DatabaseType.SQLITE, path=path)
        assert isinstance(store.executor, SQLiteAdapter)
        store.close()


class TestDDL:
    def test_dialects_covered(self):
        assert set(TABLE_DDL) == {"sqlite", "postgresql"}

    def test_key_unique_not_null(self):
        for ddl in TABLE_DDL.values():
            assert "key TEXT NOT NULL UNIQUE" in ddl


class TestEnsureTable:
    def test_failed_ddl_rolled_back_and_disconnected(self):
        adapter = MagicMock()
        txn = MagicMock()
        txn.closed = False
        txn.execute.side_effect = BackendError("permission denied")
        adapter.transaction.side_effect = lambda: DatabaseAdapter.transaction(adapter)
        adapter.begin.return_value = txn
        with patch("kvspine.datastore.bootstrap.get_adapter", return_value=adapter):
            with pytest.raises(BackendError):
                create_sqlite()
        txn.rollback.assert_called_once()
        txn.commit.assert_not_called()
        adapter.disconnect.assert_called_once()

    def test_memory_table_created_in_transaction(self, sqlite_adapter):
        ensure_table(sqlite_adapter, "sqlite", "providers")
        ensure_table(sqlite_adapter, "sqlite", "providers")
        row = sqlite_adapter.query_row("SELECT count(*) FROM sqlite_master WHERE name = 'providers'")
        assert row == (1,)
