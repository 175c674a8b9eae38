"""
Shared pytest fixtures for kv-spine tests.

This module provides:
- SQLite datastores (in-memory and file-backed) with the table created
- A raw connected SQLite adapter
- Settings isolation from the developer's ``KVSPINE_*`` environment

Usage:
    def test_roundtrip(store):
        store.put("/a", b"1")
        assert store.get("/a") == b"1"
"""

import sys
from collections.abc import Generator
from pathlib import Path

import pytest

# Ensure kvspine package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from kvspine.core.adapters import SQLiteAdapter
from kvspine.core.settings import get_settings
from kvspine.datastore import SQLDatastore, create_sqlite


# =============================================================================
# Environment isolation
# =============================================================================


@pytest.fixture(autouse=True)
def clean_kvspine_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Drop KVSPINE_* variables and the cached settings around each test."""
    import os

    for name in list(os.environ):
        if name.startswith("KVSPINE_"):
            monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Datastores
# =============================================================================


@pytest.fixture
def store() -> Generator[SQLDatastore, None, None]:
    """In-memory SQLite datastore on table ``kv``."""
    ds = create_sqlite(":memory:")
    yield ds
    ds.close()


@pytest.fixture
def file_store(tmp_path: Path) -> Generator[SQLDatastore, None, None]:
    """File-backed SQLite datastore; transactions use their own connection."""
    ds = create_sqlite(str(tmp_path / "kv.db"))
    yield ds
    ds.close()


@pytest.fixture
def sqlite_adapter() -> Generator[SQLiteAdapter, None, None]:
    """Connected in-memory adapter with a ``kv`` table."""
    adapter = SQLiteAdapter(":memory:")
    adapter.connect()
    adapter.execute("CREATE TABLE kv (key TEXT NOT NULL UNIQUE, data BLOB NOT NULL)")
    yield adapter
    adapter.disconnect()


@pytest.fixture
def populated(store: SQLDatastore) -> SQLDatastore:
    """Store holding ``a/1``, ``a/2`` and ``b/1``."""
    store.put("a/1", b"v1")
    store.put("a/2", b"v2")
    store.put("b/1", b"v3")
    return store
