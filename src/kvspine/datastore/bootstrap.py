"""Datastore bootstrap -- settings to a ready-to-use datastore.

This is the single entry point for opening a datastore. It resolves the
adapter for the configured dialect through the adapter registry, connects,
creates the backing table in one transaction if it does not exist yet and
wraps everything in an ``SQLDatastore``.

Usage
-----
::

    from kvspine.datastore.bootstrap import create_datastore, create_sqlite

    # From KVSPINE_* environment variables
    store = create_datastore()

    # Explicit settings
    store = create_datastore(DatastoreSettings(dialect="sqlite", path="kv.db"))

    # SQLite shortcut
    store = create_sqlite("./data/kv.db", table="providers")
"""

from __future__ import annotations

from pathlib import Path

from kvspine.core.adapters import DatabaseAdapter, DatabaseType, get_adapter, kwargs_from_libpq
from kvspine.core.dialect import get_queries
from kvspine.core.logging import get_logger
from kvspine.core.settings import DatastoreSettings, get_settings

from .store import SQLDatastore

logger = get_logger(__name__)


# ── Table DDL ────────────────────────────────────────────────────────────

TABLE_DDL: dict[str, str] = {
    "sqlite": "CREATE TABLE IF NOT EXISTS {table} (key TEXT NOT NULL UNIQUE, data BLOB NOT NULL)",
    "postgresql": "CREATE TABLE IF NOT EXISTS {table} (key TEXT NOT NULL UNIQUE, data BYTEA NOT NULL)",
}


def ensure_table(adapter: DatabaseAdapter, dialect: str, table: str) -> None:
    """Create the key-value table idempotently."""
    with adapter.transaction() as txn:
        txn.execute(TABLE_DDL[dialect].format(table=table))
    logger.debug("bootstrap.table_ready", dialect=dialect, table=table)


def _open(adapter: DatabaseAdapter, dialect: str, table: str) -> SQLDatastore:
    queries = get_queries(dialect, table)
    adapter.connect()
    try:
        ensure_table(adapter, dialect, table)
    except BaseException:
        adapter.disconnect()
        raise
    return SQLDatastore(adapter, queries)


# ── Factories ────────────────────────────────────────────────────────────


def create_sqlite(path: str = ":memory:", table: str = "kv") -> SQLDatastore:
    """Open (and create if needed) a SQLite-backed datastore."""
    if path != ":memory:" and not path.startswith("file:"):
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    return _open(get_adapter(DatabaseType.SQLITE, path=path), "sqlite", table)


def create_postgres(settings: DatastoreSettings | None = None) -> SQLDatastore:
    """Open a PostgreSQL-backed datastore.

    Raises:
        MissingConfigError: No password configured.
        DatabaseConnectionError: The server could not be reached.
    """
    settings = settings or get_settings()
    adapter = get_adapter(
        DatabaseType.POSTGRESQL,
        **kwargs_from_libpq(settings.postgres_params()),
        pool_min_size=settings.pool_min_size,
        pool_size=settings.pool_max_size,
    )
    return _open(adapter, "postgresql", settings.table)


def create_datastore(settings: DatastoreSettings | None = None) -> SQLDatastore:
    """Open the datastore described by ``settings`` (environment by default)."""
    settings = settings or get_settings()
    logger.info("bootstrap.open", dialect=settings.dialect, table=settings.table)
    if settings.dialect == "sqlite":
        return create_sqlite(settings.path, settings.table)
    return create_postgres(settings)


__all__ = [
    "TABLE_DDL",
    "ensure_table",
    "create_sqlite",
    "create_postgres",
    "create_datastore",
]
