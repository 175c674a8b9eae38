"""Database adapters: the executor side of the datastore.

Each adapter satisfies :class:`kvspine.core.protocols.Executor`: run a
statement for its row count, run a query for a cursor, fetch one row, open a
transaction. Driver exceptions never escape; they surface as
:class:`~kvspine.core.errors.BackendError`.

Architecture::

    DatabaseAdapter (base.py)        Abstract base, Executor contract
        |-- SQLiteAdapter            stdlib sqlite3
        |-- PostgreSQLAdapter        psycopg 3 + psycopg_pool

    AdapterRegistry (registry.py)    Name -> adapter class
    DatabaseConfig (types.py)        Connection parameters
    DatabaseType (types.py)          Enum of supported backends

Guardrails:
    ❌ ``adapter.execute("DELETE FROM kv WHERE key='" + key + "'")``
    ✅ ``adapter.execute(queries.delete(), (key,))``

Tags:
    kv-spine, database, adapters, executor, postgresql, sqlite
"""

from kvspine.core.protocols import Cursor, Executor, Transaction

from .base import DatabaseAdapter
from .postgresql import PostgreSQLAdapter, kwargs_from_libpq
from .registry import AdapterRegistry, adapter_registry, get_adapter
from .sqlite import SQLiteAdapter
from .types import DatabaseConfig, DatabaseType

__all__ = [
    # Types
    "DatabaseType",
    "DatabaseConfig",
    # Protocols
    "Cursor",
    "Executor",
    "Transaction",
    # Base class
    "DatabaseAdapter",
    # Implementations
    "SQLiteAdapter",
    "PostgreSQLAdapter",
    "kwargs_from_libpq",
    # Registry
    "AdapterRegistry",
    "adapter_registry",
    "get_adapter",
]
