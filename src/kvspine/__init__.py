"""
kv-spine - Key-value datastore on SQL tables.

Keys are strings, values are bytes, and one relational table holds them.
SQLite and PostgreSQL are supported out of the box.

Example:
    >>> from kvspine import create_sqlite, Query
    >>> store = create_sqlite(":memory:")
    >>> store.put("/a/1", b"one")
    >>> [e.key for e in store.query(Query(prefix="/a")).rest()]
    ['/a/1']
"""

__version__ = "0.1.0"

from kvspine.core.errors import (
    BackendError,
    InvalidQueryError,
    InvalidValueError,
    KVSpineError,
    NotFoundError,
    ScanError,
    TransactionClosedError,
)
from kvspine.datastore import (
    AutoBatchingDatastore,
    Entry,
    MutexDatastore,
    Query,
    Results,
    SQLBatch,
    SQLDatastore,
    create_datastore,
    create_postgres,
    create_sqlite,
)

__all__ = [
    "__version__",
    # Datastore
    "SQLDatastore",
    "SQLBatch",
    "AutoBatchingDatastore",
    "MutexDatastore",
    "Query",
    "Entry",
    "Results",
    # Bootstrap
    "create_datastore",
    "create_sqlite",
    "create_postgres",
    # Errors
    "KVSpineError",
    "NotFoundError",
    "InvalidValueError",
    "InvalidQueryError",
    "BackendError",
    "ScanError",
    "TransactionClosedError",
]
