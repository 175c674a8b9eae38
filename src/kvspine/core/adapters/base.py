"""Database adapter base class.

Manifesto:
    The datastore needs four things from a relational backend: run a
    statement and count affected rows, run a query and walk its rows, fetch
    a single row, and open a transaction. ``DatabaseAdapter`` is that
    executor contract plus connection lifecycle; concrete adapters own the
    driver and translate its exceptions into ``BackendError``.

Features:
    - Abstract ``connect()``, ``disconnect()``, ``execute()``, ``query()``, ``begin()``
    - ``query_row()`` and ``transaction()`` built on the abstract methods
    - Context-manager protocol for connection lifecycle

Tags:
    kv-spine, database, abstract-base, adapter-pattern, executor
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager

from kvspine.core.protocols import Cursor, Transaction

from .types import DatabaseConfig, DatabaseType


class DatabaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    Satisfies the ``Executor`` protocol. Statements run outside ``begin()``
    are committed when they complete.
    """

    def __init__(self, config: DatabaseConfig):
        self._config = config
        self._connected = False

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    @property
    def db_type(self) -> DatabaseType:
        """Database type."""
        return self._config.db_type

    @property
    def is_connected(self) -> bool:
        """Whether adapter is connected."""
        return self._connected

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to database."""
        ...

    @abstractmethod
    def disconnect(self) -> None:
        """Close connection to database."""
        ...

    @abstractmethod
    def execute(self, sql: str, params: tuple = ()) -> int:
        """Execute a statement and return the affected row count."""
        ...

    @abstractmethod
    def query(self, sql: str, params: tuple = ()) -> Cursor:
        """Execute a query and return an open cursor. Caller closes it."""
        ...

    @abstractmethod
    def begin(self) -> Transaction:
        """Open a new transaction."""
        ...

    def query_row(self, sql: str, params: tuple = ()) -> tuple | None:
        """Execute a query and return its first row, or ``None``."""
        cursor = self.query(sql, params)
        try:
            for row in cursor:
                return tuple(row)
            return None
        finally:
            cursor.close()

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Commit on clean exit, roll back on any exception."""
        txn = self.begin()
        try:
            yield txn
        except BaseException:
            if not txn.closed:
                txn.rollback()
            raise
        txn.commit()

    def __enter__(self) -> DatabaseAdapter:
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.disconnect()


__all__ = [
    "DatabaseAdapter",
]
