"""SQLite database adapter.

The main connection runs in autocommit mode (``isolation_level=None``) so
single statements commit as they complete. Transactions issue an explicit
``BEGIN``:

- file databases run in WAL mode and open a dedicated connection per
  transaction, so writes stay invisible to other readers until ``COMMIT``
  and open query cursors never block the commit;
- in-memory databases exist only on the main connection, so a transaction
  runs there and other statements wait for it to finish. The wait is a
  condition, not a thread-owned lock, so any thread may end the
  transaction.
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from kvspine.core.errors import BackendError, DatabaseConnectionError, TransactionClosedError
from kvspine.core.logging import get_logger

from .base import DatabaseAdapter
from .types import DatabaseConfig, DatabaseType

logger = get_logger(__name__)


def _backend_error(operation: str, sql: str, e: sqlite3.Error) -> BackendError:
    err = BackendError(f"SQLite {operation} failed: {e}", cause=e)
    return err.with_context(operation=operation, statement=sql, dialect="sqlite")


class SQLiteCursor:
    """Row iterator over an open ``sqlite3.Cursor``."""

    def __init__(self, cursor: sqlite3.Cursor, on_close: Callable[[], None] | None = None):
        self._cursor = cursor
        self._on_close = on_close
        self._closed = False

    def __iter__(self) -> Iterator[Any]:
        return iter(self._cursor)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._cursor.close()
        finally:
            if self._on_close is not None:
                self._on_close()


class SQLiteTransaction:
    """Explicit ``BEGIN`` ... ``COMMIT``/``ROLLBACK`` on one connection."""

    def __init__(self, conn: sqlite3.Connection, on_finish: Callable[[], None]):
        self._conn = conn
        self._on_finish = on_finish
        self._closed = False
        try:
            conn.execute("BEGIN")
        except sqlite3.Error as e:
            self._finish()
            raise _backend_error("begin", "BEGIN", e) from e

    @property
    def closed(self) -> bool:
        return self._closed

    def execute(self, sql: str, params: tuple = ()) -> int:
        if self._closed:
            raise TransactionClosedError()
        try:
            return self._conn.execute(sql, params).rowcount
        except sqlite3.Error as e:
            raise _backend_error("execute", sql, e) from e

    def commit(self) -> None:
        if self._closed:
            raise TransactionClosedError()
        try:
            self._conn.execute("COMMIT")
        except sqlite3.Error as e:
            # Transaction stays open so the caller can roll back.
            raise _backend_error("commit", "COMMIT", e) from e
        self._finish()

    def rollback(self) -> None:
        if self._closed:
            raise TransactionClosedError()
        try:
            if self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            raise _backend_error("rollback", "ROLLBACK", e) from e
        finally:
            self._finish()

    def _finish(self) -> None:
        if not self._closed:
            self._closed = True
            self._on_finish()


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite database adapter.

    Uses Python's built-in ``sqlite3`` module. File databases run in WAL
    mode, so open query cursors do not block a transaction's ``COMMIT``.
    """

    def __init__(self, path: str = ":memory:", *, timeout: float = 10.0):
        config = DatabaseConfig(db_type=DatabaseType.SQLITE, path=path, connect_timeout=timeout)
        super().__init__(config)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._txn_open = False

    @property
    def path(self) -> str:
        return self._config.path or ":memory:"

    def _open(self) -> sqlite3.Connection:
        return sqlite3.connect(
            self.path,
            timeout=self._config.connect_timeout,
            isolation_level=None,
            check_same_thread=False,
            uri=self.path.startswith("file:"),
        )

    def connect(self) -> None:
        """Open the main connection."""
        if self._connected:
            return
        try:
            conn = self._open()
        except sqlite3.Error as e:
            raise DatabaseConnectionError(f"Cannot open SQLite database {self.path!r}: {e}", cause=e) from e
        if not self._config.is_memory:
            try:
                conn.execute("PRAGMA journal_mode=WAL")
            except sqlite3.Error as e:
                conn.close()
                raise DatabaseConnectionError(f"Cannot enable WAL on {self.path!r}: {e}", cause=e) from e
        self._conn = conn
        self._connected = True
        logger.debug("sqlite.connected", path=self.path)

    def disconnect(self) -> None:
        """Close the main connection."""
        if self._conn is not None:
            with self._lock:
                self._conn.close()
            self._conn = None
        self._connected = False
        logger.debug("sqlite.disconnected", path=self.path)

    def _require(self) -> sqlite3.Connection:
        if self._conn is None:
            raise DatabaseConnectionError("SQLite adapter is not connected")
        return self._conn

    def _wait_idle(self, operation: str, sql: str) -> None:
        """Wait, holding ``_lock``, until no transaction owns the main connection."""
        if not self._idle.wait_for(lambda: not self._txn_open, timeout=self._config.connect_timeout):
            err = BackendError("SQLite database is locked by an open transaction")
            raise err.with_context(operation=operation, statement=sql, dialect="sqlite")

    @contextmanager
    def _main(self, operation: str, sql: str) -> Iterator[sqlite3.Connection]:
        conn = self._require()
        with self._idle:
            self._wait_idle(operation, sql)
            yield conn

    def execute(self, sql: str, params: tuple = ()) -> int:
        with self._main("execute", sql) as conn:
            try:
                return conn.execute(sql, params).rowcount
            except sqlite3.Error as e:
                raise _backend_error("execute", sql, e) from e

    def query(self, sql: str, params: tuple = ()) -> SQLiteCursor:
        with self._main("query", sql) as conn:
            try:
                return SQLiteCursor(conn.execute(sql, params))
            except sqlite3.Error as e:
                raise _backend_error("query", sql, e) from e

    def query_row(self, sql: str, params: tuple = ()) -> tuple | None:
        with self._main("query", sql) as conn:
            try:
                cursor = conn.execute(sql, params)
                try:
                    row = cursor.fetchone()
                finally:
                    cursor.close()
            except sqlite3.Error as e:
                raise _backend_error("query", sql, e) from e
        return tuple(row) if row is not None else None

    def begin(self) -> SQLiteTransaction:
        """Open a transaction.

        An in-memory database lives on the main connection only, so its
        transaction runs there and other statements wait for it to end, up
        to the busy timeout. Any thread may commit or roll it back.
        """
        main = self._require()
        if self._config.is_memory:
            with self._idle:
                self._wait_idle("begin", "BEGIN")
                self._txn_open = True
            return SQLiteTransaction(main, self._end_transaction)

        try:
            conn = self._open()
        except sqlite3.Error as e:
            raise DatabaseConnectionError(f"Cannot open SQLite database {self.path!r}: {e}", cause=e) from e
        return SQLiteTransaction(conn, conn.close)

    def _end_transaction(self) -> None:
        with self._idle:
            self._txn_open = False
            self._idle.notify_all()


__all__ = [
    "SQLiteAdapter",
    "SQLiteCursor",
    "SQLiteTransaction",
]
