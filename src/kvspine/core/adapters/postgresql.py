"""PostgreSQL database adapter.

Backed by psycopg 3 with a ``psycopg_pool.ConnectionPool``. Pooled
connections are opened in autocommit mode; ``begin()`` checks one out,
switches autocommit off and returns it to the pool when the transaction
finishes. Query cursors keep their connection checked out until closed.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import psycopg
from psycopg.conninfo import make_conninfo
from psycopg_pool import ConnectionPool, PoolTimeout

from kvspine.core.errors import (
    BackendError,
    DatabaseConnectionError,
    TransactionClosedError,
)
from kvspine.core.logging import get_logger

from .base import DatabaseAdapter
from .types import DatabaseConfig, DatabaseType

logger = get_logger(__name__)


def _backend_error(operation: str, sql: str, e: Exception) -> BackendError:
    err = BackendError(f"PostgreSQL {operation} failed: {e}", cause=e)
    return err.with_context(operation=operation, statement=sql, dialect="postgresql")


def kwargs_from_libpq(params: dict[str, Any]) -> dict[str, Any]:
    """Map libpq parameter names (``dbname``, ``user``...) to adapter keywords.

    Unrecognised parameters such as ``sslmode`` pass through as options.
    """
    params = dict(params)
    return {
        "host": params.pop("host", "postgres"),
        "port": int(params.pop("port", 5432)),
        "database": params.pop("dbname", "datastore"),
        "username": params.pop("user", None),
        "password": params.pop("password", None),
        **params,
    }


class PostgreSQLCursor:
    """Row iterator over a psycopg cursor holding a pooled connection."""

    def __init__(self, cursor: Any, on_close: Callable[[], None]):
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
            self._on_close()


class PostgreSQLTransaction:
    """One transaction on a connection checked out of the pool."""

    def __init__(self, conn: Any, on_finish: Callable[[Any], None]):
        self._conn = conn
        self._on_finish = on_finish
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def execute(self, sql: str, params: tuple = ()) -> int:
        if self._closed:
            raise TransactionClosedError()
        try:
            return self._conn.execute(sql, params or None).rowcount
        except psycopg.Error as e:
            raise _backend_error("execute", sql, e) from e

    def commit(self) -> None:
        if self._closed:
            raise TransactionClosedError()
        try:
            self._conn.commit()
        except psycopg.Error as e:
            raise _backend_error("commit", "COMMIT", e) from e
        self._finish()

    def rollback(self) -> None:
        if self._closed:
            raise TransactionClosedError()
        try:
            self._conn.rollback()
        except psycopg.Error as e:
            raise _backend_error("rollback", "ROLLBACK", e) from e
        finally:
            self._finish()

    def _finish(self) -> None:
        if not self._closed:
            self._closed = True
            self._on_finish(self._conn)


class PostgreSQLAdapter(DatabaseAdapter):
    """
    PostgreSQL database adapter.

    ``kwargs_from_libpq()`` turns libpq-style parameters into constructor keywords.
    """

    def __init__(
        self,
        host: str = "postgres",
        port: int = 5432,
        database: str = "datastore",
        username: str | None = None,
        password: str | None = None,
        *,
        pool_min_size: int = 1,
        pool_size: int = 10,
        connect_timeout: float = 10.0,
        **options: Any,
    ):
        config = DatabaseConfig(
            db_type=DatabaseType.POSTGRESQL,
            host=host,
            port=port,
            database=database,
            username=username,
            password=password,
            pool_min_size=pool_min_size,
            pool_size=pool_size,
            connect_timeout=connect_timeout,
            options=options,
        )
        super().__init__(config)
        self._pool: Any = None

    def conninfo(self) -> str:
        """libpq connection string for this configuration."""
        cfg = self._config
        params: dict[str, Any] = {
            "host": cfg.host,
            "port": cfg.port,
            "dbname": cfg.database,
            "connect_timeout": int(cfg.connect_timeout),
        }
        if cfg.username:
            params["user"] = cfg.username
        if cfg.password:
            params["password"] = cfg.password
        params.update(cfg.options)
        return make_conninfo(**params)

    def connect(self) -> None:
        """Open the connection pool and wait for its first connections."""
        if self._connected:
            return
        pool = ConnectionPool(
            self.conninfo(),
            min_size=self._config.pool_min_size,
            max_size=max(self._config.pool_size, self._config.pool_min_size),
            kwargs={"autocommit": True},
            open=True,
        )
        try:
            pool.wait(timeout=self._config.connect_timeout)
        except PoolTimeout as e:
            pool.close()
            raise DatabaseConnectionError(
                f"Cannot connect to PostgreSQL at {self._config.host}:{self._config.port}: {e}",
                cause=e,
            ) from e

        self._pool = pool
        self._connected = True
        logger.debug(
            "postgresql.connected",
            host=self._config.host,
            port=self._config.port,
            database=self._config.database,
        )

    def disconnect(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            self._pool.close()
            self._pool = None
        self._connected = False
        logger.debug("postgresql.disconnected", host=self._config.host)

    def _require(self) -> Any:
        if self._pool is None:
            raise DatabaseConnectionError("PostgreSQL adapter is not connected")
        return self._pool

    def execute(self, sql: str, params: tuple = ()) -> int:
        pool = self._require()
        try:
            with pool.connection() as conn:
                return conn.execute(sql, params or None).rowcount
        except psycopg.Error as e:
            raise _backend_error("execute", sql, e) from e

    def query(self, sql: str, params: tuple = ()) -> PostgreSQLCursor:
        pool = self._require()
        conn = pool.getconn()
        try:
            cursor = conn.execute(sql, params or None)
        except psycopg.Error as e:
            pool.putconn(conn)
            raise _backend_error("query", sql, e) from e
        return PostgreSQLCursor(cursor, lambda: pool.putconn(conn))

    def query_row(self, sql: str, params: tuple = ()) -> tuple | None:
        pool = self._require()
        try:
            with pool.connection() as conn:
                row = conn.execute(sql, params or None).fetchone()
        except psycopg.Error as e:
            raise _backend_error("query", sql, e) from e
        return tuple(row) if row is not None else None

    def begin(self) -> PostgreSQLTransaction:
        pool = self._require()
        conn = pool.getconn()
        try:
            conn.autocommit = False
        except psycopg.Error as e:
            pool.putconn(conn)
            raise _backend_error("begin", "BEGIN", e) from e

        def release(c: Any) -> None:
            try:
                if not c.closed:
                    c.autocommit = True
            finally:
                pool.putconn(c)

        return PostgreSQLTransaction(conn, release)


__all__ = [
    "PostgreSQLAdapter",
    "PostgreSQLCursor",
    "PostgreSQLTransaction",
    "kwargs_from_libpq",
]
