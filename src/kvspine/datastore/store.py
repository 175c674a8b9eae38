"""
SQL datastore: the key-value contract over one relational table.

Manifesto:
    Callers store opaque bytes under string keys and never learn the engine
    is relational. Single operations go straight to the executor with SQL
    from the query provider. Queries push prefix / limit / offset to the
    backend when a prefix is set and finish filtering and ordering here.

    - **Insert-if-absent:** the first write of a key wins; later puts are no-ops
    - **Typed absence:** missing keys raise ``NotFoundError``, ``has`` says ``False``
    - **No-op sync:** the backend is durable once a statement completes

Architecture::

    SQLDatastore
        put / get / has / delete / get_size ──► Executor (single statement)
        query ──► raw_query ──► compose() ──► Executor.query ──► Results
                      │
                      └──► naive_filter* ──► naive_order ──► window ──► project
        batch ──► SQLBatch ──► Executor.begin()

Examples:
    >>> store = SQLDatastore(adapter, get_queries("sqlite", "kv"))
    >>> store.put("/a/1", b"one")
    >>> store.put("/a/1", b"uno")     # ignored, key exists
    >>> store.get("/a/1")
    b'one'
    >>> store.get_size("/a/1")
    3

Tags:
    datastore, key-value, sql, facade, kv-spine
"""

from __future__ import annotations

from kvspine.core.dialect import QueryProvider
from kvspine.core.errors import NotFoundError
from kvspine.core.logging import get_logger
from kvspine.core.protocols import Executor

from .batch import SQLBatch
from .composer import compose
from .query import (
    Query,
    check_value,
    naive_filter,
    naive_limit,
    naive_offset,
    naive_order,
    naive_project,
)
from .results import Results

logger = get_logger(__name__)


class SQLDatastore:
    """Key-value datastore backed by a single SQL table.

    Args:
        executor: Connected backend adapter.
        queries: Query provider for the backend's dialect and table.
    """

    def __init__(self, executor: Executor, queries: QueryProvider):
        self._executor = executor
        self._queries = queries

    @property
    def executor(self) -> Executor:
        return self._executor

    @property
    def queries(self) -> QueryProvider:
        return self._queries

    def _not_found(self, operation: str, key: str) -> NotFoundError:
        return NotFoundError().with_context(operation=operation, key=key, table=self._queries.table)

    # ── Single operations ──────────────────────────────────────────

    def put(self, key: str, value: bytes) -> None:
        """Store ``value`` under ``key`` unless the key already exists.

        Raises:
            InvalidValueError: ``value`` is not bytes-like.
        """
        value = check_value(value, operation="put", key=key)
        self._executor.execute(self._queries.put(), (key, value))
        logger.debug("datastore.put", key=key, size=len(value), table=self._queries.table)

    def get(self, key: str) -> bytes:
        row = self._executor.query_row(self._queries.get(), (key,))
        if row is None:
            raise self._not_found("get", key)
        return bytes(row[0])

    def has(self, key: str) -> bool:
        row = self._executor.query_row(self._queries.exists(), (key,))
        return bool(row[0]) if row is not None else False

    def delete(self, key: str) -> None:
        """Remove ``key``.

        Raises:
            NotFoundError: No row was deleted.
        """
        affected = self._executor.execute(self._queries.delete(), (key,))
        if affected == 0:
            raise self._not_found("delete", key)
        logger.debug("datastore.delete", key=key, table=self._queries.table)

    def get_size(self, key: str) -> int:
        """Byte length of the value under ``key``.

        Raises:
            NotFoundError: The key is absent. ``error.size`` is ``-1``.
        """
        row = self._executor.query_row(self._queries.get_size(), (key,))
        if row is None:
            raise self._not_found("get_size", key)
        return int(row[0])

    # ── Queries ───────────────────────────────────────────────────

    def raw_query(self, q: Query) -> Results:
        """Run the backend part of ``q`` only.

        With a prefix, prefix / limit / offset are pushed down in one
        statement. Without one, the whole table is scanned.
        """
        if q.prefix:
            sql = compose(self._queries, q.prefix, q.limit, q.offset)
        else:
            sql = self._queries.query()
        logger.debug("datastore.query", query=str(q), table=self._queries.table)
        return Results.from_cursor(q, self._executor.query(sql))

    def query(self, q: Query) -> Results:
        """Run ``q``: backend pushdown, then filters and orders client-side.

        Limit and offset are applied here when they could not be pushed
        down (no prefix).
        """
        results = self.raw_query(q)

        for f in q.filters:
            results = results.transform(lambda entries, f=f: naive_filter(entries, f))

        if q.orders:
            results = results.transform(lambda entries: naive_order(entries, q.orders))

        if not q.prefix:
            if q.offset:
                results = results.transform(lambda entries: naive_offset(entries, q.offset))
            if q.limit:
                results = results.transform(lambda entries: naive_limit(entries, q.limit))

        if q.keys_only or q.returns_sizes:
            results = results.transform(lambda entries: naive_project(entries, q))

        return results

    # ── Lifecycle ─────────────────────────────────────────────────

    def sync(self, prefix: str) -> None:
        """No-op: writes are durable once their statement completes."""

    def batch(self) -> SQLBatch:
        return SQLBatch(self._executor, self._queries)

    def close(self) -> None:
        """Disconnect the underlying adapter."""
        disconnect = getattr(self._executor, "disconnect", None)
        if disconnect is not None:
            disconnect()
        logger.debug("datastore.closed", table=self._queries.table)

    def __enter__(self) -> SQLDatastore:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<SQLDatastore dialect={self._queries.name!r} table={self._queries.table!r}>"


__all__ = ["SQLDatastore"]
