"""
Transactional batch.

Manifesto:
    A batch groups writes so they land together or not at all. The
    transaction is opened on the first write, never before, so an empty
    batch costs nothing and commits without touching the backend. Every
    failure path rolls the transaction back before the error reaches the
    caller; nothing is left half-applied or open.

State machine::

        put/delete            commit / failure / rollback()
    IDLE ──────────► OPEN ─────────────────────────────────► DONE
      │                                                        ▲
      └────────────────────── commit() (no-op) ────────────────┘

    DONE is terminal: put / delete / commit raise TransactionClosedError.

Examples:
    >>> b = store.batch()
    >>> b.put("/a/1", b"one")
    >>> b.delete("/a/0")
    >>> b.commit()

    >>> with store.batch() as b:
    ...     b.put("/a/2", b"two")

Tags:
    batch, transaction, rollback, atomicity, kv-spine
"""

from __future__ import annotations

from enum import Enum

from kvspine.core.dialect import QueryProvider
from kvspine.core.errors import BackendError, InvalidValueError, TransactionClosedError
from kvspine.core.logging import get_logger
from kvspine.core.protocols import Executor, Transaction

from .query import check_value

logger = get_logger(__name__)


class BatchState(str, Enum):
    """Lifecycle of a batch's transaction."""

    IDLE = "idle"  # no transaction yet
    OPEN = "open"  # transaction begun, writes pending
    DONE = "done"  # committed or rolled back


class SQLBatch:
    """Atomic group of puts and deletes on one backend transaction."""

    def __init__(self, executor: Executor, queries: QueryProvider):
        self._executor = executor
        self._queries = queries
        self._state = BatchState.IDLE
        self._txn: Transaction | None = None
        self._ops = 0

    @property
    def state(self) -> BatchState:
        return self._state

    def _transaction(self) -> Transaction:
        if self._state is BatchState.DONE:
            raise TransactionClosedError()
        if self._txn is None:
            self._txn = self._executor.begin()
            self._state = BatchState.OPEN
            logger.debug("batch.begin", table=self._queries.table)
        return self._txn

    def _abort(self, reason: str) -> None:
        """Roll back the open transaction, if any, and finish the batch."""
        txn, self._txn = self._txn, None
        if txn is None:
            return
        self._state = BatchState.DONE
        if txn.closed:
            return
        try:
            txn.rollback()
        except BackendError as e:
            logger.warning("batch.rollback_failed", table=self._queries.table, error=str(e))
            return
        logger.debug("batch.rollback", table=self._queries.table, reason=reason, ops=self._ops)

    def _run(self, sql: str, params: tuple) -> None:
        txn = self._transaction()
        try:
            txn.execute(sql, params)
        except BaseException as e:
            self._abort(type(e).__name__)
            raise
        self._ops += 1

    def put(self, key: str, value: bytes) -> None:
        """Insert ``key`` inside the transaction unless it already exists.

        Raises:
            InvalidValueError: ``value`` is not bytes-like. Any open
                transaction is rolled back first.
            TransactionClosedError: The batch already finished.
        """
        if self._state is BatchState.DONE:
            raise TransactionClosedError()
        try:
            value = check_value(value, operation="batch.put", key=key)
        except InvalidValueError:
            self._abort("invalid value")
            raise
        self._run(self._queries.put(), (key, value))

    def delete(self, key: str) -> None:
        """Delete ``key`` inside the transaction. A missing key is not an error."""
        self._run(self._queries.delete(), (key,))

    def commit(self) -> None:
        """Commit every pending write, or roll all of them back on failure.

        Committing a batch that never wrote anything succeeds without
        touching the backend.
        """
        if self._state is BatchState.DONE:
            raise TransactionClosedError()
        txn = self._txn
        if txn is None:
            self._state = BatchState.DONE
            return
        try:
            txn.commit()
        except BaseException as e:
            self._abort(type(e).__name__)
            raise
        self._txn = None
        self._state = BatchState.DONE
        logger.debug("batch.commit", table=self._queries.table, ops=self._ops)

    def rollback(self) -> None:
        """Discard pending writes. The batch is finished afterwards."""
        if self._state is BatchState.DONE:
            raise TransactionClosedError()
        self._abort("requested")
        self._state = BatchState.DONE

    def __enter__(self) -> SQLBatch:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            if self._state is not BatchState.DONE:
                self._abort(exc_type.__name__)
                self._state = BatchState.DONE
            return
        if self._state is not BatchState.DONE:
            self.commit()

    def __repr__(self) -> str:
        return f"<SQLBatch table={self._queries.table!r} state={self._state.value} ops={self._ops}>"


__all__ = [
    "BatchState",
    "SQLBatch",
]
