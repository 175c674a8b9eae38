"""
Canonical protocol definitions for kv-spine.

Two sides of the datastore meet here:

- the **consumed** side, what the datastore needs from a relational backend
  (``Executor``, ``Transaction``, ``Cursor``), and
- the **exposed** side, the key-value contract callers program against
  (``Datastore``, ``Batch``).

Architecture:
    ::

        protocols.py
        ├── Cursor       — row iterator over an open result set, close() once
        ├── Transaction  — execute / commit / rollback on one transaction
        ├── Executor     — execute -> rowcount, query -> Cursor,
        │                  query_row -> row | None, begin -> Transaction
        ├── Batch        — put / delete / commit
        └── Datastore    — put / get / has / delete / get_size / query /
                           sync / batch / close

    Implementations:
        Executor   → adapters.SQLiteAdapter, adapters.PostgreSQLAdapter
        Datastore  → datastore.SQLDatastore, AutoBatchingDatastore,
                     MutexDatastore

Guardrails:
    ❌ DON'T: Import sqlite3 or psycopg in datastore code
    ✅ DO: Depend on Executor; adapters own the driver

Tags:
    protocol, executor, transaction, datastore, batch, kv-spine
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from kvspine.datastore.query import Query
    from kvspine.datastore.results import Results


# ---------------------------------------------------------------------------
# Backend executor protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class Cursor(Protocol):
    """Open result set. Iterating yields raw driver rows (sequences)."""

    def __iter__(self) -> Iterator[Any]:
        ...

    def close(self) -> None:
        """Release the result set. Safe to call more than once."""
        ...


@runtime_checkable
class Transaction(Protocol):
    """One backend transaction. Finished after ``commit`` or ``rollback``."""

    @property
    def closed(self) -> bool:
        """True once committed or rolled back."""
        ...

    def execute(self, sql: str, params: tuple = ()) -> int:
        """Execute a statement inside the transaction, return affected rows."""
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...


@runtime_checkable
class Executor(Protocol):
    """
    Minimal SYNCHRONOUS backend executor.

    Every statement is parameterised; ``params`` are bound by the driver.
    Statements outside ``begin()`` are committed on completion.
    """

    def execute(self, sql: str, params: tuple = ()) -> int:
        """Execute a statement, return the affected row count."""
        ...

    def query(self, sql: str, params: tuple = ()) -> Cursor:
        """Execute a statement, return an open cursor over its rows."""
        ...

    def query_row(self, sql: str, params: tuple = ()) -> tuple | None:
        """Execute a statement, return its first row or ``None``."""
        ...

    def begin(self) -> Transaction:
        """Open a new transaction."""
        ...


# ---------------------------------------------------------------------------
# Key-value contract
# ---------------------------------------------------------------------------


@runtime_checkable
class Batch(Protocol):
    """Atomic group of writes."""

    def put(self, key: str, value: bytes) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def commit(self) -> None:
        ...


@runtime_checkable
class Datastore(Protocol):
    """
    Key-value datastore contract.

    Keys are strings, values are bytes. ``get``, ``delete`` and ``get_size``
    raise ``NotFoundError`` for a missing key; ``has`` returns ``False``.
    """

    def put(self, key: str, value: bytes) -> None:
        ...

    def get(self, key: str) -> bytes:
        ...

    def has(self, key: str) -> bool:
        ...

    def delete(self, key: str) -> None:
        ...

    def get_size(self, key: str) -> int:
        ...

    def query(self, q: Query) -> Results:
        ...

    def sync(self, prefix: str) -> None:
        ...

    def batch(self) -> Batch:
        ...

    def close(self) -> None:
        ...


__all__ = [
    "Cursor",
    "Transaction",
    "Executor",
    "Batch",
    "Datastore",
]
