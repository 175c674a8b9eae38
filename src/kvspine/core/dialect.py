"""Query providers: per-dialect SQL text for the key-value table.

A ``QueryProvider`` is bound to one table at construction and exposes the
nine statements the datastore needs. The datastore, the statement composer
and the batch depend on the protocol only, so a new backend is one new class
plus a ``register_queries()`` call.

Manifesto:
    Datastore code must run unchanged on SQLite (tests, single node) and
    PostgreSQL (production). Every dialect difference lives here:
    placeholder style, insert-if-absent syntax, prefix matching, byte length.

    - **One interface:** ``QueryProvider`` protocol, nine methods
    - **Pure strings:** no I/O, no mutable state, safe to share across threads
    - **Consistent placeholders:** each provider uses one style throughout

Architecture::

    ┌──────────────────────────────────────────────────────────────────┐
    │  SQLDatastore / SQLBatch / compose()                            │
    │      queries.get()  queries.put()  queries.prefix() ...         │
    └──────────────────────────────────────────────────────────────────┘
                              │
                              ▼
    ┌────────────────┐ ┌────────────────────┐ ┌──────────────────┐
    │ SQLiteQueries  │ │ PostgreSQLQueries  │ │ MySQLQueries     │
    │ ?              │ │ %s                 │ │ %s               │
    │ INSERT OR      │ │ ON CONFLICT (key)  │ │ INSERT IGNORE    │
    │   IGNORE       │ │   DO NOTHING       │ │                  │
    │ GLOB 'p*'      │ │ LIKE 'p%'          │ │ LIKE BINARY 'p%' │
    └────────────────┘ └────────────────────┘ └──────────────────┘

Statement parameters:
    ``delete``, ``exists``, ``get``, ``get_size`` bind ``(key,)``;
    ``put`` binds ``(key, value)``; ``query`` binds nothing.
    ``prefix``, ``limit`` and ``offset`` are ``%``-format templates applied
    by the composer with literal values (``%s``, ``%d``, ``%d``).

Examples:
    >>> q = get_queries("sqlite", "kv")
    >>> q.get()
    'SELECT data FROM kv WHERE key = ?'
    >>> q.prefix() % "a/"
    " WHERE key GLOB 'a/*' ORDER BY key"

Guardrails:
    ❌ DON'T: Put dialect conditionals in the datastore
    ✅ DO: Add a provider class and register it

    ❌ DON'T: Interpolate caller keys or values into statements
    ✅ DO: Bind them as parameters; only the table name is interpolated

Tags:
    dialect, sql, query-provider, portability, kv-spine
"""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable

from .errors import InvalidConfigError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


def validate_table_name(table: str) -> str:
    """Return ``table`` if it is a plain (optionally schema-qualified) identifier.

    Raises:
        InvalidConfigError: If the name is empty or not an identifier.
    """
    if not isinstance(table, str) or not _IDENTIFIER.match(table):
        raise InvalidConfigError("table", table, f"Invalid table name: {table!r}")
    return table


@runtime_checkable
class QueryProvider(Protocol):
    """SQL text for every datastore operation on one table."""

    @property
    def name(self) -> str:
        """Dialect name (e.g. ``'sqlite'``)."""
        ...

    @property
    def table(self) -> str:
        """Table this provider was built for."""
        ...

    @property
    def unbounded_limit(self) -> int | None:
        """Limit value meaning "no limit", for dialects that cannot OFFSET
        without LIMIT. ``None`` if OFFSET stands alone."""
        ...

    def delete(self) -> str:
        ...

    def exists(self) -> str:
        ...

    def get(self) -> str:
        ...

    def put(self) -> str:
        """Insert-if-absent: an existing key keeps its value."""
        ...

    def query(self) -> str:
        """Full scan of ``(key, data)`` rows."""
        ...

    def prefix(self) -> str:
        """Template (one ``%s``) restricting to keys with a prefix, key-ordered."""
        ...

    def limit(self) -> str:
        """Template (one ``%d``)."""
        ...

    def offset(self) -> str:
        """Template (one ``%d``)."""
        ...

    def get_size(self) -> str:
        """Byte length of the stored value."""
        ...


# =========================================================================
# Concrete providers
# =========================================================================


class _TableQueries:
    """Shared construction for table-bound providers."""

    dialect_name = ""
    unbounded_limit: int | None = None

    def __init__(self, table: str):
        self._table = validate_table_name(table)

    @property
    def name(self) -> str:
        return self.dialect_name

    @property
    def table(self) -> str:
        return self._table

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(table={self._table!r})"

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and other._table == self._table  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self), self._table))


class SQLiteQueries(_TableQueries):
    """SQLite — ``?`` placeholders, ``GLOB`` for case-sensitive prefix matching."""

    dialect_name = "sqlite"
    unbounded_limit = -1

    def delete(self) -> str:
        return f"DELETE FROM {self._table} WHERE key = ?"

    def exists(self) -> str:
        return f"SELECT EXISTS(SELECT 1 FROM {self._table} WHERE key = ?)"

    def get(self) -> str:
        return f"SELECT data FROM {self._table} WHERE key = ?"

    def put(self) -> str:
        return f"INSERT OR IGNORE INTO {self._table} (key, data) VALUES (?, ?)"

    def query(self) -> str:
        return f"SELECT key, data FROM {self._table}"

    def prefix(self) -> str:
        return " WHERE key GLOB '%s*' ORDER BY key"

    def limit(self) -> str:
        return " LIMIT %d"

    def offset(self) -> str:
        return " OFFSET %d"

    def get_size(self) -> str:
        return f"SELECT length(data) FROM {self._table} WHERE key = ?"


class PostgreSQLQueries(_TableQueries):
    """PostgreSQL — ``%s`` placeholders (psycopg), byte-ordered prefix scans.

    Ordering uses the ``"C"`` collation so key order matches Python string
    order regardless of the database locale.
    """

    dialect_name = "postgresql"

    def delete(self) -> str:
        return f"DELETE FROM {self._table} WHERE key = %s"

    def exists(self) -> str:
        return f"SELECT exists(SELECT 1 FROM {self._table} WHERE key = %s)"

    def get(self) -> str:
        return f"SELECT data FROM {self._table} WHERE key = %s"

    def put(self) -> str:
        return f"INSERT INTO {self._table} (key, data) VALUES (%s, %s) ON CONFLICT (key) DO NOTHING"

    def query(self) -> str:
        return f"SELECT key, data FROM {self._table}"

    def prefix(self) -> str:
        return " WHERE key LIKE '%s%%' ORDER BY key COLLATE \"C\""

    def limit(self) -> str:
        return " LIMIT %d"

    def offset(self) -> str:
        return " OFFSET %d"

    def get_size(self) -> str:
        return f"SELECT octet_length(data) FROM {self._table} WHERE key = %s"


class MySQLQueries(_TableQueries):
    """MySQL — ``%s`` placeholders, backtick-quoted ``key`` column (reserved word)."""

    dialect_name = "mysql"
    unbounded_limit = 18446744073709551615

    def delete(self) -> str:
        return f"DELETE FROM {self._table} WHERE `key` = %s"

    def exists(self) -> str:
        return f"SELECT EXISTS(SELECT 1 FROM {self._table} WHERE `key` = %s)"

    def get(self) -> str:
        return f"SELECT data FROM {self._table} WHERE `key` = %s"

    def put(self) -> str:
        return f"INSERT IGNORE INTO {self._table} (`key`, data) VALUES (%s, %s)"

    def query(self) -> str:
        return f"SELECT `key`, data FROM {self._table}"

    def prefix(self) -> str:
        return " WHERE `key` LIKE BINARY '%s%%' ORDER BY BINARY `key`"

    def limit(self) -> str:
        return " LIMIT %d"

    def offset(self) -> str:
        return " OFFSET %d"

    def get_size(self) -> str:
        return f"SELECT LENGTH(data) FROM {self._table} WHERE `key` = %s"


# =========================================================================
# Registry / Factory
# =========================================================================

_PROVIDERS: dict[str, type] = {
    "sqlite": SQLiteQueries,
    "postgresql": PostgreSQLQueries,
    "postgres": PostgreSQLQueries,  # alias
    "mysql": MySQLQueries,
}


def get_queries(dialect: str, table: str = "kv") -> QueryProvider:
    """Build the query provider for ``dialect`` bound to ``table``.

    Raises:
        ValueError: If ``dialect`` is not registered.
        InvalidConfigError: If ``table`` is not a valid identifier.

    Example:
        >>> get_queries("postgresql", "providers").delete()
        'DELETE FROM providers WHERE key = %s'
    """
    key = dialect.lower()
    if key not in _PROVIDERS:
        raise ValueError(
            f"Unknown dialect '{dialect}'. "
            f"Supported: {sorted(set(_PROVIDERS) - {'postgres'})}"
        )
    return _PROVIDERS[key](table)


def register_queries(name: str, provider_class: type) -> None:
    """Register a provider class (constructed with the table name).

    Useful for third-party backends or test doubles.
    """
    _PROVIDERS[name.lower()] = provider_class


__all__ = [
    "QueryProvider",
    "SQLiteQueries",
    "PostgreSQLQueries",
    "MySQLQueries",
    "get_queries",
    "register_queries",
    "validate_table_name",
]
