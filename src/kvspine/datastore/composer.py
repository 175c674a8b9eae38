"""Statement composer: base scan plus prefix / limit / offset pushdown."""

from __future__ import annotations

from kvspine.core.dialect import QueryProvider


def compose(queries: QueryProvider, prefix: str = "", limit: int = 0, offset: int = 0) -> str:
    """Build one SELECT over ``(key, data)`` with the given pushdown clauses.

    Clauses are appended in a fixed order: prefix narrows the rows before
    limit and offset window them. Wildcard characters in ``prefix`` are
    passed through unescaped, so ``"a_"`` matches ``"ab"`` on LIKE dialects.
    Single quotes are doubled to keep the literal intact.

    Example:
        >>> compose(SQLiteQueries("kv"), prefix="a/", limit=3, offset=2)
        "SELECT key, data FROM kv WHERE key GLOB 'a/*' ORDER BY key LIMIT 3 OFFSET 2"
    """
    statement = queries.query()

    if prefix:
        statement += queries.prefix() % prefix.replace("'", "''")

    if limit:
        statement += queries.limit() % limit
    elif offset and queries.unbounded_limit is not None:
        statement += queries.limit() % queries.unbounded_limit

    if offset:
        statement += queries.offset() % offset

    return statement


__all__ = ["compose"]
