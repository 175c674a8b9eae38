"""
Query descriptors, entries, filters and orders.

A ``Query`` says which entries a caller wants: a key prefix, filters, sort
orders, and a window (``limit`` / ``offset``). The SQL datastore pushes the
prefix and window to the backend where it can and runs everything else here,
over plain iterators of ``Entry``.

Examples:
    >>> q = Query(prefix="/a", filters=[FilterValueCompare("!=", b"")],
    ...           orders=[OrderByKeyDescending()], limit=10)
    >>> entries = [Entry("/a/1", b"x"), Entry("/a/2", b"")]
    >>> [e.key for e in naive_filter(entries, q.filters[0])]
    ['/a/1']

Guardrails:
    ❌ DON'T: Turn filters or orders into SQL
    ✅ DO: Apply them client-side with ``naive_filter`` / ``naive_order``

Tags:
    query, filter, order, entry, kv-spine
"""

from __future__ import annotations

import functools
import itertools
import operator
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from kvspine.core.errors import InvalidQueryError, InvalidValueError


@dataclass(frozen=True)
class Entry:
    """One ``(key, value)`` row of a query result.

    ``value`` is ``None`` for keys-only queries. ``size`` is the byte length
    of the value when the query asked for sizes, otherwise ``-1``.
    """

    key: str
    value: bytes | None = None
    size: int = -1


def check_value(value: Any, *, operation: str, key: str) -> bytes:
    """Return ``value`` as ``bytes``, or raise if it is not bytes-like.

    Only ``bytes``, ``bytearray`` and ``memoryview`` are accepted. ``bytes(5)``
    would otherwise store five zero bytes.

    Raises:
        InvalidValueError: ``value`` is ``None`` or not bytes-like.
    """
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise InvalidValueError().with_context(
            operation=operation, key=key, value_type=type(value).__name__
        )
    return bytes(value)


# =============================================================================
# Filters
# =============================================================================

_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}


def _comparison(op: str) -> Callable[[Any, Any], bool]:
    try:
        return _OPERATORS[op]
    except KeyError:
        raise InvalidQueryError(
            f"Unknown comparison operator {op!r}. Supported: {sorted(_OPERATORS)}"
        ) from None


class Filter(ABC):
    """Predicate over entries, evaluated client-side."""

    @abstractmethod
    def matches(self, entry: Entry) -> bool:
        ...

    def __call__(self, entry: Entry) -> bool:
        return self.matches(entry)


@dataclass(frozen=True)
class FilterKeyCompare(Filter):
    """Compare the entry key against ``key`` with ``op``."""

    op: str
    key: str

    def __post_init__(self) -> None:
        _comparison(self.op)

    def matches(self, entry: Entry) -> bool:
        return _comparison(self.op)(entry.key, self.key)

    def __str__(self) -> str:
        return f"KEY {self.op} {self.key!r}"


@dataclass(frozen=True)
class FilterValueCompare(Filter):
    """Compare the entry value against ``value`` with ``op``.

    Entries without a value only match ``!=``.
    """

    op: str
    value: bytes

    def __post_init__(self) -> None:
        _comparison(self.op)

    def matches(self, entry: Entry) -> bool:
        if entry.value is None:
            return self.op == "!="
        return _comparison(self.op)(entry.value, self.value)

    def __str__(self) -> str:
        return f"VALUE {self.op} {self.value!r}"


@dataclass(frozen=True)
class FilterKeyPrefix(Filter):
    """Keep entries whose key starts with ``prefix``."""

    prefix: str

    def matches(self, entry: Entry) -> bool:
        return entry.key.startswith(self.prefix)

    def __str__(self) -> str:
        return f"PREFIX({self.prefix!r})"


# =============================================================================
# Orders
# =============================================================================


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


class Order(ABC):
    """Three-way comparison of two entries."""

    @abstractmethod
    def compare(self, a: Entry, b: Entry) -> int:
        ...


class OrderByKey(Order):
    def compare(self, a: Entry, b: Entry) -> int:
        return _cmp(a.key, b.key)

    def __repr__(self) -> str:
        return "OrderByKey()"

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self)

    def __hash__(self) -> int:
        return hash(type(self))


class OrderByKeyDescending(OrderByKey):
    def compare(self, a: Entry, b: Entry) -> int:
        return -super().compare(a, b)

    def __repr__(self) -> str:
        return "OrderByKeyDescending()"


class OrderByValue(Order):
    """Byte-wise value order. Missing values sort first."""

    def compare(self, a: Entry, b: Entry) -> int:
        return _cmp(a.value or b"", b.value or b"")

    def __repr__(self) -> str:
        return "OrderByValue()"

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self)

    def __hash__(self) -> int:
        return hash(type(self))


class OrderByValueDescending(OrderByValue):
    def compare(self, a: Entry, b: Entry) -> int:
        return -super().compare(a, b)

    def __repr__(self) -> str:
        return "OrderByValueDescending()"


@dataclass(frozen=True)
class OrderByFunction(Order):
    """Order by a caller-supplied three-way comparison function."""

    fn: Callable[[Entry, Entry], int]

    def compare(self, a: Entry, b: Entry) -> int:
        return self.fn(a, b)


# =============================================================================
# Query descriptor
# =============================================================================


@dataclass(frozen=True)
class Query:
    """
    Immutable query descriptor.

    Fields
    ──────
    prefix        : only keys starting with this string ("" = all keys)
    filters       : client-side predicates, applied in order
    orders        : sort orders, first one wins, later ones break ties
    limit         : maximum entries returned (0 = unlimited)
    offset        : entries skipped before the first one returned
    keys_only     : return entries without values
    returns_sizes : fill ``Entry.size``
    """

    prefix: str = ""
    filters: Sequence[Filter] = field(default_factory=tuple)
    orders: Sequence[Order] = field(default_factory=tuple)
    limit: int = 0
    offset: int = 0
    keys_only: bool = False
    returns_sizes: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "filters", tuple(self.filters))
        object.__setattr__(self, "orders", tuple(self.orders))
        if self.limit < 0:
            raise InvalidQueryError(f"limit must be >= 0, got {self.limit}")
        if self.offset < 0:
            raise InvalidQueryError(f"offset must be >= 0, got {self.offset}")

    def __str__(self) -> str:
        parts = ["SELECT keys" if self.keys_only else "SELECT entries"]
        if self.prefix:
            parts.append(f"FROM {self.prefix!r}")
        if self.filters:
            parts.append("FILTER [" + ", ".join(str(f) for f in self.filters) + "]")
        if self.orders:
            parts.append("ORDER [" + ", ".join(repr(o) for o in self.orders) + "]")
        if self.offset:
            parts.append(f"OFFSET {self.offset}")
        if self.limit:
            parts.append(f"LIMIT {self.limit}")
        return " ".join(parts)


# =============================================================================
# Naive (client-side) stages
# =============================================================================


def naive_filter(entries: Iterable[Entry], f: Filter) -> Iterator[Entry]:
    """Yield the entries ``f`` accepts, in input order."""
    return (e for e in entries if f.matches(e))


def naive_order(entries: Iterable[Entry], orders: Sequence[Order]) -> Iterator[Entry]:
    """Sort entries in memory, lazily on first pull. Ties keep their input order."""
    if not orders:
        yield from entries
        return

    def compare(a: Entry, b: Entry) -> int:
        for order in orders:
            result = order.compare(a, b)
            if result:
                return result
        return 0

    yield from sorted(entries, key=functools.cmp_to_key(compare))


def naive_offset(entries: Iterable[Entry], offset: int) -> Iterator[Entry]:
    return itertools.islice(entries, offset, None)


def naive_limit(entries: Iterable[Entry], limit: int) -> Iterator[Entry]:
    return itertools.islice(entries, limit)


def naive_project(entries: Iterable[Entry], q: Query) -> Iterator[Entry]:
    """Apply ``keys_only`` and ``returns_sizes`` to each entry."""
    for e in entries:
        size = len(e.value) if q.returns_sizes and e.value is not None else -1
        yield replace(e, value=None if q.keys_only else e.value, size=size)


__all__ = [
    "Entry",
    "check_value",
    "Query",
    "Filter",
    "FilterKeyCompare",
    "FilterValueCompare",
    "FilterKeyPrefix",
    "Order",
    "OrderByKey",
    "OrderByKeyDescending",
    "OrderByValue",
    "OrderByValueDescending",
    "OrderByFunction",
    "naive_filter",
    "naive_order",
    "naive_offset",
    "naive_limit",
    "naive_project",
]
