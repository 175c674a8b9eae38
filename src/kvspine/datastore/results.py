"""
Result sequences.

``Results`` is a lazy, single-pass iterator of ``Entry`` that owns the
backend cursor behind it. The cursor is released exactly once: when the
iterator is exhausted, when the caller closes it (directly or by leaving a
``with`` block), or when a row cannot be read. A row failure surfaces as
``ScanError`` from ``next()``; it never ends the process.

Examples:
    >>> with store.query(Query(prefix="/a")) as results:
    ...     for entry in results:
    ...         print(entry.key)

    >>> entries = store.query(Query(prefix="/a")).rest()
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import Any

from kvspine.core.errors import ScanError
from kvspine.core.protocols import Cursor

from .query import Entry, Query


def decode_row(row: Any) -> Entry:
    """Turn a raw ``(key, data)`` driver row into an ``Entry``.

    Raises:
        ScanError: If the row does not have exactly a text key and a binary value.
    """
    try:
        key, data = row
    except (TypeError, ValueError) as e:
        raise ScanError(f"Error reading rows from query: expected (key, data), got {row!r}", cause=e) from e
    if not isinstance(key, str):
        raise ScanError(f"Error reading rows from query: key is {type(key).__name__}, not str")
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise ScanError(f"Error reading rows from query: data is {type(data).__name__}, not bytes")
    return Entry(key=key, value=bytes(data))


def scan(cursor: Cursor) -> Iterator[Entry]:
    """Decode cursor rows lazily. Driver failures while fetching become ``ScanError``."""
    rows = iter(cursor)
    while True:
        try:
            row = next(rows)
        except StopIteration:
            return
        except Exception as e:
            raise ScanError(f"Error reading rows from query: {e}", cause=e) from e
        yield decode_row(row)


class Results:
    """Lazy single-pass sequence of entries for one query."""

    def __init__(
        self,
        query: Query,
        entries: Iterable[Entry],
        close: Callable[[], None] | None = None,
    ):
        self._query = query
        self._entries = iter(entries)
        self._release = close
        self._closed = False

    @classmethod
    def from_cursor(cls, query: Query, cursor: Cursor) -> Results:
        return cls(query, scan(cursor), cursor.close)

    @classmethod
    def from_entries(cls, query: Query, entries: Iterable[Entry]) -> Results:
        """Results over entries already in memory."""
        return cls(query, entries)

    @property
    def query(self) -> Query:
        return self._query

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Results:
        return self

    def __next__(self) -> Entry:
        if self._closed:
            raise StopIteration
        try:
            return next(self._entries)
        except BaseException:
            # Any exit from next() other than a value releases the cursor.
            self.close()
            raise

    def next_sync(self) -> Entry | None:
        """Next entry, or ``None`` once the sequence is exhausted."""
        return next(self, None)

    def rest(self) -> list[Entry]:
        """Drain the remaining entries into a list and release the cursor."""
        try:
            return list(self)
        finally:
            self.close()

    def transform(self, stage: Callable[[Iterator[Entry]], Iterable[Entry]]) -> Results:
        """New results feeding this sequence through ``stage``.

        Closing the new results closes this one.
        """
        return Results(self._query, stage(self), self.close)

    def close(self) -> None:
        """Release the cursor. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        entries = self._entries
        self._entries = iter(())
        try:
            close_gen = getattr(entries, "close", None)
            if close_gen is not None:
                close_gen()
        finally:
            if self._release is not None:
                self._release()

    def __enter__(self) -> Results:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<Results {self._query} ({state})>"


__all__ = [
    "Results",
    "decode_row",
    "scan",
]
