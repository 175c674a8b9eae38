"""
Auto-batching wrapper.

Buffers puts and deletes in memory and writes them to the child datastore
through one batch once the buffer grows past ``batch_size`` entries. Reads
see buffered writes. Queries, ``close()`` and ``flush()`` write the buffer out
first; ``sync(prefix)`` writes out the buffered keys under ``prefix``.

Only the latest buffered operation per key is kept, so a put followed by a
delete of the same key flushes as a single delete.

Examples:
    >>> store = AutoBatchingDatastore(create_sqlite("kv.db"), batch_size=16)
    >>> for i in range(100):
    ...     store.put(f"/k/{i}", b"v")
    >>> store.flush()
"""

from __future__ import annotations

from dataclasses import dataclass

from kvspine.core.errors import NotFoundError
from kvspine.core.logging import get_logger
from kvspine.core.protocols import Batch, Datastore

from .query import Query, check_value
from .results import Results

logger = get_logger(__name__)


@dataclass(frozen=True)
class _Op:
    value: bytes | None  # None means delete


class AutoBatchingDatastore:
    """Write-buffering wrapper around another datastore."""

    def __init__(self, child: Datastore, batch_size: int = 16):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._child = child
        self._batch_size = batch_size
        self._buffer: dict[str, _Op] = {}

    @property
    def child(self) -> Datastore:
        return self._child

    @property
    def pending(self) -> int:
        """Number of buffered operations."""
        return len(self._buffer)

    def put(self, key: str, value: bytes) -> None:
        self._buffer[key] = _Op(check_value(value, operation="put", key=key))
        if len(self._buffer) > self._batch_size:
            self.flush()

    def delete(self, key: str) -> None:
        self._buffer[key] = _Op(None)
        if len(self._buffer) > self._batch_size:
            self.flush()

    def get(self, key: str) -> bytes:
        op = self._buffer.get(key)
        if op is None:
            return self._child.get(key)
        if op.value is None:
            raise NotFoundError().with_context(operation="get", key=key)
        return op.value

    def has(self, key: str) -> bool:
        op = self._buffer.get(key)
        if op is None:
            return self._child.has(key)
        return op.value is not None

    def get_size(self, key: str) -> int:
        op = self._buffer.get(key)
        if op is None:
            return self._child.get_size(key)
        if op.value is None:
            raise NotFoundError().with_context(operation="get_size", key=key)
        return len(op.value)

    def _write(self, keys: list[str]) -> None:
        if not keys:
            return
        batch = self._child.batch()
        for key in keys:
            op = self._buffer[key]
            if op.value is None:
                batch.delete(key)
            else:
                batch.put(key, op.value)
        batch.commit()
        for key in keys:
            del self._buffer[key]
        logger.debug("autobatch.flush", ops=len(keys), pending=len(self._buffer))

    def flush(self) -> None:
        """Write every buffered operation to the child in one batch.

        The buffer is only cleared once the batch commits.
        """
        self._write(list(self._buffer))

    def query(self, q: Query) -> Results:
        self.flush()
        return self._child.query(q)

    def sync(self, prefix: str) -> None:
        self._write([k for k in self._buffer if k.startswith(prefix)])
        self._child.sync(prefix)

    def batch(self) -> Batch:
        return self._child.batch()

    def close(self) -> None:
        self.flush()
        self._child.close()


__all__ = ["AutoBatchingDatastore"]
