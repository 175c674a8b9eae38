"""Thread-serialising datastore wrapper."""

from __future__ import annotations

import threading

from kvspine.core.protocols import Batch, Datastore

from .query import Query
from .results import Results


class _LockedBatch:
    """Batch whose operations take the datastore lock."""

    def __init__(self, batch: Batch, lock: threading.RLock):
        self._batch = batch
        self._lock = lock

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._batch.put(key, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._batch.delete(key)

    def commit(self) -> None:
        with self._lock:
            self._batch.commit()


class MutexDatastore:
    """
    Serialise every call to ``child`` through one re-entrant lock.

    Wrap a datastore that is not safe for concurrent use (for example an
    ``AutoBatchingDatastore``, whose buffer is a plain dict). Query results
    are produced under the lock but consumed outside it.
    """

    def __init__(self, child: Datastore):
        self._child = child
        self._lock = threading.RLock()

    @property
    def child(self) -> Datastore:
        return self._child

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._child.put(key, value)

    def get(self, key: str) -> bytes:
        with self._lock:
            return self._child.get(key)

    def has(self, key: str) -> bool:
        with self._lock:
            return self._child.has(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._child.delete(key)

    def get_size(self, key: str) -> int:
        with self._lock:
            return self._child.get_size(key)

    def query(self, q: Query) -> Results:
        with self._lock:
            return self._child.query(q)

    def sync(self, prefix: str) -> None:
        with self._lock:
            self._child.sync(prefix)

    def batch(self) -> Batch:
        with self._lock:
            return _LockedBatch(self._child.batch(), self._lock)

    def close(self) -> None:
        with self._lock:
            self._child.close()


__all__ = ["MutexDatastore"]
