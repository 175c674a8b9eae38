"""Key-value datastore over a SQL table.

Modules
-------
query       Query descriptor, Entry, filters, orders, naive stages
results     Results: lazy single-pass iterator owning a cursor
composer    compose(): base scan + prefix / limit / offset pushdown
batch       SQLBatch: lazily opened transaction, commit / rollback
store       SQLDatastore: the key-value contract
autobatch   AutoBatchingDatastore: buffered writes flushed through batches
locking     MutexDatastore: serialised access for non-thread-safe wrappers
bootstrap   create_datastore() / create_sqlite() / create_postgres()
"""

from .autobatch import AutoBatchingDatastore
from .batch import BatchState, SQLBatch
from .bootstrap import create_datastore, create_postgres, create_sqlite, ensure_table
from .composer import compose
from .locking import MutexDatastore
from .query import (
    Entry,
    Filter,
    FilterKeyCompare,
    FilterKeyPrefix,
    FilterValueCompare,
    Order,
    OrderByFunction,
    OrderByKey,
    OrderByKeyDescending,
    OrderByValue,
    OrderByValueDescending,
    Query,
    naive_filter,
    naive_limit,
    naive_offset,
    naive_order,
)
from .results import Results
from .store import SQLDatastore

__all__ = [
    # Facade
    "SQLDatastore",
    "SQLBatch",
    "BatchState",
    # Wrappers
    "AutoBatchingDatastore",
    "MutexDatastore",
    # Query model
    "Query",
    "Entry",
    "Results",
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
    "compose",
    # Bootstrap
    "create_datastore",
    "create_sqlite",
    "create_postgres",
    "ensure_table",
]
