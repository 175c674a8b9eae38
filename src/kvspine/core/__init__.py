"""kv-spine core -- backend-facing primitives.

Architecture::

    errors.py          Structured error hierarchy (KVSpineError, NotFoundError)
    logging.py         structlog configuration
    settings.py        DatastoreSettings (pydantic-settings, KVSPINE_*)
    protocols.py       Executor / Transaction / Cursor, Datastore / Batch
    dialect.py         Per-dialect query providers
    adapters/          SQLite and PostgreSQL executors

Nothing here knows about key-value semantics beyond the SQL text in
``dialect.py``; the datastore package builds on these.
"""
