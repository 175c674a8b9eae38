"""Database types and configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DatabaseType(str, Enum):
    """Supported database types."""

    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"


@dataclass
class DatabaseConfig:
    """
    Configuration for database connection.

    Different fields are used by different database types.
    """

    # Common
    db_type: DatabaseType = DatabaseType.SQLITE

    # SQLite
    path: str | None = None

    # PostgreSQL
    host: str = "postgres"
    port: int = 5432
    database: str = "datastore"
    username: str | None = None
    password: str | None = None

    # Connection pool
    pool_min_size: int = 1
    pool_size: int = 10

    # Options
    connect_timeout: float = 10.0

    # Extra options (driver-specific)
    options: dict[str, Any] = field(default_factory=dict)

    @property
    def is_memory(self) -> bool:
        """True for SQLite databases that live only in this process."""
        path = self.path or ":memory:"
        return path == ":memory:" or "mode=memory" in path


__all__ = [
    "DatabaseType",
    "DatabaseConfig",
]
