"""Datastore settings.

``DatastoreSettings`` is the single configuration surface for connecting a
datastore: backend dialect, connection target, credentials and table name.
Values come from ``KVSPINE_*`` environment variables or a ``.env`` file.

Examples:
    >>> settings = DatastoreSettings(dialect="sqlite", path="./data/kv.db")
    >>> settings.table
    'kv'

Tags:
    settings, configuration, pydantic, environment, kv-spine
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .dialect import validate_table_name
from .errors import InvalidConfigError, MissingConfigError


class DatastoreSettings(BaseSettings):
    """Connection and table settings for a SQL datastore.

    Fields
    ──────
    dialect        : ``sqlite`` or ``postgresql``
    path           : SQLite database file (``:memory:`` for ephemeral)
    host / port    : PostgreSQL server
    user / password: PostgreSQL credentials (password has no default)
    database       : PostgreSQL database name
    table          : Backing table for the datastore
    pool_*         : PostgreSQL connection pool bounds
    log_level      : Structlog log level
    json_logs      : JSON output (None = auto-detect from tty)
    """

    model_config = SettingsConfigDict(
        env_prefix="KVSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Backend ──────────────────────────────────────────────────
    dialect: Literal["sqlite", "postgresql"] = "postgresql"
    path: str = ":memory:"

    # ── PostgreSQL ───────────────────────────────────────────────
    host: str = "postgres"
    port: int = 5432
    user: str = "postgres"
    password: SecretStr | None = None
    database: str = "datastore"
    pool_min_size: int = Field(default=1, ge=0)
    pool_max_size: int = Field(default=10, ge=1)

    # ── Storage ──────────────────────────────────────────────────
    table: str = "kv"

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    @field_validator("dialect", mode="before")
    @classmethod
    def _normalize_dialect(cls, value: str) -> str:
        if isinstance(value, str) and value.lower() == "postgres":
            return "postgresql"
        return value.lower() if isinstance(value, str) else value

    @field_validator("table")
    @classmethod
    def _check_table(cls, value: str) -> str:
        try:
            return validate_table_name(value)
        except InvalidConfigError as e:
            raise ValueError(e.message) from e

    def postgres_params(self) -> dict[str, str | int]:
        """libpq connection parameters for the configured server.

        Raises:
            MissingConfigError: If no password was supplied.
        """
        if self.password is None:
            raise MissingConfigError("password", "A password is required to connect to PostgreSQL")
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.database,
            "user": self.user,
            "password": self.password.get_secret_value(),
            "sslmode": "disable",
        }


@lru_cache
def get_settings() -> DatastoreSettings:
    """Process-wide settings loaded from the environment."""
    return DatastoreSettings()


__all__ = [
    "DatastoreSettings",
    "get_settings",
]
