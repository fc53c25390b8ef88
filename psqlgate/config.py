"""Configuration models and TOML loading helpers."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

import tomllib

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, ValidationError

from .errors import ConfigurationError

CONFIG_FILE = Path.home() / ".config" / "psqlgate" / "config.toml"

MASTER_DATABASE = "postgres"
MASTER_SCHEMA = "public"
DEFAULT_PORT = 5432


class VirtualizationPolicy(str, Enum):
    """How logical databases map onto the physical backend."""

    FULL_ACCESS = "full_access"
    SCHEMA_AS_DATABASE = "schema_as_database"
    FIXED = "fixed"


class ConnectionParameters(BaseModel):
    """Parameters for one physical connection; immutable once built."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    host: str = "localhost"
    port: PositiveInt = DEFAULT_PORT
    database: str | None = None
    schema_name: str = Field(default=MASTER_SCHEMA, alias="schema")
    username: str | None = None
    password: str | None = None
    timezone: str | None = None

    def with_database(self, name: str) -> ConnectionParameters:
        """Return a copy pointed at another physical database."""

        return self.model_copy(update={"database": name})

    def connect_kwargs(self, timeout: float | None = None) -> dict[str, object]:
        """Keyword arguments for ``asyncpg.connect``."""

        kwargs: dict[str, object] = {
            "host": self.host or "localhost",
            "port": self.port,
            "database": self.database or MASTER_DATABASE,
        }
        if self.username:
            kwargs["user"] = self.username
        if self.password:
            kwargs["password"] = self.password
        if timeout is not None:
            kwargs["timeout"] = timeout
        return kwargs


class DatabaseConfig(BaseModel):
    """Virtualization flags applied when a session connects."""

    allow_query_master_postgres: bool = True
    model_schema_as_database: bool = True
    connect_timeout: float = 5.0

    def policy(self) -> VirtualizationPolicy:
        """Resolve the flags into a single policy."""

        if self.model_schema_as_database:
            return VirtualizationPolicy.SCHEMA_AS_DATABASE
        if self.allow_query_master_postgres:
            return VirtualizationPolicy.FULL_ACCESS
        return VirtualizationPolicy.FIXED


class Settings(BaseModel):
    """Shape of the configuration file."""

    connection: ConnectionParameters = Field(default_factory=ConnectionParameters)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)


def load_config(path: Path | None = None) -> Settings:
    """Load settings from disk; fall back to defaults if missing."""

    try:
        data = _read_config_file(path or CONFIG_FILE)
    except FileNotFoundError:
        return Settings()
    except (tomllib.TOMLDecodeError, OSError):
        return Settings()

    try:
        return Settings(
            connection=ConnectionParameters(**data.get("connection", {})),
            database=DatabaseConfig(**data.get("database", {})),
        )
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def _read_config_file(path: Path) -> dict[str, dict[str, object]]:
    with path.open("rb") as handle:
        raw = tomllib.load(handle)
    data: dict[str, dict[str, object]] = {}
    connection = raw.get("connection")
    if isinstance(connection, dict):
        data["connection"] = {
            key: value
            for key, value in connection.items()
            if key in ("host", "port", "database", "schema", "username", "password", "timezone")
        }
    database = raw.get("database")
    if isinstance(database, dict):
        data["database"] = {
            key: value
            for key, value in database.items()
            if key in DatabaseConfig.model_fields
        }
    return data


__all__ = [
    "CONFIG_FILE",
    "ConnectionParameters",
    "DatabaseConfig",
    "DEFAULT_PORT",
    "MASTER_DATABASE",
    "MASTER_SCHEMA",
    "Settings",
    "VirtualizationPolicy",
    "load_config",
]
