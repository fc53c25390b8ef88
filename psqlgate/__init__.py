"""PostgreSQL connectivity layer with schema-backed logical databases."""

from __future__ import annotations

from .config import ConnectionParameters, DatabaseConfig, Settings, VirtualizationPolicy, load_config
from .connector import PostgresConnector
from .database import PostgresDatabase
from .errors import (
    ConfigurationError,
    DatabaseConnectionError,
    InvalidArgumentError,
    PsqlGateError,
    QueryError,
    UnsupportedOperationError,
)
from .placeholders import TypedParameter, toggles_literal, translate
from .query import ErrorLevel, QueryResult

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "ConnectionParameters",
    "DatabaseConfig",
    "DatabaseConnectionError",
    "ErrorLevel",
    "InvalidArgumentError",
    "PostgresConnector",
    "PostgresDatabase",
    "PsqlGateError",
    "QueryError",
    "QueryResult",
    "Settings",
    "TypedParameter",
    "UnsupportedOperationError",
    "VirtualizationPolicy",
    "__version__",
    "load_config",
    "toggles_literal",
    "translate",
]
