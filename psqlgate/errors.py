"""Error types surfaced by the connectivity layer."""

from __future__ import annotations


class PsqlGateError(RuntimeError):
    """Base class for all psqlgate errors."""


class DatabaseConnectionError(PsqlGateError):
    """Raised when a physical session with the backend cannot be established."""


class QueryError(PsqlGateError):
    """Raised when a statement fails to execute."""

    def __init__(self, sql: str, error: str | None) -> None:
        self.sql = sql
        self.error = error or ""
        super().__init__(f"Couldn't run query: {sql} | {self.error}")


class ConfigurationError(PsqlGateError):
    """Raised when a schema/database is missing or the policy forbids the request."""

    def __init__(self, message: str, *, name: str | None = None) -> None:
        self.name = name
        super().__init__(message)


class InvalidArgumentError(PsqlGateError, ValueError):
    """Raised for malformed calls (e.g. an empty search path)."""


class UnsupportedOperationError(PsqlGateError):
    """Raised when an operation is not available under the active policy."""


__all__ = [
    "ConfigurationError",
    "DatabaseConnectionError",
    "InvalidArgumentError",
    "PsqlGateError",
    "QueryError",
    "UnsupportedOperationError",
]
