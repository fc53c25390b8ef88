"""Capability checks run before a project is pointed at a PostgreSQL server."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from .config import MASTER_DATABASE, ConnectionParameters, DatabaseConfig, Settings, load_config
from .connector import PostgresConnector
from .errors import DatabaseConnectionError
from .query import ErrorLevel

LOG = logging.getLogger(__name__)

MINIMUM_VERSION = "8.3"
SCRATCH_DATABASE = "psqlgate_permission_check"


@dataclass(frozen=True, slots=True)
class CheckResult:
    """Outcome of a single check."""

    success: bool
    error: str = ""
    already_exists: bool = False


def _parse_version(value: str) -> tuple[int, ...]:
    parts: list[int] = []
    for chunk in value.split(".")[:3]:
        digits = "".join(ch for ch in chunk if ch.isdigit())
        parts.append(int(digits) if digits else 0)
    return tuple(parts)


class ConfigurationChecker:
    """Checks connectivity, server version and database permissions."""

    def __init__(
        self,
        config: DatabaseConfig | None = None,
        *,
        connector_factory: Callable[[], PostgresConnector] | None = None,
    ) -> None:
        self._config = config or DatabaseConfig()
        self._connector_factory = connector_factory or (
            lambda: PostgresConnector(connect_timeout=self._config.connect_timeout)
        )

    def require_connection(self, parameters: ConnectionParameters) -> CheckResult:
        """Credentials can open a session against the master database."""

        connector = self._connector_factory()
        try:
            connector.connect(parameters.with_database(MASTER_DATABASE))
        except DatabaseConnectionError as exc:
            return CheckResult(success=False, error=str(exc))
        finally:
            connector.close()
        return CheckResult(success=True)

    def database_version(self, parameters: ConnectionParameters) -> str | None:
        connector = self._connector_factory()
        try:
            connector.connect(parameters.with_database(MASTER_DATABASE))
            return connector.server_version()
        except DatabaseConnectionError:
            LOG.debug("Could not determine server version", exc_info=True)
            return None
        finally:
            connector.close()

    def require_version(
        self,
        parameters: ConnectionParameters,
        minimum: str = MINIMUM_VERSION,
    ) -> CheckResult:
        version = self.database_version(parameters)
        if not version:
            return CheckResult(success=False, error="Your PostgreSQL version could not be determined.")
        if _parse_version(version) < _parse_version(minimum):
            return CheckResult(
                success=False,
                error=f"Your PostgreSQL version is {version}. It's recommended you use at least {minimum}.",
            )
        return CheckResult(success=True)

    def require_database_or_create_permissions(self, parameters: ConnectionParameters) -> CheckResult:
        """The target database exists, or the user may create databases."""

        connector = self._connector_factory()
        try:
            connector.connect(parameters.with_database(MASTER_DATABASE))
        except DatabaseConnectionError as exc:
            connector.close()
            return CheckResult(success=False, error=str(exc))
        try:
            database = parameters.database or MASTER_DATABASE
            result = connector.execute(
                "SELECT datname FROM pg_catalog.pg_database WHERE datname = ?",
                [database],
            )
            if result and result.num_records():
                return CheckResult(success=True, already_exists=True)
            scratch = connector.quote_identifier(SCRATCH_DATABASE, separator=None)
            if connector.query(f"CREATE DATABASE {scratch}", ErrorLevel.SILENT) is None:
                return CheckResult(
                    success=False,
                    error=f"Cannot create database '{database}': {connector.last_error}",
                )
            if connector.query(f"DROP DATABASE {scratch}", ErrorLevel.WARNING) is None:
                return CheckResult(
                    success=False,
                    error=f"Created database '{SCRATCH_DATABASE}' but could not drop it: {connector.last_error}",
                )
            return CheckResult(success=True)
        finally:
            connector.close()


def run_checks(settings: Settings, checker: ConfigurationChecker | None = None) -> dict[str, CheckResult]:
    """Run every check against the configured connection."""

    checker = checker or ConfigurationChecker(settings.database)
    parameters = settings.connection
    results = {"connection": checker.require_connection(parameters)}
    if not results["connection"].success:
        return results
    results["version"] = checker.require_version(parameters)
    results["database"] = checker.require_database_or_create_permissions(parameters)
    return results


def main(argv: Sequence[str] | None = None) -> int:
    """Print a check report; the exit status is 1 when any check fails."""

    parser = argparse.ArgumentParser(prog="psqlgate", description=__doc__)
    parser.add_argument("--config", type=Path, default=None, help="path to config.toml")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    settings = load_config(args.config)
    results = run_checks(settings)
    for name, result in results.items():
        status = "ok" if result.success else "FAILED"
        detail = f" ({result.error})" if result.error else ""
        if result.already_exists:
            detail = " (database already exists)"
        print(f"{name:<12} {status}{detail}")
    return 0 if all(result.success for result in results.values()) else 1


__all__ = [
    "CheckResult",
    "ConfigurationChecker",
    "MINIMUM_VERSION",
    "SCRATCH_DATABASE",
    "main",
    "run_checks",
]
