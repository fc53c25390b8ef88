"""Logical database virtualization on top of a single PostgreSQL connection.

PostgreSQL cannot switch databases on a live connection. Depending on the
configured policy a logical database is therefore either a real database,
fixed for the lifetime of the session, or a schema inside one physical
database that is selected by changing the search path.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Sequence

from .config import MASTER_DATABASE, ConnectionParameters, DatabaseConfig, VirtualizationPolicy
from .connector import PostgresConnector
from .errors import (
    ConfigurationError,
    DatabaseConnectionError,
    InvalidArgumentError,
    PsqlGateError,
    UnsupportedOperationError,
)
from .query import ErrorLevel, QueryResult

LOG = logging.getLogger(__name__)

ConnectorFactory = Callable[[], PostgresConnector]

_TRANSACTION_MODE = re.compile(r"^[A-Za-z][A-Za-z ,]*$")


class PostgresDatabase:
    """Implements logical database semantics for one working connection."""

    supports_transactions = True
    supports_collations = True
    supports_timezone_override = True
    database_server = "postgresql"

    def __init__(
        self,
        config: DatabaseConfig | None = None,
        *,
        connector_factory: ConnectorFactory | None = None,
    ) -> None:
        self._config = config or DatabaseConfig()
        self._policy = self._config.policy()
        self._connector_factory = connector_factory or self._default_connector
        self._connector: PostgresConnector | None = None
        self._parameters: ConnectionParameters | None = None
        self._database_original: str | None = None
        self._schema_original: str | None = None
        self._database: str | None = None
        self._schema: str | None = None

    @property
    def policy(self) -> VirtualizationPolicy:
        return self._policy

    @property
    def connector(self) -> PostgresConnector:
        """The working connection; raises if :meth:`connect` has not run."""

        if self._connector is None:
            raise DatabaseConnectionError("PostgresDatabase is not connected.")
        return self._connector

    @property
    def selected_database(self) -> str | None:
        """Logical database currently selected."""

        return self._database

    @property
    def schema(self) -> str | None:
        return self._schema

    def connect(self, parameters: ConnectionParameters) -> None:
        """Connect the working session and select the requested schema."""

        if self._connector is not None:
            raise UnsupportedOperationError(
                "PostgresDatabase is already connected; create a new instance to reconnect"
            )
        if not parameters.database:
            if not self._config.allow_query_master_postgres:
                raise ConfigurationError(
                    "PostgresDatabase.connect called without a database name specified"
                )
            parameters = parameters.with_database(MASTER_DATABASE)
        database = parameters.database or MASTER_DATABASE
        schema = parameters.schema_name or "public"
        self._database_original = database
        self._schema_original = schema
        self._parameters = parameters
        LOG.debug("Resolved virtualization policy", extra={"policy": self._policy.value})

        if self._config.allow_query_master_postgres and database != MASTER_DATABASE:
            self._ensure_database(parameters, database)

        connector = self._connector_factory()
        try:
            connector.connect(parameters)
        except PsqlGateError:
            connector.close()
            raise
        self._connector = connector
        self._database = database

        try:
            if not self.schema_exists(schema):
                if self._policy is VirtualizationPolicy.FIXED:
                    raise ConfigurationError(f"Schema {schema} does not exist", name=schema)
                self.create_schema(schema)
            self.set_schema(schema)
            if parameters.timezone:
                self.select_timezone(parameters.timezone)
        except PsqlGateError:
            self.disconnect()
            raise

    def disconnect(self) -> None:
        if self._connector is not None:
            self._connector.close()
        self._connector = None
        self._database = None
        self._schema = None

    def is_active(self) -> bool:
        return self._connector is not None and self._connector.is_active()

    def query(self, sql: str, error_level: ErrorLevel = ErrorLevel.ERROR) -> QueryResult | None:
        return self.connector.query(sql, error_level)

    def prepared_query(
        self,
        sql: str,
        parameters: Sequence[Any],
        error_level: ErrorLevel = ErrorLevel.ERROR,
    ) -> QueryResult | None:
        return self.connector.execute(sql, parameters, error_level)

    def select_database(self, name: str, create: bool = False) -> bool:
        """Switch the logical database.

        Only schema virtualization can switch without a new connection; the
        other policies refuse so that open transactions are never stranded
        on the previous database.
        """

        if name == self._database:
            return True
        if self._policy is not VirtualizationPolicy.SCHEMA_AS_DATABASE:
            raise UnsupportedOperationError(
                f"Cannot switch to database '{name}' on a live PostgreSQL connection; "
                "reconnect instead"
            )
        schema = self._schema_for_database(name)
        if not self.schema_exists(schema):
            if not create:
                LOG.debug("Logical database not found", extra={"database": name})
                return False
            self.create_schema(schema)
        self.set_schema(schema)
        self._database = name
        LOG.info("Selected logical database", extra={"database": name, "schema": schema})
        return True

    def current_schema(self) -> str | None:
        if self._schema:
            return self._schema
        result = self.query("SELECT current_schema()")
        return result.value() if result else None  # type: ignore[return-value]

    def set_schema(self, name: str) -> None:
        """Check the schema exists and make it the search path."""

        if not self.schema_exists(name):
            raise ConfigurationError(f"Schema {name} does not exist", name=name)
        self.set_search_path([name])
        self._schema = name

    def set_search_path(self, names: Sequence[str]) -> None:
        """Search ``names`` in order; the first one receives new objects."""

        if not names:
            raise InvalidArgumentError("At least one schema must be supplied to set a search path.")
        connector = self.connector
        path = ", ".join(connector.quote_identifier(name, separator=None) for name in names)
        connector.query(f"SET search_path TO {path}")

    def select_timezone(self, timezone: str | None) -> None:
        if not timezone:
            return
        self.connector.execute("SELECT set_config('TimeZone', ?, false)", [timezone])

    def schema_exists(self, name: str) -> bool:
        result = self.connector.execute(
            "SELECT 1 FROM pg_catalog.pg_namespace WHERE nspname = ?",
            [name],
        )
        return bool(result and result.num_records())

    def create_schema(self, name: str) -> None:
        self.connector.query(f"CREATE SCHEMA {self.connector.quote_identifier(name, separator=None)}")
        LOG.info("Created schema", extra={"schema": name})

    def drop_schema(self, name: str) -> None:
        if name == self._schema:
            raise UnsupportedOperationError(f"Cannot drop the active schema '{name}'")
        self.connector.query(
            f"DROP SCHEMA {self.connector.quote_identifier(name, separator=None)} CASCADE"
        )
        LOG.info("Dropped schema", extra={"schema": name})

    def schema_list(self) -> list[str]:
        result = self.connector.query(
            "SELECT nspname FROM pg_catalog.pg_namespace "
            "WHERE nspname NOT LIKE 'pg\\_%' AND nspname <> 'information_schema' "
            "ORDER BY nspname"
        )
        return [str(value) for value in result.column()] if result else []

    def database_exists(self, name: str) -> bool:
        if self._policy is VirtualizationPolicy.SCHEMA_AS_DATABASE:
            return self.schema_exists(self._schema_for_database(name))
        if self._policy is VirtualizationPolicy.FIXED:
            return name == self._database_original
        return _database_exists(self.connector, name)

    def create_database(self, name: str) -> None:
        if self._policy is VirtualizationPolicy.SCHEMA_AS_DATABASE:
            self.create_schema(self._schema_for_database(name))
            return
        self._require_master_access("create", name)
        _create_database(self.connector, name)

    def drop_database(self, name: str) -> None:
        if name == self._database:
            raise UnsupportedOperationError(f"Cannot drop the selected database '{name}'")
        if self._policy is VirtualizationPolicy.SCHEMA_AS_DATABASE:
            self.drop_schema(self._schema_for_database(name))
            return
        self._require_master_access("drop", name)
        self.connector.query(
            f"DROP DATABASE {self.connector.quote_identifier(name, separator=None)}"
        )
        LOG.info("Dropped database", extra={"database": name})

    def database_list(self) -> list[str]:
        if self._policy is VirtualizationPolicy.SCHEMA_AS_DATABASE:
            return self.schema_list()
        if self._policy is VirtualizationPolicy.FIXED:
            return [self._database_original] if self._database_original else []
        result = self.connector.query(
            "SELECT datname FROM pg_catalog.pg_database WHERE NOT datistemplate ORDER BY datname"
        )
        return [str(value) for value in result.column()] if result else []

    def transaction_start(
        self,
        transaction_mode: str | None = None,
        session_characteristics: str | None = None,
    ) -> None:
        mode = _checked_mode(transaction_mode) if transaction_mode else None
        characteristics = _checked_mode(session_characteristics) if session_characteristics else None
        self.query("BEGIN")
        if mode:
            self.query(f"SET TRANSACTION {mode}")
        if characteristics:
            self.query(f"SET SESSION CHARACTERISTICS AS TRANSACTION {characteristics}")

    def transaction_savepoint(self, savepoint: str) -> None:
        self.query(f"SAVEPOINT {self.connector.quote_identifier(savepoint, separator=None)}")

    def transaction_rollback(self, savepoint: str | None = None) -> None:
        if savepoint:
            self.query(
                f"ROLLBACK TO SAVEPOINT {self.connector.quote_identifier(savepoint, separator=None)}"
            )
        else:
            self.query("ROLLBACK")

    def transaction_end(self) -> None:
        self.query("COMMIT")

    def _schema_for_database(self, name: str) -> str:
        if name == self._database_original and self._schema_original:
            return self._schema_original
        return name

    def _require_master_access(self, action: str, name: str) -> None:
        if self._policy is VirtualizationPolicy.FIXED:
            raise UnsupportedOperationError(
                f"Cannot {action} database '{name}' without master database access"
            )

    def _ensure_database(self, parameters: ConnectionParameters, database: str) -> None:
        master = self._connector_factory()
        try:
            master.connect(parameters.with_database(MASTER_DATABASE))
            if not _database_exists(master, database):
                _create_database(master, database)
        finally:
            master.close()

    def _default_connector(self) -> PostgresConnector:
        return PostgresConnector(connect_timeout=self._config.connect_timeout)


def _database_exists(connector: PostgresConnector, name: str) -> bool:
    result = connector.execute("SELECT 1 FROM pg_catalog.pg_database WHERE datname = ?", [name])
    return bool(result and result.num_records())


def _create_database(connector: PostgresConnector, name: str) -> None:
    connector.query(f"CREATE DATABASE {connector.quote_identifier(name, separator=None)}")
    LOG.info("Created database", extra={"database": name})


def _checked_mode(mode: str) -> str:
    if not _TRANSACTION_MODE.match(mode):
        raise InvalidArgumentError(f"Invalid transaction mode: {mode!r}")
    return mode


__all__ = ["ConnectorFactory", "PostgresDatabase"]
