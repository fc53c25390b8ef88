"""Synchronous PostgreSQL session built on asyncpg.

The connector knows nothing about schema selection; masking multiple logical
databases as schemas is handled by :mod:`psqlgate.database`.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Any, Coroutine, Sequence

import asyncpg

from .config import MASTER_DATABASE, ConnectionParameters
from .errors import DatabaseConnectionError, QueryError, UnsupportedOperationError
from .escaping import Escaper, quote_identifier, resolve_escaper
from .placeholders import translate
from .query import ErrorLevel, QueryResult, parse_affected_rows, records_to_result

LOG = logging.getLogger(__name__)

_CLIENT_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)
_MULTIPLE_COMMANDS = "cannot insert multiple commands into a prepared statement"


class PostgresConnector:
    """Owns one physical connection and the name of the selected database.

    Calls block the caller while a private event loop thread drives asyncpg.
    A connector is not safe to share between threads: the status of the last
    statement (used by :meth:`affected_rows`) is unsynchronized session state.
    """

    def __init__(self, *, connect_timeout: float = 5.0, escaper: Escaper | None = None) -> None:
        self._connect_timeout = connect_timeout
        self._escaper = escaper or resolve_escaper()
        self._conn: Any = None
        self._parameters: ConnectionParameters | None = None
        self._database_name: str | None = None
        self._last_status: str | None = None
        self._last_error: str | None = None
        self._loop = asyncio.new_event_loop()
        self._loop_thread = threading.Thread(
            target=self._loop.run_forever,
            name="psqlgate-connector",
            daemon=True,
        )
        self._loop_thread.start()

    @property
    def escaper(self) -> Escaper:
        """Quoting strategy resolved when the connector was built."""

        return self._escaper

    @property
    def parameters(self) -> ConnectionParameters | None:
        return self._parameters

    @property
    def selected_database(self) -> str | None:
        """Name of the database this connection is bound to."""

        return self._database_name

    @property
    def last_error(self) -> str | None:
        """Backend message of the most recent failure, None after a success."""

        return self._last_error

    def connect(self, parameters: ConnectionParameters) -> None:
        """Open the physical connection described by ``parameters``."""

        if self._conn is not None:
            raise UnsupportedOperationError(
                "Connector is already connected. Please create a new database connection"
            )
        kwargs = parameters.connect_kwargs(self._connect_timeout)
        try:
            self._conn = self._run(asyncpg.connect(**kwargs))
        except Exception as exc:
            self._last_error = str(exc)
            raise DatabaseConnectionError(
                f"Couldn't connect to PostgreSQL database '{kwargs['database']}' "
                f"on {kwargs['host']}:{kwargs['port']}: {exc}"
            ) from exc
        self._parameters = parameters
        self._database_name = parameters.database or MASTER_DATABASE
        LOG.info(
            "Connected to PostgreSQL",
            extra={"host": kwargs["host"], "port": kwargs["port"], "database": self._database_name},
        )

    def disconnect(self) -> None:
        """Close the physical connection, if any."""

        conn, self._conn = self._conn, None
        self._database_name = None
        if conn is None:
            return
        try:
            self._run(conn.close())
        except _CLIENT_ERRORS:
            LOG.debug("Error while closing connection", exc_info=True)
        LOG.debug("Disconnected", extra={"database": self._parameters.database if self._parameters else None})

    def close(self) -> None:
        """Disconnect and stop the background event loop."""

        self.disconnect()
        if not self._loop.is_running():  # pragma: no cover - already stopped
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._loop_thread.join(timeout=1)

    def __enter__(self) -> PostgresConnector:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def execute(
        self,
        sql: str,
        parameters: Sequence[Any] = (),
        error_level: ErrorLevel = ErrorLevel.ERROR,
    ) -> QueryResult | None:
        """Run ``sql``, binding ``parameters`` to its ``?`` markers.

        Failures raise :class:`QueryError` unless ``error_level`` asks for the
        failure to be suppressed, in which case None is returned.
        """

        values: list[Any] = []
        if parameters:
            sql, values = translate(sql, parameters)
        conn = self._require_connection()
        started = time.perf_counter()
        try:
            records, status = self._run(self._execute(conn, sql, values))
        except _CLIENT_ERRORS as exc:
            self._last_status = None
            self._last_error = str(exc)
            if error_level is ErrorLevel.ERROR:
                raise QueryError(sql, self._last_error) from exc
            if error_level is ErrorLevel.WARNING:
                LOG.warning("Query failed", extra={"sql": sql, "error": self._last_error})
            return None
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        self._last_status = status
        self._last_error = None
        LOG.debug("Query executed", extra={"sql": sql, "status": status, "elapsed_ms": elapsed_ms})
        return records_to_result(records, status, elapsed_ms)

    def query(self, sql: str, error_level: ErrorLevel = ErrorLevel.ERROR) -> QueryResult | None:
        """Run ``sql`` without bound parameters."""

        return self.execute(sql, (), error_level)

    def affected_rows(self) -> int:
        """Rows affected by the most recent statement (0 before any)."""

        return parse_affected_rows(self._last_status)

    def generated_id(self, table: str) -> int | None:
        """Last value handed out by the ``<table>_ID_seq`` sequence."""

        sequence = self.quote_identifier(f"{table}_ID_seq", separator=None)
        result = self.query(f"SELECT last_value FROM {sequence}")
        row = result.first() if result else None
        return row["last_value"] if row else None

    def server_version(self) -> str | None:
        if self._conn is None:
            return None
        version = self._conn.get_server_version()
        if version is None:
            return None
        if version.micro:
            return f"{version.major}.{version.minor}.{version.micro}"
        return f"{version.major}.{version.minor}"

    def is_active(self) -> bool:
        return bool(self._database_name) and self._conn is not None

    def select_database(self, name: str) -> bool:
        """Succeeds only for the database this connection is already bound to."""

        if name != self._database_name:
            raise UnsupportedOperationError(
                f"PostgresConnector can't change databases (requested '{name}'). "
                "Please create a new database connection"
            )
        return True

    def unload_database(self) -> None:
        self._database_name = None

    def quote_literal(self, value: str) -> str:
        return self._escaper.quote_literal(value)

    def escape_string(self, value: str) -> str:
        return self._escaper.escape_string(value)

    def quote_identifier(self, value: str, separator: str | None = ".") -> str:
        return quote_identifier(self._escaper, value, separator)

    def _require_connection(self) -> Any:
        if self._conn is None:
            raise DatabaseConnectionError("Not connected to a PostgreSQL database.")
        return self._conn

    def _run(self, coro: Coroutine[Any, Any, Any]) -> Any:
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    @staticmethod
    async def _execute(conn: Any, sql: str, values: list[Any]) -> tuple[list[Any], str]:
        try:
            statement = await conn.prepare(sql)
        except asyncpg.PostgresSyntaxError as exc:
            # Scripts with several commands only run over the simple protocol.
            if values or _MULTIPLE_COMMANDS not in str(exc):
                raise
            status = await conn.execute(sql)
            return [], status
        records = await statement.fetch(*values)
        return records, statement.get_statusmsg()


__all__ = ["PostgresConnector"]
