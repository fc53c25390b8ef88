"""Shared fixtures emulating a PostgreSQL server behind asyncpg."""

from __future__ import annotations

import re
from typing import Any, Iterator

import asyncpg
import pytest
from asyncpg.types import ServerVersion

from psqlgate.connector import PostgresConnector

_IDENTIFIER = re.compile(r'"((?:[^"]|"")*)"')


def _identifiers(sql: str) -> list[str]:
    return [match.replace('""', '"') for match in _IDENTIFIER.findall(sql)]


class FakeStatement:
    def __init__(self, conn: "FakeConnection", sql: str) -> None:
        self._conn = conn
        self._sql = sql
        self._status = ""

    async def fetch(self, *args: Any) -> list[dict[str, Any]]:
        rows, self._status = self._conn.server.handle(self._conn, self._sql, args)
        return rows

    def get_statusmsg(self) -> str:
        return self._status


class FakeConnection:
    def __init__(self, server: "FakeServer", database: str) -> None:
        self.server = server
        self.database = database
        self.search_path: list[str] = ["public"]
        self.settings: dict[str, str] = {}
        self.closed = False

    async def prepare(self, sql: str) -> FakeStatement:
        self.server.prepared.append(sql)
        if ";" in sql.strip().rstrip(";"):
            raise asyncpg.exceptions.PostgresSyntaxError(
                "cannot insert multiple commands into a prepared statement"
            )
        return FakeStatement(self, sql)

    async def execute(self, sql: str) -> str:
        _, status = self.server.handle(self, sql, ())
        return status

    async def close(self) -> None:
        self.closed = True

    def get_server_version(self) -> ServerVersion:
        return self.server.version


class FakeServer:
    """In-memory catalog of databases and schemas; counts physical connects."""

    def __init__(self) -> None:
        self.databases: dict[str, set[str]] = {"postgres": {"public"}}
        self.connects: list[dict[str, Any]] = []
        self.connections: list[FakeConnection] = []
        self.statements: list[tuple[str, str, tuple[Any, ...]]] = []
        self.prepared: list[str] = []
        self.results: dict[str, tuple[list[dict[str, Any]], str]] = {}
        self.failures: dict[str, Exception] = {}
        self.refuse: Exception | None = None
        self.can_create_databases = True
        self.version = ServerVersion(16, 2, 0, "final", 0)

    async def connect(self, **kwargs: Any) -> FakeConnection:
        self.connects.append(kwargs)
        if self.refuse is not None:
            raise self.refuse
        database = kwargs["database"]
        if database not in self.databases:
            raise asyncpg.exceptions.InvalidCatalogNameError(f'database "{database}" does not exist')
        conn = FakeConnection(self, database)
        self.connections.append(conn)
        return conn

    def sql_for(self, database: str | None = None) -> list[str]:
        return [sql for db, sql, _ in self.statements if database is None or db == database]

    def handle(self, conn: FakeConnection, sql: str, args: tuple[Any, ...]) -> tuple[list[dict[str, Any]], str]:
        self.statements.append((conn.database, sql, args))
        for fragment, exc in self.failures.items():
            if fragment in sql:
                raise exc
        if sql in self.results:
            return self.results[sql]
        schemas = self.databases[conn.database]
        text = sql.strip()
        if "nspname = $1" in text:
            return ([{"?column?": 1}] if args[0] in schemas else []), "SELECT"
        if "FROM pg_catalog.pg_namespace" in text:
            rows = [{"nspname": name} for name in sorted(schemas)]
            return rows, f"SELECT {len(rows)}"
        if "datname = $1" in text:
            return ([{"datname": args[0]}] if args[0] in self.databases else []), "SELECT"
        if "FROM pg_catalog.pg_database" in text:
            rows = [{"datname": name} for name in sorted(self.databases)]
            return rows, f"SELECT {len(rows)}"
        if text.startswith("CREATE SCHEMA"):
            schemas.add(_identifiers(text)[0])
            return [], "CREATE SCHEMA"
        if text.startswith("DROP SCHEMA"):
            schemas.discard(_identifiers(text)[0])
            return [], "DROP SCHEMA"
        if text.startswith("CREATE DATABASE"):
            if not self.can_create_databases:
                raise asyncpg.exceptions.InsufficientPrivilegeError("permission denied to create database")
            self.databases[_identifiers(text)[0]] = {"public"}
            return [], "CREATE DATABASE"
        if text.startswith("DROP DATABASE"):
            self.databases.pop(_identifiers(text)[0], None)
            return [], "DROP DATABASE"
        if text.startswith("SET search_path TO"):
            conn.search_path = _identifiers(text)
            return [], "SET"
        if text == "SELECT current_schema()":
            return [{"current_schema": conn.search_path[0]}], "SELECT 1"
        if "set_config('TimeZone'" in text:
            conn.settings["TimeZone"] = args[0]
            return [{"set_config": args[0]}], "SELECT 1"
        return [], text.split(None, 1)[0].upper()


@pytest.fixture
def server(monkeypatch: pytest.MonkeyPatch) -> FakeServer:
    fake = FakeServer()
    monkeypatch.setattr("psqlgate.connector.asyncpg.connect", fake.connect)
    return fake


@pytest.fixture
def connector(server: FakeServer) -> Iterator[PostgresConnector]:
    instance = PostgresConnector()
    try:
        yield instance
    finally:
        instance.close()
