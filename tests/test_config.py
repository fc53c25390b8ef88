"""Tests for configuration models and loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from psqlgate import config as config_module
from psqlgate.config import ConnectionParameters, DatabaseConfig, Settings, load_config
from psqlgate.errors import ConfigurationError


def test_connection_parameters_defaults() -> None:
    params = ConnectionParameters()

    assert params.host == "localhost"
    assert params.port == 5432
    assert params.schema_name == "public"
    assert params.database is None
    assert params.timezone is None


def test_connection_parameters_reject_non_positive_port() -> None:
    with pytest.raises(ValidationError):
        ConnectionParameters(port=0)


def test_connection_parameters_are_immutable() -> None:
    params = ConnectionParameters(database="app")

    with pytest.raises(ValidationError):
        params.database = "other"  # type: ignore[misc]


def test_with_database_returns_copy() -> None:
    params = ConnectionParameters(database="app", schema="tenant")

    master = params.with_database("postgres")

    assert master.database == "postgres"
    assert master.schema_name == "tenant"
    assert params.database == "app"


def test_connect_kwargs_omit_missing_credentials() -> None:
    kwargs = ConnectionParameters(host="db").connect_kwargs(timeout=2.5)

    assert kwargs == {"host": "db", "port": 5432, "database": "postgres", "timeout": 2.5}


def test_connect_kwargs_include_credentials() -> None:
    kwargs = ConnectionParameters(database="app", username="u", password="p'w").connect_kwargs()

    assert kwargs["user"] == "u"
    assert kwargs["password"] == "p'w"
    assert "timeout" not in kwargs


def test_load_config_returns_defaults_when_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config_module, "CONFIG_FILE", tmp_path / "config.toml")

    result = load_config()

    assert result == Settings()


def test_load_config_reads_values(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        """
[connection]
host = "db.internal"
port = 6543
database = "app"
schema = "tenant"
username = "app_user"
password = "secret"
timezone = "UTC"
unknown = "ignored"

[database]
allow_query_master_postgres = false
model_schema_as_database = false
connect_timeout = 1.5
"""
    )
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    result = load_config()

    assert result.connection.host == "db.internal"
    assert result.connection.port == 6543
    assert result.connection.database == "app"
    assert result.connection.schema_name == "tenant"
    assert result.connection.username == "app_user"
    assert result.connection.timezone == "UTC"
    assert result.database == DatabaseConfig(
        allow_query_master_postgres=False,
        model_schema_as_database=False,
        connect_timeout=1.5,
    )


def test_load_config_accepts_explicit_path(tmp_path: Path) -> None:
    config_path = tmp_path / "custom.toml"
    config_path.write_text('[connection]\ndatabase = "reports"\n')

    result = load_config(config_path)

    assert result.connection.database == "reports"


def test_load_config_handles_toml_errors(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("[connection\nhost = ")
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_path)

    assert load_config() == Settings()


def test_load_config_rejects_invalid_values(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("[connection]\nport = -1\n")

    with pytest.raises(ConfigurationError):
        load_config(config_path)
