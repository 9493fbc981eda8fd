"""Tests for configuration loading and the connection registry."""

import json

import pytest

from metadata_svc.config import CatalogConfig, Config, ConnectionConfig
from metadata_svc.connections.registry import (
    ConnectionNotFound,
    ConnectionRegistry,
    OdbcConnectionInfo,
    build_connection_string,
)


SAMPLE_YAML = """
cache:
  backend: file
  directory: /var/cache/metadata
  ttl_hours: 4
catalog:
  driver: ODBC Driver 18 for SQL Server
connections:
  connection://sales:
    server: sql01.firm.com
    database: Sales
    trusted_connection: true
  connection://raw:
    connection_string: "DRIVER={FreeTDS};SERVER=sql02;UID=app;PWD=secret"
logging:
  level: DEBUG
"""


class TestConfig:

    def test_defaults(self):
        config = Config()

        assert config.cache.backend == "file"
        assert config.cache.ttl_hours == 1.0
        assert config.cache.file_suffix == ".json.tmp"
        assert config.connections == {}
        assert config.logging.level == "INFO"

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(SAMPLE_YAML, encoding="utf-8")

        config = Config.from_yaml(str(path))

        assert config.cache.directory == "/var/cache/metadata"
        assert config.cache.ttl_hours == 4
        assert config.catalog.driver == "ODBC Driver 18 for SQL Server"
        assert config.connections["connection://sales"].trusted_connection is True
        assert config.logging.level == "DEBUG"

    def test_from_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"cache": {"backend": "memory"}}), encoding="utf-8")

        assert Config.from_json(str(path)).cache.backend == "memory"

    def test_load_by_extension(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text(SAMPLE_YAML, encoding="utf-8")

        assert Config.load(str(path)).cache.ttl_hours == 4
        assert Config.load(None) == Config()

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")

        assert Config.from_yaml(str(path)) == Config()

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError):
            Config.from_dict({"cache": {"eviction": "lru"}})


class TestConnectionString:

    def test_server_and_database(self):
        conn = ConnectionConfig(server="sql01", database="Sales", user="app", password="pw")

        assert build_connection_string(conn, "ODBC Driver 17 for SQL Server") == (
            "DRIVER={ODBC Driver 17 for SQL Server};SERVER=sql01;DATABASE=Sales;UID=app;PWD=pw"
        )

    def test_trusted_connection(self):
        conn = ConnectionConfig(server="sql01", driver="FreeTDS", trusted_connection=True)

        assert build_connection_string(conn, "ignored") == "DRIVER={FreeTDS};SERVER=sql01;Trusted_Connection=yes"

    def test_explicit_connection_string_wins(self):
        conn = ConnectionConfig(server="sql01", connection_string="DSN=prod")

        assert build_connection_string(conn, "x") == "DSN=prod"

    def test_server_required(self):
        with pytest.raises(ValueError, match="server"):
            build_connection_string(ConnectionConfig(), "x")

    def test_server_name_from_connection_string(self):
        info = OdbcConnectionInfo.from_config(
            ConnectionConfig(connection_string="DRIVER={FreeTDS};Server=sql02,1433;UID=a"),
            CatalogConfig(),
        )

        assert info.server_name == "sql02,1433"

    def test_explicit_server_name(self):
        info = OdbcConnectionInfo.from_config(
            ConnectionConfig(server="10.0.0.5", server_name="sql01"),
            CatalogConfig(login_timeout_seconds=5),
        )

        assert info.server_name == "sql01"
        assert info.login_timeout_seconds == 5

    def test_password_not_in_repr(self):
        info = OdbcConnectionInfo.from_config(
            ConnectionConfig(server="sql01", user="app", password="secret"), CatalogConfig()
        )

        assert "secret" not in repr(info)


class TestConnectionRegistry:

    def test_resolve_registered(self, server_catalog):
        registry = ConnectionRegistry()
        registry.register("connection://a", server_catalog)

        assert registry.resolve("connection://a") is server_catalog
        assert registry.owner_uris() == ["connection://a"]

    def test_resolve_unknown(self):
        with pytest.raises(ConnectionNotFound) as exc_info:
            ConnectionRegistry().resolve("connection://missing")

        assert exc_info.value.owner_uri == "connection://missing"
        assert "connection://missing" in str(exc_info.value)

    def test_unregister(self, server_catalog):
        registry = ConnectionRegistry()
        registry.register("connection://a", server_catalog)

        assert registry.unregister("connection://a") is True
        assert registry.unregister("connection://a") is False
        assert registry.find("connection://a") is None

    def test_from_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(SAMPLE_YAML, encoding="utf-8")

        registry = ConnectionRegistry.from_config(Config.from_yaml(str(path)))

        sales = registry.resolve("connection://sales")
        assert sales.server_name == "sql01.firm.com"
        assert sales.connection_string.startswith("DRIVER={ODBC Driver 18 for SQL Server}")
        assert registry.resolve("connection://raw").server_name == "sql02"
