"""Configuration for the metadata service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class CacheConfig:
    """Cache configuration."""
    backend: str = "file"  # file | memory
    # Directory for cache files (None = <system temp>/metadata-context)
    directory: str | None = None
    file_suffix: str = ".json.tmp"
    ttl_hours: float = 1.0


@dataclass
class CatalogConfig:
    """Catalog access configuration."""
    driver: str = "ODBC Driver 17 for SQL Server"
    login_timeout_seconds: int = 15


@dataclass
class ConnectionConfig:
    """
    A named connection, keyed by owner URI in the config file.

    Either a full ODBC ``connection_string`` or ``server`` (plus optional
    ``database`` / ``driver`` and SQL or trusted authentication).
    """
    server: str | None = None
    database: str | None = None
    driver: str | None = None
    user: str | None = None
    password: str | None = None
    trusted_connection: bool = False
    connection_string: str | None = None
    # Server name used for cache keys (defaults to ``server``)
    server_name: str | None = None


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class Config:
    """Main configuration container."""
    cache: CacheConfig = field(default_factory=CacheConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    connections: dict[str, ConnectionConfig] = field(default_factory=dict)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Create config from dictionary."""
        connections = {
            owner_uri: ConnectionConfig(**(conn or {}))
            for owner_uri, conn in (data.get("connections") or {}).items()
        }
        return cls(
            cache=CacheConfig(**data.get("cache", {})),
            catalog=CatalogConfig(**data.get("catalog", {})),
            connections=connections,
            logging=LoggingConfig(**data.get("logging", {})),
        )

    @classmethod
    def from_yaml(cls, path: str) -> Config:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_json(cls, path: str) -> Config:
        """Load config from JSON file."""
        import json
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def load(cls, path: str | None) -> Config:
        """Load config from a YAML or JSON file by extension; defaults if no path."""
        if not path:
            return cls()
        if path.endswith((".yaml", ".yml")):
            return cls.from_yaml(path)
        return cls.from_json(path)
