"""Connection registry - resolves an owner URI to a live catalog connection."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Protocol

from ..config import CatalogConfig, Config, ConnectionConfig
from ..context.reader import CatalogQueryError


logger = logging.getLogger(__name__)


class ConnectionNotFound(Exception):
    """Raised when no connection is registered for an owner URI."""

    def __init__(self, owner_uri: str):
        super().__init__(f"Failed to find connection info about the server for '{owner_uri}'")
        self.owner_uri = owner_uri


class CatalogHandle(Protocol):
    """A server whose catalog can be read."""

    @property
    def server_name(self) -> str:
        ...

    def open(self) -> Any:
        """Context manager yielding an open DB-API connection."""
        ...


class ConnectionResolver(Protocol):
    """Resolves a session key (owner URI) to a catalog handle."""

    def resolve(self, owner_uri: str) -> CatalogHandle:
        ...


def build_connection_string(conn: ConnectionConfig, default_driver: str) -> str:
    """Build an ODBC connection string from individual settings."""
    if conn.connection_string:
        return conn.connection_string
    if not conn.server:
        raise ValueError("Either 'connection_string' or 'server' required")

    driver = conn.driver or default_driver
    conn_str = f"DRIVER={{{driver}}};SERVER={conn.server}"

    if conn.database:
        conn_str += f";DATABASE={conn.database}"

    # Auth
    if conn.trusted_connection:
        conn_str += ";Trusted_Connection=yes"
    elif conn.user and conn.password:
        conn_str += f";UID={conn.user};PWD={conn.password}"

    return conn_str


def _server_from_connection_string(conn_str: str) -> str | None:
    for part in conn_str.split(";"):
        name, _, value = part.partition("=")
        if name.strip().upper() in ("SERVER", "DATA SOURCE", "ADDRESS"):
            return value.strip()
    return None


@dataclass(frozen=True)
class OdbcConnectionInfo:
    """Connection details for one SQL Server, opened with pyodbc."""
    server_name: str
    connection_string: str = field(repr=False)
    login_timeout_seconds: int = 15

    @contextmanager
    def open(self) -> Iterator[Any]:
        """
        Open a connection for the duration of the block.

        Raises:
            CatalogQueryError: If the server cannot be reached
        """
        import pyodbc

        try:
            conn = pyodbc.connect(
                self.connection_string,
                timeout=self.login_timeout_seconds,
                readonly=True,
            )
        except pyodbc.Error as e:
            logger.error(f"Failed to connect to {self.server_name}: {e}")
            raise CatalogQueryError(f"Failed to connect to {self.server_name}: {e}") from e

        try:
            yield conn
        finally:
            conn.close()

    @classmethod
    def from_config(cls, conn: ConnectionConfig, catalog: CatalogConfig) -> OdbcConnectionInfo:
        conn_str = build_connection_string(conn, catalog.driver)
        server_name = conn.server_name or conn.server or _server_from_connection_string(conn_str)
        if not server_name:
            raise ValueError("Cannot determine server name for connection")
        return cls(
            server_name=server_name,
            connection_string=conn_str,
            login_timeout_seconds=catalog.login_timeout_seconds,
        )


@dataclass
class ConnectionRegistry:
    """
    Thread-safe map of owner URI -> catalog handle.

    Passed explicitly to the context service; there is no global instance.
    """
    _handles: dict[str, CatalogHandle] = field(default_factory=dict)
    _lock: threading.RLock = field(default_factory=threading.RLock)

    def register(self, owner_uri: str, handle: CatalogHandle) -> None:
        with self._lock:
            self._handles[owner_uri] = handle
        logger.debug(f"Registered connection for {owner_uri} ({handle.server_name})")

    def unregister(self, owner_uri: str) -> bool:
        with self._lock:
            return self._handles.pop(owner_uri, None) is not None

    def find(self, owner_uri: str) -> CatalogHandle | None:
        with self._lock:
            return self._handles.get(owner_uri)

    def resolve(self, owner_uri: str) -> CatalogHandle:
        """
        Get the handle for an owner URI.

        Raises:
            ConnectionNotFound: If nothing is registered for the URI
        """
        handle = self.find(owner_uri)
        if handle is None:
            logger.error(f"Failed to find connection info for {owner_uri}")
            raise ConnectionNotFound(owner_uri)
        return handle

    def owner_uris(self) -> list[str]:
        with self._lock:
            return sorted(self._handles)

    @classmethod
    def from_config(cls, config: Config) -> ConnectionRegistry:
        """Create a registry with every connection declared in the config."""
        registry = cls()
        for owner_uri, conn in config.connections.items():
            registry.register(owner_uri, OdbcConnectionInfo.from_config(conn, config.catalog))
        logger.info(f"Loaded {len(config.connections)} connections")
        return registry
