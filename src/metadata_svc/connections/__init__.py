"""Connection registry: owner URI -> live catalog handle."""

from .registry import (
    CatalogHandle,
    ConnectionNotFound,
    ConnectionRegistry,
    ConnectionResolver,
    OdbcConnectionInfo,
    build_connection_string,
)

__all__ = [
    "CatalogHandle",
    "ConnectionNotFound",
    "ConnectionRegistry",
    "ConnectionResolver",
    "OdbcConnectionInfo",
    "build_connection_string",
]
