"""Caching layer for contextualization trees."""

from .base import DEFAULT_TTL_HOURS, CacheEntry, CacheIOError, ContextCache, cache_key
from .file_store import FileContextCache, default_cache_directory
from .memory import InMemoryContextCache

__all__ = [
    "ContextCache",
    "CacheEntry",
    "CacheIOError",
    "cache_key",
    "DEFAULT_TTL_HOURS",
    "FileContextCache",
    "default_cache_directory",
    "InMemoryContextCache",
]
