"""Cache key derivation and the common cache interface."""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

from ..context.serializer import node_from_dict, node_to_dict
from ..context.types import ExclusionConfig, MetadataNode


logger = logging.getLogger(__name__)

DEFAULT_TTL_HOURS = 1.0


class CacheIOError(Exception):
    """Raised when a cache entry cannot be written, read or decoded."""
    pass


def _names(value: tuple[str, ...] | None) -> list[str] | None:
    return list(value) if value is not None else None


def cache_key(server_name: str, exclusions: ExclusionConfig) -> str:
    """
    Deterministic cache key for a server and its exclusion settings.

    Only settings that change the tree take part; force-refresh and the
    session identity never do. Exclude lists are hashed in the order given,
    so the same names in a different order produce a different key.

    The key is URL-safe base64 of a SHA-256 digest and can be used as a
    file name.
    """
    canonical = json.dumps(
        {
            "PruneEmptyNodes": exclusions.prune_empty_nodes,
            "DisableDefaultExclusions": exclusions.disable_default_exclusions,
            "ExcludeDatabases": _names(exclusions.exclude_databases),
            "ExcludeSchemas": _names(exclusions.exclude_schemas),
            "ExcludeTables": _names(exclusions.exclude_tables),
            "ExcludeViews": _names(exclusions.exclude_views),
            "ServerName": server_name,
        },
        separators=(",", ":"),
        ensure_ascii=False,
    )
    digest = hashlib.sha256(canonical.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


@dataclass(frozen=True)
class CacheEntry:
    """A stored tree with the time it was written (epoch seconds)."""
    key: str
    payload: dict[str, Any]
    written_at: float

    def age_seconds(self, now: float) -> float:
        return now - self.written_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "written_at": self.written_at,
            "context": self.payload,
        }

    @classmethod
    def from_dict(cls, data: Any) -> CacheEntry:
        """
        Decode a stored entry.

        Raises:
            CacheIOError: If the data is not a valid entry
        """
        try:
            return cls(
                key=str(data["key"]),
                payload=data["context"],
                written_at=float(data["written_at"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CacheIOError(f"Malformed cache entry: {e}") from e

    def tree(self) -> MetadataNode:
        """Deserialize the stored tree."""
        try:
            return node_from_dict(self.payload)
        except (TypeError, ValueError) as e:
            raise CacheIOError(f"Malformed tree in cache entry {self.key}: {e}") from e


class ContextCache(ABC):
    """
    Stores contextualization trees under their cache key.

    Every entry carries its own write timestamp, so staleness does not
    depend on the storage medium. A missing entry is always stale, and
    reading it yields an empty root rather than an error.
    """

    def __init__(
        self,
        default_ttl_hours: float = DEFAULT_TTL_HOURS,
        clock: Callable[[], float] = time.time,
    ):
        self.default_ttl_hours = default_ttl_hours
        self._clock = clock

    def key(self, server_name: str, exclusions: ExclusionConfig) -> str:
        return cache_key(server_name, exclusions)

    @abstractmethod
    def entry(self, key: str) -> CacheEntry | None:
        """
        Load the entry for a key, or None if there is none.

        Raises:
            CacheIOError: If an entry exists but cannot be decoded
        """
        ...

    @abstractmethod
    def _store(self, entry: CacheEntry) -> None:
        """Persist an entry, replacing any previous one for its key."""
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove the entry for a key. Returns True if one existed."""
        ...

    def is_stale(self, key: str, ttl_hours: float | None = None) -> bool:
        """
        True if there is no usable entry, or it is at least ``ttl_hours`` old.

        An entry that cannot be decoded, down to its tree, counts as stale
        so that it gets rebuilt and overwritten. So does an entry written
        in the future (clock skew between hosts).
        """
        ttl = self.default_ttl_hours if ttl_hours is None else ttl_hours
        try:
            entry = self.entry(key)
            if entry is None:
                return True
            entry.tree()
        except CacheIOError as e:
            logger.warning(f"Treating unreadable cache entry {key} as stale: {e}")
            return True

        age = entry.age_seconds(self._clock())
        return age < 0 or age >= ttl * 3600

    def write(self, key: str, tree: MetadataNode) -> None:
        """
        Store a tree under a key with a fresh write time.

        Raises:
            CacheIOError: If the tree cannot be serialized or stored
        """
        try:
            payload = node_to_dict(tree)
        except (TypeError, ValueError, AttributeError) as e:
            raise CacheIOError(f"Cannot serialize tree for {key}: {e}") from e
        self._store(CacheEntry(key=key, payload=payload, written_at=self._clock()))

    def read(self, key: str) -> MetadataNode:
        """
        Load the tree stored under a key.

        Returns an empty root node if there is no entry.

        Raises:
            CacheIOError: If an entry exists but is corrupt
        """
        entry = self.entry(key)
        if entry is None:
            return MetadataNode.root()
        return entry.tree()
