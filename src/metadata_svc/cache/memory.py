"""In-memory cache for contextualization trees."""

from __future__ import annotations

import copy
import threading
import time
from typing import Callable

from .base import DEFAULT_TTL_HOURS, CacheEntry, ContextCache


class InMemoryContextCache(ContextCache):
    """
    Thread-safe in-process cache with explicit write timestamps.

    Entries hold the serialized payload, never the tree object itself, so
    a tree handed to a caller is not shared with later readers. Useful for
    tests and for hosts that do not want files in the temp directory.
    """

    def __init__(
        self,
        default_ttl_hours: float = DEFAULT_TTL_HOURS,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(default_ttl_hours=default_ttl_hours, clock=clock)
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

        # Stats
        self._hits = 0
        self._misses = 0

    def entry(self, key: str) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
            else:
                self._hits += 1
            return entry

    def _store(self, entry: CacheEntry) -> None:
        stored = CacheEntry(
            key=entry.key,
            payload=copy.deepcopy(entry.payload),
            written_at=entry.written_at,
        )
        with self._lock:
            self._entries[entry.key] = stored

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def purge(self, older_than_hours: float) -> list[str]:
        """Remove entries written at least ``older_than_hours`` ago. Returns their keys."""
        now = self._clock()
        with self._lock:
            expired = [
                key for key, entry in self._entries.items()
                if entry.age_seconds(now) >= older_than_hours * 3600
            ]
            for key in expired:
                del self._entries[key]
        return expired

    @property
    def size(self) -> int:
        """Current number of entries."""
        return len(self._entries)

    @property
    def stats(self) -> dict:
        """Cache statistics."""
        total = self._hits + self._misses
        hit_rate = (self._hits / total * 100) if total > 0 else 0

        return {
            "size": self.size,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate_percent": round(hit_rate, 2),
        }
