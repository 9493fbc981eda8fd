"""File-backed cache: one JSON file per cache key."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Callable

from .base import DEFAULT_TTL_HOURS, CacheEntry, CacheIOError, ContextCache


logger = logging.getLogger(__name__)

DEFAULT_SUFFIX = ".json.tmp"
DEFAULT_DIRECTORY_NAME = "metadata-context"


def default_cache_directory() -> Path:
    """Shared location under the system temporary directory."""
    return Path(tempfile.gettempdir()) / DEFAULT_DIRECTORY_NAME


class FileContextCache(ContextCache):
    """
    Stores each tree as ``<key><suffix>`` in a directory.

    Entries are found only by recomputing their key; nothing indexes them.
    Writes land in a temporary file that is then renamed over the entry,
    so concurrent writers resolve last-write-wins and readers never see a
    partial file.
    """

    def __init__(
        self,
        directory: str | Path | None = None,
        suffix: str = DEFAULT_SUFFIX,
        default_ttl_hours: float = DEFAULT_TTL_HOURS,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(default_ttl_hours=default_ttl_hours, clock=clock)
        self.directory = Path(directory) if directory else default_cache_directory()
        self.suffix = suffix

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}{self.suffix}"

    def entry(self, key: str) -> CacheEntry | None:
        path = self.path_for(key)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read cache entry {path}: {e}")
            raise CacheIOError(f"Failed to read cache entry {path}: {e}") from e

        return CacheEntry.from_dict(data)

    def _store(self, entry: CacheEntry) -> None:
        path = self.path_for(entry.key)
        tmp_name = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{entry.key[:16]}.", suffix=".part", dir=self.directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(entry.to_dict(), f, ensure_ascii=False)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to write cache entry {path}: {e}")
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise CacheIOError(f"Failed to write cache entry {path}: {e}") from e

        logger.debug(f"Wrote cache entry {path}")

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise CacheIOError(f"Failed to delete cache entry {path}: {e}") from e
        return True

    def purge(self, older_than_hours: float) -> list[str]:
        """
        Delete entries written at least ``older_than_hours`` ago.

        Unreadable entries are deleted as well. Returns the removed keys.
        Nothing calls this implicitly; it is the retention hook for
        operators (see the ``purge`` CLI command).
        """
        if not self.directory.is_dir():
            return []

        now = self._clock()
        removed = []
        for path in sorted(self.directory.glob(f"*{self.suffix}")):
            key = path.name[: -len(self.suffix)]
            try:
                entry = self.entry(key)
            except CacheIOError:
                entry = None
            if entry is not None and entry.age_seconds(now) < older_than_hours * 3600:
                continue
            if self.delete(key):
                removed.append(key)

        logger.info(f"Purged {len(removed)} cache entries from {self.directory}")
        return removed
