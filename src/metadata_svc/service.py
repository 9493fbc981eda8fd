"""Context service - serves server contextualization trees from cache or catalog.

Flow:
1. Resolve the request's owner URI to a catalog handle
2. Derive the cache key from the server name and exclusion settings
3. Fresh cache entry -> return it
4. Otherwise (or when forced) build the tree from the catalog, prune it if
   asked to, hand it to the caller, then store it for the next request
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

from .api_models import ContextRequest, ContextResult
from .cache.base import CacheIOError, ContextCache
from .cache.file_store import FileContextCache
from .cache.memory import InMemoryContextCache
from .config import Config
from .connections.registry import (
    CatalogHandle,
    ConnectionNotFound,
    ConnectionRegistry,
    ConnectionResolver,
)
from .context.builder import build_tree
from .context.pruner import prune_empty
from .context.reader import CatalogQueryError, CatalogReader
from .context.types import ExclusionConfig, MetadataNode


logger = logging.getLogger(__name__)


class ResponseChannel(Protocol):
    """Where the outcome of a submitted request is delivered."""

    async def send_result(self, result: ContextResult) -> None:
        ...

    async def send_error(self, message: str) -> None:
        ...


def create_cache(config: Config) -> ContextCache:
    """Create the cache backend named in the config."""
    cache_config = config.cache
    if cache_config.backend == "memory":
        return InMemoryContextCache(default_ttl_hours=cache_config.ttl_hours)
    if cache_config.backend == "file":
        return FileContextCache(
            directory=cache_config.directory,
            suffix=cache_config.file_suffix,
            default_ttl_hours=cache_config.ttl_hours,
        )
    raise ValueError(f"Unknown cache backend: {cache_config.backend}")


@dataclass
class ContextService:
    """
    Server contextualization service.

    Responsibilities:
    - Decide between cached tree and fresh build
    - Build (and optionally prune) trees from the catalog
    - Keep the cache up to date without letting cache failures reach callers
    - Run requests in the background and report back through a channel
    """
    connections: ConnectionResolver
    cache: ContextCache
    config: Config = field(default_factory=Config)

    # Background requests still running
    _tasks: set[asyncio.Task] = field(default_factory=set, init=False)

    @classmethod
    def from_config(cls, config: Config) -> ContextService:
        return cls(
            connections=ConnectionRegistry.from_config(config),
            cache=create_cache(config),
            config=config,
        )

    def build(self, handle: CatalogHandle, exclusions: ExclusionConfig) -> MetadataNode:
        """
        Build the tree for a server straight from its catalog.

        Raises:
            CatalogQueryError: If connecting or any catalog query fails
        """
        with handle.open() as conn:
            root = build_tree(CatalogReader(conn), exclusions)

        if exclusions.prune_empty_nodes:
            root = prune_empty(root)
        return root

    def _lookup(
        self,
        handle: CatalogHandle,
        exclusions: ExclusionConfig,
        force_refresh: bool,
        ttl_hours: float | None,
    ) -> tuple[MetadataNode, str | None]:
        """
        Get the tree from cache or catalog.

        Returns the tree and, when it was freshly built, the key it still
        has to be stored under (None for a cache hit).
        """
        ttl = self.config.cache.ttl_hours if ttl_hours is None else ttl_hours
        key = self.cache.key(handle.server_name, exclusions)

        if force_refresh or self.cache.is_stale(key, ttl):
            reason = "forced refresh" if force_refresh else "cache miss or stale entry"
            logger.info(f"Building contextualization tree for {handle.server_name} ({reason})")
            try:
                root = self.build(handle, exclusions)
            except CatalogQueryError as e:
                logger.error(
                    f"An error was encountered while generating server contextualization "
                    f"for {handle.server_name}: {e}"
                )
                raise
            return root, key

        logger.debug(f"Serving cached contextualization tree for {handle.server_name}")
        try:
            return self.cache.read(key), None
        except CacheIOError as e:
            logger.error(f"Failed to read context from the metadata cache: {e}")
            raise

    def _persist(self, key: str, root: MetadataNode) -> None:
        """Store a freshly built tree; failures are logged, never raised."""
        try:
            self.cache.write(key, root)
        except CacheIOError as e:
            logger.warning(f"Failed to write contextualization tree to cache: {e}")

    def get_context(
        self,
        handle: CatalogHandle,
        exclusions: ExclusionConfig,
        force_refresh: bool = False,
        ttl_hours: float | None = None,
    ) -> MetadataNode:
        """
        Get the contextualization tree for a server.

        Raises:
            CatalogQueryError: If a fresh build was needed and failed
            CacheIOError: If the cached entry could not be read
        """
        root, pending_key = self._lookup(handle, exclusions, force_refresh, ttl_hours)
        if pending_key is not None:
            self._persist(pending_key, root)
        return root

    def get_server_context(
        self,
        request: ContextRequest,
        ttl_hours: float | None = None,
    ) -> MetadataNode:
        """
        Resolve the request's connection and get its tree.

        Raises:
            ConnectionNotFound: If the owner URI has no live connection
        """
        handle = self.connections.resolve(request.owner_uri)
        return self.get_context(
            handle,
            request.to_exclusions(),
            force_refresh=request.force_refresh,
            ttl_hours=ttl_hours,
        )

    async def get_server_context_async(
        self,
        request: ContextRequest,
        ttl_hours: float | None = None,
    ) -> MetadataNode:
        """Same as get_server_context(), run on a worker thread."""
        return await asyncio.to_thread(self.get_server_context, request, ttl_hours)

    def submit(self, request: ContextRequest, channel: ResponseChannel) -> asyncio.Task:
        """
        Handle a request in the background (fire and forget).

        Returns immediately. Exactly one of ``channel.send_result`` or
        ``channel.send_error`` is awaited when the work is done. Must be
        called from a running event loop.
        """
        task = asyncio.create_task(self._handle(request, channel))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _handle(self, request: ContextRequest, channel: ResponseChannel) -> None:
        try:
            handle = self.connections.resolve(request.owner_uri)
            root, pending_key = await asyncio.to_thread(
                self._lookup,
                handle,
                request.to_exclusions(),
                request.force_refresh,
                None,
            )
        except (ConnectionNotFound, CatalogQueryError, CacheIOError) as e:
            await channel.send_error(str(e))
            return
        except Exception as e:
            logger.exception(f"Unexpected error in server contextualization: {e}")
            await channel.send_error(f"Unexpected error in server contextualization: {e}")
            return

        await channel.send_result(ContextResult.from_tree(root))

        # The result is already delivered; storing it is best effort
        if pending_key is not None:
            await asyncio.to_thread(self._persist, pending_key, root)

    async def drain(self) -> None:
        """Wait for all submitted requests to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
