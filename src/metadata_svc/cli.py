#!/usr/bin/env python3
"""
CLI tool for server contextualization metadata.

Usage:
    python -m metadata_svc.cli build --config config.yaml --owner-uri connection://sales
    python -m metadata_svc.cli build --connection-string "DRIVER=...;SERVER=sql01" --prune
    python -m metadata_svc.cli key --server-name sql01 --exclude-database tempdb
    python -m metadata_svc.cli purge --older-than 24
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from .cache.base import CacheIOError
from .cache.file_store import FileContextCache
from .config import Config, ConnectionConfig
from .connections.registry import ConnectionNotFound, OdbcConnectionInfo
from .context.reader import CatalogQueryError
from .context.serializer import node_to_dict
from .context.types import ExclusionConfig
from .service import ContextService, create_cache


ADHOC_OWNER_URI = "cli://adhoc"

logger = logging.getLogger(__name__)


def print_json(data: Any, indent: int | None = 2) -> None:
    """Print JSON to stdout."""
    print(json.dumps(data, indent=indent, default=str))


def exclusions_from_args(args: argparse.Namespace) -> ExclusionConfig:
    return ExclusionConfig(
        prune_empty_nodes=args.prune,
        disable_default_exclusions=args.no_default_exclusions,
        exclude_databases=args.exclude_database,
        exclude_schemas=args.exclude_schema,
        exclude_tables=args.exclude_table,
        exclude_views=args.exclude_view,
    )


def cmd_build(args: argparse.Namespace, config: Config) -> int:
    """Build (or fetch from cache) the tree for one server and print it."""
    service = ContextService.from_config(config)

    owner_uri = args.owner_uri
    if args.connection_string:
        owner_uri = ADHOC_OWNER_URI
        conn = ConnectionConfig(
            connection_string=args.connection_string,
            server_name=args.server_name,
        )
        service.connections.register(owner_uri, OdbcConnectionInfo.from_config(conn, config.catalog))

    if not owner_uri:
        print("Error: --owner-uri or --connection-string required", file=sys.stderr)
        return 2

    try:
        handle = service.connections.resolve(owner_uri)
        root = service.get_context(
            handle,
            exclusions_from_args(args),
            force_refresh=args.force,
            ttl_hours=args.ttl_hours,
        )
    except (ConnectionNotFound, CatalogQueryError, CacheIOError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print_json(node_to_dict(root), indent=args.indent)
    return 0


def cmd_key(args: argparse.Namespace, config: Config) -> int:
    """Print the cache key (and file, for the file backend) for a server."""
    cache = create_cache(config)
    key = cache.key(args.server_name, exclusions_from_args(args))
    ttl = config.cache.ttl_hours if args.ttl_hours is None else args.ttl_hours

    info: dict[str, Any] = {
        "server_name": args.server_name,
        "key": key,
        "stale": cache.is_stale(key, ttl),
    }
    if isinstance(cache, FileContextCache):
        info["path"] = str(cache.path_for(key))
    print_json(info)
    return 0


def cmd_purge(args: argparse.Namespace, config: Config) -> int:
    """Delete cache files older than the given age."""
    cache = create_cache(config)
    if not isinstance(cache, FileContextCache):
        print("Error: purge only applies to the file cache backend", file=sys.stderr)
        return 2

    try:
        removed = cache.purge(args.older_than)
    except CacheIOError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print_json({"directory": str(cache.directory), "removed": removed})
    return 0


def _add_exclusion_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--prune", action="store_true", help="Prune empty databases/schemas/tables/views")
    parser.add_argument(
        "--no-default-exclusions", action="store_true",
        help="Do not apply the built-in database and schema exclusions",
    )
    parser.add_argument("--exclude-database", action="append", metavar="NAME", help="Database to exclude (repeatable)")
    parser.add_argument("--exclude-schema", action="append", metavar="NAME", help="Schema to exclude (repeatable)")
    parser.add_argument("--exclude-table", action="append", metavar="NAME", help="Table to exclude (repeatable)")
    parser.add_argument("--exclude-view", action="append", metavar="NAME", help="View to exclude (repeatable)")
    parser.add_argument("--ttl-hours", type=float, default=None, help="Cache TTL (default from config)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="metadata-svc",
        description="Server contextualization metadata",
    )
    parser.add_argument("--config", "-c", help="YAML or JSON config file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Get the contextualization tree for a server")
    build.add_argument("--owner-uri", help="Connection declared in the config file")
    build.add_argument("--connection-string", help="ODBC connection string (ad-hoc connection)")
    build.add_argument("--server-name", help="Server name for the cache key (ad-hoc connection)")
    build.add_argument("--force", action="store_true", help="Ignore the cache and rebuild")
    build.add_argument("--indent", type=int, default=2, help="JSON indent")
    _add_exclusion_args(build)
    build.set_defaults(func=cmd_build)

    key = subparsers.add_parser("key", help="Show the cache key for a server")
    key.add_argument("--server-name", required=True)
    _add_exclusion_args(key)
    key.set_defaults(func=cmd_key)

    purge = subparsers.add_parser("purge", help="Delete old cache files")
    purge.add_argument("--older-than", type=float, required=True, metavar="HOURS")
    purge.set_defaults(func=cmd_purge)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = Config.load(args.config)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config.logging.level,
        format=config.logging.format,
    )

    return args.func(args, config)


if __name__ == "__main__":
    sys.exit(main())
