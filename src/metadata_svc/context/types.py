"""Context types - metadata kinds, tree nodes, and exclusion settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable, Iterator

from .reader import quote_identifier


ROOT_NAME = "$root"

# Built-in deny lists, applied unless default exclusions are disabled
DEFAULT_EXCLUDED_DATABASES: tuple[str, ...] = ("master",)
DEFAULT_EXCLUDED_SCHEMAS: tuple[str, ...] = (
    "sys",
    "guest",
    "INFORMATION_SCHEMA",
    # Schemas backing the fixed database roles
    "db_accessadmin",
    "db_backupoperator",
    "db_datareader",
    "db_datawriter",
    "db_ddladmin",
    "db_denydatareader",
    "db_denydatawriter",
    "db_securityadmin",
    "db_owner",
)


class MetadataKind(IntEnum):
    """Kind of a node in the contextualization tree.

    Values are part of the serialized form and must not change.
    """
    ROOT = 0
    DATABASE = 1
    SCHEMA = 2
    TABLE = 3
    VIEW = 4
    STORED_PROCEDURE = 5
    FUNCTION = 6
    COLUMN = 7
    COLUMN_TYPE = 8
    FOREIGN_KEY = 9

    @property
    def display_name(self) -> str:
        """Canonical name, e.g. ``StoredProcedure`` or ``ColumnType``."""
        return "".join(part.capitalize() for part in self.name.split("_"))


# Container kinds, removed by the pruner when they end up without children
PRUNABLE_KINDS = frozenset({
    MetadataKind.DATABASE,
    MetadataKind.SCHEMA,
    MetadataKind.TABLE,
    MetadataKind.VIEW,
})


@dataclass(frozen=True)
class MetadataNode:
    """
    A node of the server contextualization tree.

    Trees are built fresh per request and never mutated afterwards; the
    pruner produces a rewritten tree instead of editing this one.
    """
    kind: MetadataKind
    name: str
    qualified_name: str
    extra_properties: dict[str, str] = field(default_factory=dict)
    children: tuple[MetadataNode, ...] = ()

    # extra_properties is a dict, so nodes compare by value but are not hashable
    __hash__ = None

    @property
    def kind_name(self) -> str:
        return self.kind.display_name

    @classmethod
    def root(cls, children: Iterable[MetadataNode] = ()) -> MetadataNode:
        """Create a root node (empty unless children are given)."""
        return cls(
            kind=MetadataKind.ROOT,
            name=ROOT_NAME,
            qualified_name=ROOT_NAME,
            children=tuple(children),
        )

    def child_of(self, kind: MetadataKind, name: str, **kwargs) -> MetadataNode:
        """Create a child whose qualified name extends this node's."""
        if self.kind == MetadataKind.ROOT:
            qualified_name = quote_identifier(name)
        else:
            qualified_name = f"{self.qualified_name}.{quote_identifier(name)}"
        return MetadataNode(kind=kind, name=name, qualified_name=qualified_name, **kwargs)

    def with_children(self, children: Iterable[MetadataNode]) -> MetadataNode:
        return MetadataNode(
            kind=self.kind,
            name=self.name,
            qualified_name=self.qualified_name,
            extra_properties=dict(self.extra_properties),
            children=tuple(children),
        )

    def walk(self) -> Iterator[MetadataNode]:
        """Iterate over this node and all descendants, pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()

    def find(self, qualified_name: str) -> MetadataNode | None:
        """Find the first node with the given qualified name."""
        for node in self.walk():
            if node.qualified_name == qualified_name:
                return node
        return None

    def is_empty(self) -> bool:
        return not self.children


def _as_names(value: Iterable[str] | None) -> tuple[str, ...] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return (value,)
    return tuple(value)


def _merge(defaults: tuple[str, ...], configured: tuple[str, ...] | None) -> list[str]:
    merged: list[str] = []
    for name in (*defaults, *(configured or ())):
        if name not in merged:
            merged.append(name)
    return merged


@dataclass(frozen=True)
class ExclusionConfig:
    """
    What to leave out of the tree, and whether to prune empty containers.

    Configured names are added on top of the built-in defaults. With
    ``disable_default_exclusions`` only the configured names apply.
    Exclude lists keep their order; ``None`` means "not configured".
    """
    prune_empty_nodes: bool = False
    disable_default_exclusions: bool = False
    exclude_databases: tuple[str, ...] | None = None
    exclude_schemas: tuple[str, ...] | None = None
    exclude_tables: tuple[str, ...] | None = None
    exclude_views: tuple[str, ...] | None = None

    def __post_init__(self):
        for name in ("exclude_databases", "exclude_schemas", "exclude_tables", "exclude_views"):
            object.__setattr__(self, name, _as_names(getattr(self, name)))

    def effective_databases(self) -> list[str]:
        defaults = () if self.disable_default_exclusions else DEFAULT_EXCLUDED_DATABASES
        return _merge(defaults, self.exclude_databases)

    def effective_schemas(self) -> list[str]:
        defaults = () if self.disable_default_exclusions else DEFAULT_EXCLUDED_SCHEMAS
        return _merge(defaults, self.exclude_schemas)

    def effective_tables(self) -> list[str]:
        return _merge((), self.exclude_tables)

    def effective_views(self) -> list[str]:
        return _merge((), self.exclude_views)
