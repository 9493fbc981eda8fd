"""Server contextualization tree: model, catalog reading, building and pruning."""

from .builder import TreeBuilder, build_tree
from .pruner import prune_empty
from .reader import CatalogQueryError, CatalogReader, placeholders, quote_identifier
from .serializer import ContextSerializer, node_from_dict, node_to_dict
from .types import (
    DEFAULT_EXCLUDED_DATABASES,
    DEFAULT_EXCLUDED_SCHEMAS,
    PRUNABLE_KINDS,
    ExclusionConfig,
    MetadataKind,
    MetadataNode,
)

__all__ = [
    # Model
    "MetadataKind",
    "MetadataNode",
    "ExclusionConfig",
    "DEFAULT_EXCLUDED_DATABASES",
    "DEFAULT_EXCLUDED_SCHEMAS",
    "PRUNABLE_KINDS",
    # Reading and building
    "CatalogReader",
    "CatalogQueryError",
    "quote_identifier",
    "placeholders",
    "TreeBuilder",
    "build_tree",
    "prune_empty",
    # Serialization
    "ContextSerializer",
    "node_to_dict",
    "node_from_dict",
]
