"""Pruning of empty container nodes."""

from __future__ import annotations

from .types import PRUNABLE_KINDS, MetadataNode


def prune_empty(node: MetadataNode) -> MetadataNode:
    """
    Return a copy of the tree without empty databases, schemas, tables and views.

    Children are pruned before their parent is judged, so a schema whose
    only table was empty disappears in the same pass. Other kinds are kept
    whether or not they have children, and the node passed in is always
    kept. Applying this twice gives the same tree as applying it once.
    """
    children = []
    for child in node.children:
        pruned = prune_empty(child)
        if pruned.kind in PRUNABLE_KINDS and pruned.is_empty():
            continue
        children.append(pruned)
    return node.with_children(children)
