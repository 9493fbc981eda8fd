"""Context serializer - converts MetadataNode trees to JSON-ready dicts and back."""

from __future__ import annotations

from typing import Any

from .types import MetadataKind, MetadataNode


class ContextSerializer:
    """
    Serializes MetadataNode trees for the response and the cache.

    Field names follow the wire format (camelCase). ``kindName`` is always
    derived from ``kind``; it is written out but ignored when reading.
    """

    def serialize_node(self, node: MetadataNode) -> dict[str, Any]:
        return {
            "kind": int(node.kind),
            "kindName": node.kind_name,
            "name": node.name,
            "qualifiedName": node.qualified_name,
            "extraProperties": dict(node.extra_properties),
            "children": [self.serialize_node(child) for child in node.children],
        }

    def deserialize_node(self, data: dict[str, Any]) -> MetadataNode:
        """
        Rebuild a node from its serialized form.

        Raises:
            ValueError: If a field is missing, has the wrong shape, or the
                kind is unknown
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected an object, got {type(data).__name__}")

        try:
            kind = MetadataKind(data["kind"])
            name = data["name"]
            qualified_name = data["qualifiedName"]
        except KeyError as e:
            raise ValueError(f"Missing field {e} in serialized node") from e

        if not isinstance(name, str) or not isinstance(qualified_name, str):
            raise ValueError("'name' and 'qualifiedName' must be strings")

        extra = data.get("extraProperties") or {}
        if not isinstance(extra, dict):
            raise ValueError(f"'extraProperties' must be an object, got {type(extra).__name__}")

        children = data.get("children") or []
        if not isinstance(children, list):
            raise ValueError(f"'children' must be a list, got {type(children).__name__}")

        return MetadataNode(
            kind=kind,
            name=name,
            qualified_name=qualified_name,
            extra_properties={str(k): str(v) for k, v in extra.items()},
            children=tuple(self.deserialize_node(child) for child in children),
        )


_serializer = ContextSerializer()


def node_to_dict(node: MetadataNode) -> dict[str, Any]:
    """Serialize a tree to a JSON-compatible dict."""
    return _serializer.serialize_node(node)


def node_from_dict(data: dict[str, Any]) -> MetadataNode:
    """Deserialize a tree produced by node_to_dict()."""
    return _serializer.deserialize_node(data)
