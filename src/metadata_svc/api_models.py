"""
Pydantic models for the server contextualization request.

Field names accept the camelCase wire names (``ownerUri``,
``excludeDatabases`` ...) as well as the Python attribute names.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .context.serializer import node_to_dict
from .context.types import ExclusionConfig, MetadataNode


class ContextRequest(BaseModel):
    """Parameters of a server contextualization request."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "ownerUri": "connection://sales-prod",
                "forceRefresh": False,
                "pruneEmptyNodes": True,
                "disableDefaultExclusions": False,
                "excludeDatabases": ["tempdb", "model", "msdb"],
                "excludeSchemas": ["staging"],
                "excludeTables": None,
                "excludeViews": None,
            }
        },
    )

    owner_uri: str = Field(..., alias="ownerUri", description="Session key of the live connection")
    force_refresh: bool = Field(False, alias="forceRefresh", description="Rebuild even if cached")
    prune_empty_nodes: bool = Field(
        False, alias="pruneEmptyNodes",
        description="Drop databases, schemas, tables and views without children",
    )
    disable_default_exclusions: bool = Field(
        False, alias="disableDefaultExclusions",
        description="Ignore the built-in database and schema deny lists",
    )
    exclude_databases: list[str] | None = Field(None, alias="excludeDatabases")
    exclude_schemas: list[str] | None = Field(None, alias="excludeSchemas")
    exclude_tables: list[str] | None = Field(None, alias="excludeTables")
    exclude_views: list[str] | None = Field(None, alias="excludeViews")

    def to_exclusions(self) -> ExclusionConfig:
        """The cache-relevant part of the request."""
        return ExclusionConfig(
            prune_empty_nodes=self.prune_empty_nodes,
            disable_default_exclusions=self.disable_default_exclusions,
            exclude_databases=self.exclude_databases,
            exclude_schemas=self.exclude_schemas,
            exclude_tables=self.exclude_tables,
            exclude_views=self.exclude_views,
        )


class ContextResult(BaseModel):
    """Result of a server contextualization request."""

    context: dict[str, Any] = Field(..., description="Serialized contextualization tree")

    @classmethod
    def from_tree(cls, root: MetadataNode) -> ContextResult:
        return cls(context=node_to_dict(root))
