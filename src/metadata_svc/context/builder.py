"""Tree builder - recursive descent over the SQL Server catalog.

Hierarchy:
    $root
      [db]                          sys.databases
        [db].[schema]               [db].sys.schemas
          [db].[schema].[object]    [db].sys.objects (user tables and views)
            ...[column]             [db].sys.columns
              type name             [db].sys.types
            ...[foreign key]        [db].sys.foreign_keys

One query is issued per container node. Each level's deny list is bound as
parameters; database names are only ever placed in the query text through
quote_identifier().
"""

from __future__ import annotations

import logging

from .reader import CatalogReader, placeholders, quote_identifier
from .types import ExclusionConfig, MetadataKind, MetadataNode


logger = logging.getLogger(__name__)

# sys.objects type_desc for user tables; every other row of the
# table/view query is a view
USER_TABLE = "USER_TABLE"


def _not_in(column: str, names: list[str]) -> str:
    """NOT IN predicate, empty when there is nothing to exclude."""
    if not names:
        return ""
    return f" AND {column} NOT IN ({placeholders(len(names))})"


class TreeBuilder:
    """
    Builds the contextualization tree for one server.

    Levels are read depth-first and sequentially: a level's query needs
    the identity of its parent row. Any failing query aborts the build,
    no partial tree is returned.
    """

    def __init__(self, reader: CatalogReader, exclusions: ExclusionConfig):
        self._reader = reader
        self._exclusions = exclusions
        self._query_count = 0

    def build(self) -> MetadataNode:
        """Build the full tree, starting from a fresh root."""
        self._query_count = 0
        root = MetadataNode.root()
        root = root.with_children(self.databases(root))

        node_count = sum(1 for _ in root.walk()) - 1
        logger.info(
            f"Built contextualization tree: {len(root.children)} databases, "
            f"{node_count} nodes, {self._query_count} queries"
        )
        return root

    def _rows(self, query: str, params: list[str]) -> list[tuple]:
        self._query_count += 1
        return self._reader.execute_rows(query, params)

    def databases(self, root: MetadataNode) -> list[MetadataNode]:
        excluded = self._exclusions.effective_databases()
        query = (
            "SELECT name FROM [sys].[databases] "
            "WHERE 1 = 1" + _not_in("name", excluded)
        )

        nodes = [
            root.child_of(MetadataKind.DATABASE, row[0])
            for row in self._rows(query, excluded)
        ]
        logger.debug(f"Found {len(nodes)} databases")
        return [node.with_children(self.schemas(node)) for node in nodes]

    def schemas(self, database: MetadataNode) -> list[MetadataNode]:
        excluded = self._exclusions.effective_schemas()
        db = quote_identifier(database.name)
        query = (
            f"SELECT name FROM {db}.[sys].[schemas] "
            "WHERE 1 = 1" + _not_in("name", excluded)
        )

        nodes = [
            database.child_of(MetadataKind.SCHEMA, row[0])
            for row in self._rows(query, excluded)
        ]
        logger.debug(f"Found {len(nodes)} schemas in {database.qualified_name}")
        return [node.with_children(self.tables_and_views(database, node)) for node in nodes]

    def tables_and_views(self, database: MetadataNode, schema: MetadataNode) -> list[MetadataNode]:
        """Tables and views of one schema, read with a single query."""
        excluded_tables = self._exclusions.effective_tables()
        excluded_views = self._exclusions.effective_views()
        db = quote_identifier(database.name)
        query = (
            f"SELECT o.name, o.type_desc "
            f"FROM {db}.[sys].[objects] o "
            f"JOIN {db}.[sys].[schemas] s ON o.schema_id = s.schema_id "
            "WHERE s.name = ? AND ("
            "(o.type = 'U'" + _not_in("o.name", excluded_tables) + ") "
            "OR (o.type = 'V'" + _not_in("o.name", excluded_views) + "))"
        )
        params = [schema.name, *excluded_tables, *excluded_views]

        nodes = []
        for name, type_desc in self._rows(query, params):
            kind = MetadataKind.TABLE if type_desc == USER_TABLE else MetadataKind.VIEW
            nodes.append(schema.child_of(kind, name))

        logger.debug(f"Found {len(nodes)} tables and views in {schema.qualified_name}")
        return [
            node.with_children(
                self.columns(database, schema, node) + self.foreign_keys(database, schema, node)
            )
            for node in nodes
        ]

    def columns(
        self,
        database: MetadataNode,
        schema: MetadataNode,
        table: MetadataNode,
    ) -> list[MetadataNode]:
        """Columns of a table or view, each with its type as the only child."""
        db = quote_identifier(database.name)
        query = (
            f"SELECT c.name, t.name "
            f"FROM {db}.[sys].[columns] c "
            f"JOIN {db}.[sys].[types] t ON c.user_type_id = t.user_type_id "
            f"JOIN {db}.[sys].[objects] o ON c.object_id = o.object_id "
            f"JOIN {db}.[sys].[schemas] s ON o.schema_id = s.schema_id "
            "WHERE o.name = ? AND s.name = ? "
            "ORDER BY c.column_id"
        )

        nodes = []
        for column_name, type_name in self._rows(query, [table.name, schema.name]):
            column_type = MetadataNode(
                kind=MetadataKind.COLUMN_TYPE,
                name=type_name,
                qualified_name=type_name,
            )
            nodes.append(
                table.child_of(MetadataKind.COLUMN, column_name, children=(column_type,))
            )
        return nodes

    def foreign_keys(
        self,
        database: MetadataNode,
        schema: MetadataNode,
        table: MetadataNode,
    ) -> list[MetadataNode]:
        """Foreign key columns declared on a table, one leaf node per column pair."""
        db = quote_identifier(database.name)
        query = (
            "SELECT fk.name, tp.name, cp.name, tr.name, cr.name "
            f"FROM {db}.[sys].[foreign_keys] fk "
            f"JOIN {db}.[sys].[foreign_key_columns] fc ON fk.object_id = fc.constraint_object_id "
            f"JOIN {db}.[sys].[objects] tp ON fc.parent_object_id = tp.object_id "
            f"JOIN {db}.[sys].[schemas] s ON tp.schema_id = s.schema_id "
            f"JOIN {db}.[sys].[columns] cp "
            "ON fc.parent_object_id = cp.object_id AND fc.parent_column_id = cp.column_id "
            f"JOIN {db}.[sys].[objects] tr ON fc.referenced_object_id = tr.object_id "
            f"JOIN {db}.[sys].[columns] cr "
            "ON fc.referenced_object_id = cr.object_id AND fc.referenced_column_id = cr.column_id "
            "WHERE tp.name = ? AND s.name = ?"
        )

        nodes = []
        for fk_name, table_name, column_name, ref_table, ref_column in self._rows(
            query, [table.name, schema.name]
        ):
            nodes.append(table.child_of(
                MetadataKind.FOREIGN_KEY,
                fk_name,
                extra_properties={
                    "TableName": table_name,
                    "ColumnName": column_name,
                    "ReferencedTableName": ref_table,
                    "ReferencedColumnName": ref_column,
                },
            ))
        return nodes


def build_tree(reader: CatalogReader, exclusions: ExclusionConfig) -> MetadataNode:
    """Build the contextualization tree for the server behind ``reader``."""
    return TreeBuilder(reader, exclusions).build()
