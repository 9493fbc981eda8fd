"""Tests for the recursive catalog tree builder."""

import pytest

from metadata_svc.context.builder import TreeBuilder, build_tree
from metadata_svc.context.reader import CatalogQueryError, CatalogReader
from metadata_svc.context.types import ExclusionConfig, MetadataKind

from tests.mocks.catalog_mock import FakeCatalog, FakeTable, sales_catalog


def _build(catalog: FakeCatalog, exclusions: ExclusionConfig | None = None):
    with catalog.open() as conn:
        return build_tree(CatalogReader(conn), exclusions or ExclusionConfig())


def _names(node):
    return [child.name for child in node.children]


class TestSalesScenario:
    """Sales -> dbo -> Orders (Id int, Total decimal), no foreign keys."""

    def test_full_hierarchy(self, catalog):
        root = _build(catalog)

        assert root.kind == MetadataKind.ROOT
        assert root.name == "$root"
        assert _names(root) == ["Sales"]

        sales = root.children[0]
        assert sales.kind == MetadataKind.DATABASE
        assert sales.qualified_name == "[Sales]"
        assert _names(sales) == ["dbo"]

        dbo = sales.children[0]
        assert dbo.kind == MetadataKind.SCHEMA
        assert dbo.qualified_name == "[Sales].[dbo]"
        assert _names(dbo) == ["Orders"]

        orders = dbo.children[0]
        assert orders.kind == MetadataKind.TABLE
        assert orders.qualified_name == "[Sales].[dbo].[Orders]"
        assert [c.kind for c in orders.children] == [MetadataKind.COLUMN, MetadataKind.COLUMN]
        assert not any(c.kind == MetadataKind.FOREIGN_KEY for c in orders.children)

    def test_columns_carry_exactly_one_type(self, catalog):
        orders = _build(catalog).find("[Sales].[dbo].[Orders]")

        column_types = {}
        for column in orders.children:
            assert len(column.children) == 1
            column_type = column.children[0]
            assert column_type.kind == MetadataKind.COLUMN_TYPE
            assert column_type.qualified_name == column_type.name
            assert column_type.children == ()
            column_types[column.name] = column_type.name

        assert column_types == {"Id": "int", "Total": "decimal"}
        assert orders.children[0].qualified_name == "[Sales].[dbo].[Orders].[Id]"

    def test_excluded_database_leaves_empty_root(self, catalog):
        root = _build(catalog, ExclusionConfig(exclude_databases=["Sales"]))

        assert root.kind == MetadataKind.ROOT
        assert root.children == ()

    def test_one_query_per_container(self, catalog):
        _build(catalog)

        # databases, schemas, objects, columns, foreign keys
        assert len(catalog.queries) == 5


class TestExclusions:
    """Default and configured deny lists per level."""

    def test_default_exclusions(self, server_catalog):
        root = _build(server_catalog)

        assert _names(root) == ["Sales", "Empty"]
        assert _names(root.find("[Sales]")) == ["dbo", "staging"]
        assert _names(root.find("[Empty]")) == []

    def test_disable_default_exclusions(self, server_catalog):
        root = _build(server_catalog, ExclusionConfig(disable_default_exclusions=True))

        assert _names(root) == ["master", "Sales", "Empty"]
        assert _names(root.find("[Sales]")) == ["dbo", "staging", "sys", "db_owner"]

    def test_configured_exclusions_add_to_defaults(self, server_catalog):
        root = _build(server_catalog, ExclusionConfig(exclude_schemas=["staging"]))

        assert _names(root) == ["Sales", "Empty"]
        assert _names(root.find("[Sales]")) == ["dbo"]

    def test_configured_exclusions_without_defaults(self, server_catalog):
        exclusions = ExclusionConfig(
            disable_default_exclusions=True,
            exclude_databases=["Empty"],
            exclude_schemas=["sys"],
        )
        root = _build(server_catalog, exclusions)

        assert _names(root) == ["master", "Sales"]
        assert _names(root.find("[Sales]")) == ["dbo", "staging", "db_owner"]

    def test_table_and_view_exclusions_are_separate(self, server_catalog):
        exclusions = ExclusionConfig(exclude_tables=["Customers"], exclude_views=["Orders"])
        dbo = _build(server_catalog, exclusions).find("[Sales].[dbo]")

        # "Orders" is a table, so the view exclusion does not touch it
        assert _names(dbo) == ["Orders", "OrderTotals"]

    def test_view_exclusion(self, server_catalog):
        dbo = _build(server_catalog, ExclusionConfig(exclude_views=["OrderTotals"])).find("[Sales].[dbo]")

        assert _names(dbo) == ["Customers", "Orders"]

    def test_exclusions_are_bound_not_inlined(self, server_catalog):
        hostile = "x') OR 1=1 --"
        _build(server_catalog, ExclusionConfig(exclude_databases=[hostile], exclude_tables=[hostile]))

        for query, params in server_catalog.queries:
            assert hostile not in query
        database_query, database_params = server_catalog.queries_containing("[sys].[databases]")[0]
        assert database_params == ["master", hostile]
        assert "NOT IN (?, ?)" in database_query

    def test_no_predicate_for_empty_deny_list(self, server_catalog):
        _build(server_catalog, ExclusionConfig(disable_default_exclusions=True))

        database_query, params = server_catalog.queries_containing("[sys].[databases]")[0]
        assert "NOT IN" not in database_query
        assert params == []

        objects_query, params = server_catalog.queries_containing("o.type_desc")[0]
        assert "NOT IN" not in objects_query
        assert params == ["dbo"]

    def test_object_query_binds_schema_then_tables_then_views(self, server_catalog):
        _build(server_catalog, ExclusionConfig(exclude_tables=["A", "B"], exclude_views=["C"]))

        query, params = server_catalog.queries_containing("o.type_desc")[0]
        assert params == ["dbo", "A", "B", "C"]
        assert "o.type = 'U' AND o.name NOT IN (?, ?)" in query
        assert "o.type = 'V' AND o.name NOT IN (?)" in query

    def test_duplicate_exclusions_bound_once(self, catalog):
        _build(catalog, ExclusionConfig(exclude_databases=["master", "tempdb", "tempdb"]))

        _, params = catalog.queries_containing("[sys].[databases]")[0]
        assert params == ["master", "tempdb"]


class TestTreeShape:
    """Kinds, qualified names and ordering."""

    def test_tables_and_views_partitioned_by_type(self, server_catalog):
        dbo = _build(server_catalog).find("[Sales].[dbo]")

        kinds = {child.name: child.kind for child in dbo.children}
        assert kinds == {
            "Customers": MetadataKind.TABLE,
            "Orders": MetadataKind.TABLE,
            "OrderTotals": MetadataKind.VIEW,
        }

    def test_view_has_columns(self, server_catalog):
        view = _build(server_catalog).find("[Sales].[dbo].[OrderTotals]")

        assert _names(view) == ["Total"]

    def test_foreign_keys_follow_columns(self, server_catalog):
        orders = _build(server_catalog).find("[Sales].[dbo].[Orders]")

        assert [c.kind for c in orders.children] == [
            MetadataKind.COLUMN,
            MetadataKind.COLUMN,
            MetadataKind.COLUMN,
            MetadataKind.FOREIGN_KEY,
        ]
        fk = orders.children[-1]
        assert fk.name == "FK_Orders_Customers"
        assert fk.qualified_name == "[Sales].[dbo].[Orders].[FK_Orders_Customers]"
        assert fk.children == ()
        assert fk.extra_properties == {
            "TableName": "Orders",
            "ColumnName": "CustomerId",
            "ReferencedTableName": "Customers",
            "ReferencedColumnName": "Id",
        }

    def test_only_foreign_keys_have_extra_properties(self, server_catalog):
        root = _build(server_catalog)

        for node in root.walk():
            if node.kind != MetadataKind.FOREIGN_KEY:
                assert node.extra_properties == {}

    def test_qualified_names_extend_parent(self, server_catalog):
        root = _build(server_catalog)

        def check(node, depth):
            assert depth <= 6
            for child in node.children:
                if child.kind == MetadataKind.COLUMN_TYPE:
                    assert child.qualified_name == child.name
                elif node.kind != MetadataKind.ROOT:
                    assert child.qualified_name.startswith(node.qualified_name + ".")
                check(child, depth + 1)

        check(root, 1)

    def test_children_keep_catalog_order(self):
        catalog = FakeCatalog({
            "zeta": {"dbo": {}},
            "alpha": {"dbo": {}},
            "mid": {"dbo": {}},
        })

        assert _names(_build(catalog)) == ["zeta", "alpha", "mid"]

    def test_names_with_brackets_are_escaped(self):
        catalog = FakeCatalog({"odd]db": {"dbo": {"t]1": FakeTable(columns=[("c", "int")])}}})
        root = _build(catalog)

        assert root.children[0].qualified_name == "[odd]]db]"
        assert root.find("[odd]]db].[dbo].[t]]1]") is not None
        schema_query, _ = catalog.queries_containing("[sys].[schemas]")[0]
        assert schema_query.startswith("SELECT name FROM [odd]]db].[sys].[schemas]")

    def test_stored_procedures_and_functions_never_appear(self, server_catalog):
        root = _build(server_catalog)

        kinds = {node.kind for node in root.walk()}
        assert MetadataKind.STORED_PROCEDURE not in kinds
        assert MetadataKind.FUNCTION not in kinds


class TestFailures:
    """A failing level aborts the whole build."""

    @pytest.mark.parametrize("failing_level", [
        "[sys].[databases]",
        "[sys].[schemas] WHERE",
        "o.type_desc",
        "[sys].[types]",
        "[sys].[foreign_keys]",
    ])
    def test_any_level_failure_is_fatal(self, server_catalog, failing_level):
        server_catalog.fail_on = failing_level

        with pytest.raises(CatalogQueryError):
            _build(server_catalog)

    def test_failure_stops_further_queries(self, server_catalog):
        server_catalog.fail_on = "[sys].[databases]"

        with pytest.raises(CatalogQueryError):
            _build(server_catalog)
        assert len(server_catalog.queries) == 1

    def test_builder_can_be_reused(self, catalog):
        with catalog.open() as conn:
            builder = TreeBuilder(CatalogReader(conn), ExclusionConfig())
            first = builder.build()
            second = builder.build()

        assert first == second
