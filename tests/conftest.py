"""Shared fixtures for metadata service tests."""

import pytest

from metadata_svc.cache.file_store import FileContextCache
from metadata_svc.cache.memory import InMemoryContextCache
from metadata_svc.config import Config
from metadata_svc.connections.registry import ConnectionRegistry
from metadata_svc.context.types import ExclusionConfig
from metadata_svc.service import ContextService

from tests.mocks.catalog_mock import FakeCatalog, FakeTable, sales_catalog


class FakeClock:
    """Settable replacement for time.time()."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, *, hours: float = 0.0, seconds: float = 0.0) -> None:
        self.now += hours * 3600 + seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog() -> FakeCatalog:
    """The Sales/dbo/Orders catalog."""
    return sales_catalog()


@pytest.fixture
def server_catalog() -> FakeCatalog:
    """A catalog with system objects, an empty database and a view."""
    return FakeCatalog(
        {
            "master": {
                "dbo": {"spt_values": FakeTable(columns=[("name", "nvarchar")])},
            },
            "Sales": {
                "dbo": {
                    "Customers": FakeTable(columns=[("Id", "int"), ("Name", "nvarchar")]),
                    "Orders": FakeTable(
                        columns=[("Id", "int"), ("CustomerId", "int"), ("Total", "decimal")],
                        foreign_keys=[("FK_Orders_Customers", "CustomerId", "Customers", "Id")],
                    ),
                    "OrderTotals": FakeTable(columns=[("Total", "decimal")], type="V"),
                },
                "staging": {
                    "Scratch": FakeTable(),
                },
                "sys": {"objects": FakeTable(columns=[("name", "sysname")], type="V")},
                "db_owner": {},
            },
            "Empty": {
                "sys": {},
                "INFORMATION_SCHEMA": {},
            },
        },
        server_name="sql01",
    )


@pytest.fixture
def exclusions() -> ExclusionConfig:
    return ExclusionConfig()


@pytest.fixture
def memory_cache(clock) -> InMemoryContextCache:
    return InMemoryContextCache(clock=clock)


@pytest.fixture
def file_cache(tmp_path, clock) -> FileContextCache:
    return FileContextCache(directory=tmp_path / "cache", clock=clock)


@pytest.fixture
def registry(server_catalog) -> ConnectionRegistry:
    registry = ConnectionRegistry()
    registry.register("connection://sql01", server_catalog)
    return registry


@pytest.fixture
def service(registry, file_cache) -> ContextService:
    return ContextService(connections=registry, cache=file_cache, config=Config())
