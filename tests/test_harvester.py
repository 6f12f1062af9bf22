"""
Tests for namespace harvesting and schema providers.
"""

import sqlite3
import sys
import types
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sage.introspection.harvester import (
    harvest,
    harvest_namespace,
    harvest_sql,
    is_reserved,
    return_type_name,
)
from sage.introspection.providers import (
    DuckDBProvider,
    ProviderRegistry,
    SchemaProvider,
    SparkProvider,
    SQLiteProvider,
    default_registry,
)


# =============================================================================
# HELPERS: objects that look like SQL connections
# =============================================================================

class Cart:
    def add(self, item):
        pass

    def total(self) -> float:
        return 0.0

    def _internal(self):
        pass


def make_cart() -> Cart:
    return Cart()


def shop_module():
    module = types.ModuleType("shop")
    module.Cart = Cart
    module.make_cart = make_cart
    module.VERSION = "1.0"
    module._hidden = object()
    return module


class _Rows:
    def __init__(self, rows):
        self._rows = rows

    def fetchall(self):
        return self._rows


class DuckDBPyConnection:
    """Stand-in with the runtime type name of a DuckDB connection."""

    def __init__(self, tables, fail_describe=(), fail_functions=False):
        self.tables = tables
        self.fail_describe = set(fail_describe)
        self.fail_functions = fail_functions

    def execute(self, query):
        if query == "SHOW TABLES":
            return _Rows([(name,) for name in self.tables])
        if query.startswith("DESCRIBE "):
            table = query[len("DESCRIBE "):]
            if table in self.fail_describe:
                raise RuntimeError("catalog error")
            return _Rows([(column, "INTEGER") for column in self.tables[table]])
        if "duckdb_functions()" in query:
            if self.fail_functions:
                raise RuntimeError("no functions")
            return _Rows([("abs",), ("sum",)])
        raise AssertionError(query)


class _Named:
    def __init__(self, name):
        self.name = name


class _Catalog:
    def listTables(self):
        return [_Named("events")]

    def listColumns(self, table):
        return [_Named("id"), _Named("ts")]

    def listFunctions(self):
        return [_Named("sum"), _Named("date_trunc")]


class SparkSession:
    """Stand-in with the runtime type name of a Spark session."""

    catalog = _Catalog()


def names(completions):
    return [item["name"] for item in completions]


# =============================================================================
# Namespace harvesting
# =============================================================================

class TestHarvestNamespace:
    """Test completion and type relationship harvesting."""

    def test_reserved_names(self):
        assert is_reserved("_private")
        assert is_reserved("__builtins__")
        assert is_reserved("SAGE_KERNEL_READY")
        assert not is_reserved("sage")

    def test_return_type_name(self):
        assert return_type_name(make_cart) == "Cart"
        assert return_type_name(Cart.total) == "float"
        assert return_type_name(lambda: None) is None
        assert return_type_name(42) is None

    def test_module_members(self):
        completions, return_types, type_methods = harvest_namespace({"shop": shop_module()})
        harvested = names(completions)

        assert harvested[0] == "shop"
        assert {"shop.Cart", "shop.make_cart", "shop.VERSION"} <= set(harvested)
        assert "shop._hidden" not in harvested
        assert return_types["shop.make_cart"] == "Cart"
        # Calling a class returns an instance of it
        assert return_types["shop.Cart"] == "Cart"
        assert type_methods["Cart"] == ["add", "total"]

    def test_module_completion_types(self):
        completions, _, _ = harvest_namespace({"shop": shop_module()})
        types_by_name = {item["name"]: item["type"] for item in completions}
        assert types_by_name["shop"] == "module"
        assert types_by_name["shop.Cart"] == "type"
        assert types_by_name["shop.make_cart"] == "function"
        assert types_by_name["shop.VERSION"] == "str"

    def test_functions_and_classes(self):
        completions, return_types, type_methods = harvest_namespace(
            {"make_cart": make_cart, "Cart": Cart, "length": len}
        )
        assert names(completions) == ["make_cart", "Cart", "length"]
        assert return_types == {"make_cart": "Cart"}
        assert type_methods == {}

    def test_values(self):
        completions, return_types, type_methods = harvest_namespace({"cart": Cart(), "other": Cart()})
        harvested = names(completions)

        assert harvested[:3] == ["cart", "cart.add", "cart.total"]
        assert "other.add" in harvested
        assert type_methods == {"Cart": ["add", "total"]}
        assert return_types == {"Cart.total": "float"}

    def test_skips_private_and_reserved(self):
        completions, _, _ = harvest_namespace(
            {"__builtins__": {}, "_": 3, "SAGE_X": 1, "visible": 1}
        )
        assert [item for item in names(completions) if "." not in item] == ["visible"]

    def test_raising_attribute_is_skipped(self):
        class Flaky:
            @property
            def broken(self):
                raise RuntimeError("boom")

            def fine(self):
                pass

        completions, _, type_methods = harvest_namespace({"flaky": Flaky()})
        assert names(completions) == ["flaky", "flaky.fine"]
        assert type_methods["Flaky"] == ["fine"]

    def test_dir_failure_keeps_going(self):
        class Opaque:
            def __dir__(self):
                raise RuntimeError("no dir")

        completions, _, _ = harvest_namespace({"opaque": Opaque(), "n": 1})
        harvested = names(completions)
        assert "opaque" in harvested
        assert "n" in harvested


# =============================================================================
# SQL metadata
# =============================================================================

class TestProviders:
    """Test provider recognition."""

    def test_duckdb_matches(self):
        provider = DuckDBProvider()
        assert provider.matches(DuckDBPyConnection({}))
        assert provider.matches(types.ModuleType("duckdb"))
        assert not provider.matches(types.ModuleType("pandas"))
        assert not provider.matches("duckdb")

    def test_sqlite_matches_only_sqlite(self):
        provider = SQLiteProvider()
        conn = sqlite3.connect(":memory:")
        try:
            assert provider.matches(conn)
        finally:
            conn.close()

        class Connection:
            pass

        assert not provider.matches(Connection())

    def test_registry_order_and_failures(self):
        class Exploding(SchemaProvider):
            def matches(self, obj):
                raise RuntimeError("bad provider")

            def list_tables(self, obj):
                return []

            def list_columns(self, obj, table):
                return []

        spark = SparkProvider()
        registry = ProviderRegistry([Exploding()])
        registry.register(spark)
        assert registry.find(SparkSession()) is spark
        assert registry.find(object()) is None
        assert len(registry.providers) == 2

    def test_default_registry(self):
        assert [p.name for p in default_registry().providers] == ["duckdb", "spark", "sqlite"]


class TestHarvestSql:
    """Test table/column/function collection."""

    def test_duckdb_connection(self):
        conn = DuckDBPyConnection({"users": ["id", "name"], "orders": ["id", "total"]})
        metadata = harvest_sql({"con": conn})
        assert metadata["tables"] == ["users", "orders"]
        assert metadata["columns"] == [
            "users.id", "id", "users.name", "name", "orders.id", "orders.total", "total",
        ]
        assert metadata["functions"] == ["abs", "sum"]

    def test_partial_failures(self):
        conn = DuckDBPyConnection(
            {"users": ["id"], "broken": ["x"]}, fail_describe=["broken"], fail_functions=True
        )
        metadata = harvest_sql({"con": conn})
        assert metadata["tables"] == ["users", "broken"]
        assert metadata["columns"] == ["users.id", "id"]
        assert metadata["functions"] == []

    def test_multiple_connections_accumulate(self):
        duck = DuckDBPyConnection({"users": ["id"]})
        metadata = harvest_sql({"duck": duck, "spark": SparkSession(), "again": duck})
        assert metadata["tables"] == ["users", "events"]
        assert metadata["columns"] == ["users.id", "id", "events.id", "events.ts", "ts"]
        assert metadata["functions"] == ["abs", "sum", "date_trunc"]

    def test_sqlite(self):
        conn = sqlite3.connect(":memory:")
        try:
            conn.execute("CREATE TABLE items (sku TEXT, qty INTEGER)")
            metadata = harvest_sql({"conn": conn})
        finally:
            conn.close()
        assert metadata == {"tables": ["items"], "columns": ["items.sku", "sku", "items.qty", "qty"],
                            "functions": []}

    def test_custom_provider(self):
        class Warehouse:
            pass

        class WarehouseProvider(SchemaProvider):
            name = "warehouse"

            def matches(self, obj):
                return isinstance(obj, Warehouse)

            def list_tables(self, obj):
                return ["facts"]

            def list_columns(self, obj, table):
                return ["metric"]

        registry = ProviderRegistry([WarehouseProvider()])
        metadata = harvest_sql({"wh": Warehouse()}, registry)
        assert metadata == {"tables": ["facts"], "columns": ["facts.metric", "metric"], "functions": []}

    def test_private_connections_ignored(self):
        metadata = harvest_sql({"_con": DuckDBPyConnection({"t": ["c"]})})
        assert metadata == {"tables": [], "columns": [], "functions": []}


class TestHarvest:
    def test_payload_shape(self):
        payloads = harvest({"cart": Cart(), "con": DuckDBPyConnection({"t": ["c"]})})
        assert set(payloads) == {"completions", "type_relationships", "sql_metadata"}
        assert payloads["type_relationships"]["type_methods"]["Cart"] == ["add", "total"]
        assert payloads["sql_metadata"]["tables"] == ["t"]

    def test_empty_namespace(self):
        assert harvest({}) == {
            "completions": [],
            "type_relationships": {"return_types": {}, "type_methods": {}},
            "sql_metadata": {"tables": [], "columns": [], "functions": []},
        }
