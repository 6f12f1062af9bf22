"""
Schema metadata providers - recognize live SQL connections and list their schema.

The harvester asks the registry which provider handles each namespace value
instead of comparing type names inline. Providers may raise freely; the
harvester swallows failures per step.
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional


class SchemaProvider(ABC):
    """
    Capability interface for one kind of SQL connection.

    Each provider must implement:
    - matches: whether a namespace value is a connection it understands
    - list_tables / list_columns / list_functions
    """

    name: str = "provider"

    @abstractmethod
    def matches(self, obj: Any) -> bool:
        pass

    @abstractmethod
    def list_tables(self, obj: Any) -> List[str]:
        pass

    @abstractmethod
    def list_columns(self, obj: Any, table: str) -> List[str]:
        pass

    def list_functions(self, obj: Any) -> List[str]:
        """Query functions the engine offers. Empty when the engine has no catalog."""
        return []


class DuckDBProvider(SchemaProvider):
    """A ``DuckDBPyConnection``, or the ``duckdb`` module and its default connection."""

    name = "duckdb"

    def matches(self, obj: Any) -> bool:
        if type(obj).__name__ == "DuckDBPyConnection":
            return True
        return type(obj).__name__ == "module" and getattr(obj, "__name__", None) == "duckdb"

    def list_tables(self, obj: Any) -> List[str]:
        return [row[0] for row in obj.execute("SHOW TABLES").fetchall()]

    def list_columns(self, obj: Any, table: str) -> List[str]:
        return [row[0] for row in obj.execute(f"DESCRIBE {table}").fetchall()]

    def list_functions(self, obj: Any) -> List[str]:
        rows = obj.execute(
            "SELECT DISTINCT function_name FROM duckdb_functions() ORDER BY function_name"
        ).fetchall()
        return [row[0] for row in rows]


class SparkProvider(SchemaProvider):
    """A ``SparkSession``, read through its catalog."""

    name = "spark"

    def matches(self, obj: Any) -> bool:
        return type(obj).__name__ == "SparkSession"

    def list_tables(self, obj: Any) -> List[str]:
        return [table.name for table in obj.catalog.listTables()]

    def list_columns(self, obj: Any, table: str) -> List[str]:
        return [column.name for column in obj.catalog.listColumns(table)]

    def list_functions(self, obj: Any) -> List[str]:
        return [function.name for function in obj.catalog.listFunctions()]


class SQLiteProvider(SchemaProvider):
    """A ``sqlite3.Connection``."""

    name = "sqlite"

    def matches(self, obj: Any) -> bool:
        return type(obj).__name__ == "Connection" and type(obj).__module__ == "sqlite3"

    def list_tables(self, obj: Any) -> List[str]:
        rows = obj.execute(
            "SELECT name FROM sqlite_master WHERE type IN ('table', 'view') ORDER BY name"
        ).fetchall()
        return [row[0] for row in rows]

    def list_columns(self, obj: Any, table: str) -> List[str]:
        quoted = table.replace('"', '""')
        return [row[1] for row in obj.execute(f'PRAGMA table_info("{quoted}")').fetchall()]


class ProviderRegistry:
    """Ordered collection of schema providers."""

    def __init__(self, providers: Optional[Iterable[SchemaProvider]] = None):
        self._providers: List[SchemaProvider] = list(providers or [])

    def register(self, provider: SchemaProvider):
        """Register a provider. Later registrations are consulted last."""
        self._providers.append(provider)

    @property
    def providers(self) -> List[SchemaProvider]:
        return list(self._providers)

    def find(self, obj: Any) -> Optional[SchemaProvider]:
        """First provider that recognizes ``obj``, or None."""
        for provider in self._providers:
            try:
                if provider.matches(obj):
                    return provider
            except Exception:
                continue
        return None


def default_registry() -> ProviderRegistry:
    """Registry with the built-in DuckDB, Spark and SQLite providers."""
    return ProviderRegistry([DuckDBProvider(), SparkProvider(), SQLiteProvider()])
