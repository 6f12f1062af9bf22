"""
Introspection module - the side of the protocol that runs inside the kernel subprocess.

Standard library only: this package is imported by the user's interpreter.
"""

from sage.introspection.harvester import harvest, harvest_namespace, harvest_sql, is_reserved
from sage.introspection.providers import (
    DuckDBProvider,
    ProviderRegistry,
    SchemaProvider,
    SparkProvider,
    SQLiteProvider,
    default_registry,
)

__all__ = [
    "harvest",
    "harvest_namespace",
    "harvest_sql",
    "is_reserved",
    "SchemaProvider",
    "ProviderRegistry",
    "DuckDBProvider",
    "SparkProvider",
    "SQLiteProvider",
    "default_registry",
]
