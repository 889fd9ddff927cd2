"""
Schema migrations for SQL order stores.
"""

from orderflow.storage.migrations.base import (
    AppliedMigration,
    Migration,
    MigrationRegistry,
    MigrationRunner,
    get_global_registry,
    register_migration,
)

__all__ = [
    "AppliedMigration",
    "Migration",
    "MigrationRegistry",
    "MigrationRunner",
    "get_global_registry",
    "register_migration",
]
