"""
Versioned schema migrations for SQL order stores.

A migration is an integer version plus the SQL (or async callable) that
brings the schema from ``version - 1`` to ``version``. Stores record the
versions they have applied in a ``schema_versions`` table and apply
whatever is newer on ``connect()``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Awaitable, Callable


@dataclass
class Migration:
    """
    One schema change.

    ``up_func`` receives the open connection and runs after ``up_sql`` in the
    same transaction. ``down_sql`` is recorded for manual rollbacks only.
    """

    version: int
    description: str
    up_sql: str | None = None
    down_sql: str | None = None
    up_func: Callable[[Any], Awaitable[Any]] | None = None

    def __post_init__(self) -> None:
        if self.version < 1:
            raise ValueError("Migration version must be >= 1")
        if not (self.up_sql or self.up_func):
            raise ValueError("Migration must have either up_sql or up_func")


@dataclass
class AppliedMigration:
    version: int
    applied_at: datetime
    description: str


class MigrationRegistry:
    """Migrations indexed by version."""

    def __init__(self) -> None:
        self._by_version: dict[int, Migration] = {}

    def register(self, migration: Migration) -> None:
        if migration.version in self._by_version:
            raise ValueError(f"Migration version {migration.version} already registered")
        self._by_version[migration.version] = migration

    def get(self, version: int) -> Migration | None:
        return self._by_version.get(version)

    def get_all(self) -> list[Migration]:
        return [self._by_version[v] for v in sorted(self._by_version)]

    def get_pending(self, current_version: int) -> list[Migration]:
        """Migrations newer than ``current_version``, oldest first."""
        return [m for m in self.get_all() if m.version > current_version]

    def get_latest_version(self) -> int:
        return max(self._by_version, default=0)


_registry = MigrationRegistry()


def get_global_registry() -> MigrationRegistry:
    """Registry holding the order store schema."""
    return _registry


def register_migration(migration: Migration) -> None:
    _registry.register(migration)


class MigrationRunner(ABC):
    """
    Applies pending migrations to one database.

    Backends provide the three primitives; ``run_migrations`` sequences them.
    """

    def __init__(self, registry: MigrationRegistry | None = None) -> None:
        self.registry = registry or get_global_registry()

    @abstractmethod
    async def ensure_schema_versions_table(self) -> None:
        """Create ``schema_versions(version, applied_at, description)`` if missing."""

    @abstractmethod
    async def get_current_version(self) -> int:
        """Highest applied version, 0 for an empty database."""

    @abstractmethod
    async def apply_migration(self, migration: Migration) -> None:
        """Apply one migration and record it, atomically."""

    async def run_migrations(self) -> list[AppliedMigration]:
        """
        Bring the schema up to the latest registered version.

        Returns:
            The migrations applied by this call (empty when already current)
        """
        await self.ensure_schema_versions_table()
        current = await self.get_current_version()

        applied: list[AppliedMigration] = []
        for migration in self.registry.get_pending(current):
            await self.apply_migration(migration)
            applied.append(
                AppliedMigration(migration.version, datetime.now(UTC), migration.description)
            )
        return applied


# Order store schema

register_migration(
    Migration(
        version=1,
        description="Create orders table",
        up_sql="""
            CREATE TABLE IF NOT EXISTS orders (
                owner_id TEXT NOT NULL,
                order_id TEXT NOT NULL,
                status TEXT NOT NULL CHECK (status IN ('PENDING', 'CONFIRMED')),
                total NUMERIC NOT NULL DEFAULT 0 CHECK (total >= 0),
                created_at TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL,
                PRIMARY KEY (owner_id, order_id)
            )
        """,
        down_sql="DROP TABLE IF EXISTS orders",
    )
)

# The ledger keeps an order_id from being reissued even if its row is
# removed out of band
register_migration(
    Migration(
        version=2,
        description="Add status index and issued order id ledger",
        up_sql="""
            CREATE INDEX IF NOT EXISTS idx_orders_status ON orders (status);
            CREATE TABLE IF NOT EXISTS issued_order_ids (
                order_id TEXT PRIMARY KEY
            );
            INSERT INTO issued_order_ids (order_id)
                SELECT order_id FROM orders
                ON CONFLICT DO NOTHING;
        """,
        down_sql="DROP TABLE IF EXISTS issued_order_ids; DROP INDEX IF EXISTS idx_orders_status",
    )
)
