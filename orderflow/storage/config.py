"""
Order store configuration utilities.

This module provides functions to serialize order stores to configuration
dicts and recreate stores from configuration dicts. This is used for passing
store configuration to Celery tasks and for building stores from YAML/CLI
settings.
"""

from typing import Any

from orderflow.core.exceptions import ConfigurationError
from orderflow.storage.base import OrderStore


def store_to_config(store: OrderStore | None) -> dict[str, Any] | None:
    """
    Serialize an order store to a configuration dict.

    Args:
        store: Order store instance

    Returns:
        Configuration dict or None if store is None

    Example:
        >>> store = PostgresOrderStore(dsn="postgresql://localhost/orders")
        >>> store_to_config(store)
        {'type': 'postgres', 'dsn': 'postgresql://localhost/orders'}
    """
    if store is None:
        return None

    # Use class name to avoid importing asyncpg for in-memory users
    class_name = store.__class__.__name__

    if class_name == "InMemoryOrderStore":
        return {"type": "memory"}
    elif class_name == "PostgresOrderStore":
        dsn = getattr(store, "dsn", None)
        if dsn:
            return {"type": "postgres", "dsn": dsn}
        return {
            "type": "postgres",
            "host": getattr(store, "host", "localhost"),
            "port": getattr(store, "port", 5432),
            "user": getattr(store, "user", "orderflow"),
            "password": getattr(store, "password", ""),
            "database": getattr(store, "database", "orderflow"),
        }
    else:
        return {"type": "unknown"}


def config_to_store(config: dict[str, Any] | None = None) -> OrderStore:
    """
    Create an order store from a configuration dict.

    Args:
        config: Configuration dict with 'type' and backend-specific params.
                If None, returns an InMemoryOrderStore.

    Returns:
        Order store instance (not yet connected)

    Raises:
        ConfigurationError: If the store type is unknown
    """
    if not config:
        from orderflow.storage.memory import InMemoryOrderStore

        return InMemoryOrderStore()

    store_type = config.get("type", "memory")

    if store_type == "memory":
        from orderflow.storage.memory import InMemoryOrderStore

        return InMemoryOrderStore()

    elif store_type == "postgres":
        from orderflow.storage.postgres import PostgresOrderStore

        if config.get("dsn"):
            return PostgresOrderStore(dsn=config["dsn"])
        return PostgresOrderStore(
            host=config.get("host", "localhost"),
            port=config.get("port", 5432),
            user=config.get("user", "orderflow"),
            password=config.get("password", ""),
            database=config.get("database", "orderflow"),
        )

    else:
        raise ConfigurationError(f"Unknown store type: {store_type}")
