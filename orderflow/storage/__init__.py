"""
Order stores for orderflow.

Provides different storage implementations for order records. The
PostgreSQL store is imported lazily so asyncpg stays optional.
"""

from orderflow.storage.base import OrderStore
from orderflow.storage.config import config_to_store, store_to_config
from orderflow.storage.memory import InMemoryOrderStore
from orderflow.storage.schemas import (
    ALLOWED_TRANSITIONS,
    ConfirmationTask,
    Order,
    OrderStatus,
    generate_order_id,
)

__all__ = [
    "OrderStore",
    "InMemoryOrderStore",
    "Order",
    "OrderStatus",
    "ConfirmationTask",
    "ALLOWED_TRANSITIONS",
    "generate_order_id",
    # Config utilities
    "store_to_config",
    "config_to_store",
]
