"""
In-memory order store for testing and single-process deployments.

This backend stores all data in memory and is ideal for:
- Unit testing
- Local development and the CLI demo
- Running intake and workers as asyncio tasks in one process

Note: All data is lost when the process exits.
"""

import threading
from collections.abc import AsyncIterator
from dataclasses import replace
from datetime import UTC, datetime

from orderflow.core.exceptions import AlreadyExistsError, ConflictError, NotFoundError
from orderflow.storage.base import OrderStore
from orderflow.storage.schemas import Order, OrderStatus


class InMemoryOrderStore(OrderStore):
    """
    Thread-safe in-memory order store.

    Orders are kept in a dict keyed by (owner_id, order_id), with an owner
    index and a status index maintained under a reentrant lock. Callers
    receive copies, so mutating a returned order never touches stored state.

    Example:
        >>> store = InMemoryOrderStore()
        >>> orderflow.configure(store=store)
    """

    def __init__(self) -> None:
        """Initialize empty store."""
        self._orders: dict[tuple[str, str], Order] = {}
        self._owner_index: dict[str, list[str]] = {}  # owner_id -> [order_id]
        self._status_index: dict[OrderStatus, set[tuple[str, str]]] = {
            status: set() for status in OrderStatus
        }
        # Every order_id ever inserted, so ids are never reused
        self._issued_ids: set[str] = set()
        self._lock = threading.RLock()

    async def put(self, order: Order) -> None:
        """Insert a new order."""
        with self._lock:
            if order.key in self._orders or order.order_id in self._issued_ids:
                raise AlreadyExistsError(order.owner_id, order.order_id)
            stored = replace(order)
            self._orders[order.key] = stored
            self._owner_index.setdefault(order.owner_id, []).append(order.order_id)
            self._status_index[order.status].add(order.key)
            self._issued_ids.add(order.order_id)

    async def get(self, owner_id: str, order_id: str) -> Order:
        """Retrieve an order by its compound key."""
        with self._lock:
            order = self._orders.get((owner_id, order_id))
            if order is None:
                raise NotFoundError(owner_id, order_id)
            return replace(order)

    async def query_by_owner(self, owner_id: str) -> AsyncIterator[Order]:
        """Iterate all orders belonging to an owner."""
        with self._lock:
            snapshot = list(self._owner_index.get(owner_id, []))

        for order_id in snapshot:
            with self._lock:
                order = self._orders.get((owner_id, order_id))
                copy = replace(order) if order is not None else None
            if copy is not None:
                yield copy

    async def query_by_status(self, status: OrderStatus) -> AsyncIterator[Order]:
        """Iterate all orders currently in a status."""
        with self._lock:
            snapshot = sorted(self._status_index[status])

        for key in snapshot:
            with self._lock:
                order = self._orders.get(key)
                # Skip records that moved to another status since the snapshot
                copy = replace(order) if order is not None and order.status == status else None
            if copy is not None:
                yield copy

    async def update_status(
        self,
        owner_id: str,
        order_id: str,
        from_status: OrderStatus,
        to_status: OrderStatus,
    ) -> Order:
        """Atomically move an order from ``from_status`` to ``to_status``."""
        self.validate_transition(from_status, to_status)

        with self._lock:
            order = self._orders.get((owner_id, order_id))
            if order is None:
                raise NotFoundError(owner_id, order_id)

            if order.status != from_status:
                raise ConflictError(owner_id, order_id, order.status.value)

            self._status_index[order.status].discard(order.key)
            order.status = to_status
            order.updated_at = datetime.now(UTC)
            self._status_index[to_status].add(order.key)
            return replace(order)

    # Utility methods

    def clear(self) -> None:
        """
        Clear all data from the store.

        Useful for testing to reset state between tests. Issued ids are kept
        so they can never be handed out again.
        """
        with self._lock:
            self._orders.clear()
            self._owner_index.clear()
            for keys in self._status_index.values():
                keys.clear()

    def __len__(self) -> int:
        """Return total number of orders."""
        with self._lock:
            return len(self._orders)

    def __repr__(self) -> str:
        """Return string representation."""
        with self._lock:
            return (
                f"InMemoryOrderStore("
                f"orders={len(self._orders)}, "
                f"pending={len(self._status_index[OrderStatus.PENDING])}, "
                f"confirmed={len(self._status_index[OrderStatus.CONFIRMED])})"
            )
