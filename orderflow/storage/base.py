"""
Abstract base class for order stores.

All store implementations must implement this interface so the intake and
the confirmation worker behave identically on every backend (memory,
PostgreSQL).
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import aclosing

from orderflow.core.exceptions import InvalidArgumentError
from orderflow.storage.schemas import ALLOWED_TRANSITIONS, Order, OrderStatus


class OrderStore(ABC):
    """
    Abstract base class for order stores.

    Order stores are responsible for:
    - Persisting order records keyed by (owner_id, order_id)
    - Answering owner and status queries
    - Atomic compare-and-set of the order status

    The conditional ``update_status`` is the only mutual-exclusion mechanism
    between concurrent confirmation workers; it must be atomic per record.

    All methods are async to support both sync and async backends.
    """

    # Order Operations

    @abstractmethod
    async def put(self, order: Order) -> None:
        """
        Insert a new order.

        Args:
            order: Order to persist

        Raises:
            AlreadyExistsError: If (owner_id, order_id) is already present
            UnavailableError: On transient backend failure
        """
        pass

    @abstractmethod
    async def get(self, owner_id: str, order_id: str) -> Order:
        """
        Retrieve an order by its compound key.

        Args:
            owner_id: Owner identifier
            order_id: Order identifier

        Returns:
            The stored order

        Raises:
            NotFoundError: If the order does not exist
            UnavailableError: On transient backend failure
        """
        pass

    @abstractmethod
    def query_by_owner(self, owner_id: str) -> AsyncIterator[Order]:
        """
        Iterate all orders belonging to an owner.

        The sequence is lazy and finite. Order of results is unspecified but
        stable within one iteration; calling again starts a fresh iteration.

        Args:
            owner_id: Owner identifier

        Returns:
            Async iterator of orders
        """
        pass

    @abstractmethod
    def query_by_status(self, status: OrderStatus) -> AsyncIterator[Order]:
        """
        Iterate all orders currently in a status.

        Args:
            status: Status to filter by

        Returns:
            Async iterator of orders
        """
        pass

    @abstractmethod
    async def update_status(
        self,
        owner_id: str,
        order_id: str,
        from_status: OrderStatus,
        to_status: OrderStatus,
    ) -> Order:
        """
        Conditionally move an order from one status to another.

        Succeeds only if the current status equals ``from_status``; also
        bumps ``updated_at``.

        Args:
            owner_id: Owner identifier
            order_id: Order identifier
            from_status: Expected current status
            to_status: New status

        Returns:
            The updated order

        Raises:
            InvalidArgumentError: If (from_status, to_status) is not an allowed transition
            ConflictError: If the current status already equals ``to_status``
            NotFoundError: If the order does not exist
            UnavailableError: On transient backend failure
        """
        pass

    # Lifecycle

    async def connect(self) -> None:
        """
        Initialize connection to the store.

        Override if your backend requires explicit connection setup.
        """
        pass

    async def disconnect(self) -> None:
        """
        Close connection to the store.

        Override if your backend requires explicit cleanup.
        """
        pass

    async def health_check(self) -> bool:
        """
        Check if the store is healthy and accessible.

        Returns:
            True if healthy, False otherwise
        """
        try:
            async with aclosing(self.query_by_status(OrderStatus.PENDING)) as orders:
                async for _ in orders:
                    break
            return True
        except Exception:
            return False

    # Helpers shared by backends

    @staticmethod
    def validate_transition(from_status: OrderStatus, to_status: OrderStatus) -> None:
        """Reject any transition other than PENDING -> CONFIRMED."""
        if (from_status, to_status) not in ALLOWED_TRANSITIONS:
            raise InvalidArgumentError(
                f"Invalid status transition {from_status.value} -> {to_status.value}"
            )
