"""
Order intake.

Validates a create request, persists a PENDING order and hands a
confirmation task to the queue. The intake never writes an order after
creation; the status transition belongs to the confirmation worker.
"""

from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Any

from loguru import logger

from orderflow.core.exceptions import (
    AlreadyExistsError,
    InvalidArgumentError,
    NotFoundError,
    UnavailableError,
)
from orderflow.core.retry import RetryDelay, with_retries
from orderflow.engine.events import create_order_created_event
from orderflow.notify.base import Notifier
from orderflow.observability.logging import order_logging_context
from orderflow.queue.base import TaskPublisher
from orderflow.storage.base import OrderStore
from orderflow.storage.schemas import (
    ConfirmationTask,
    Order,
    OrderStatus,
    generate_order_id,
)


def parse_total(total: Any) -> Decimal:
    """
    Validate and normalize an order total.

    Accepts ints, floats, Decimals and numeric strings. ``None`` means 0.

    Raises:
        InvalidArgumentError: If the value is not a finite, non-negative number
    """
    if total is None:
        return Decimal("0")

    if isinstance(total, bool) or not isinstance(total, (int, float, Decimal, str)):
        raise InvalidArgumentError(f"total must be a number, got {type(total).__name__}")

    try:
        value = Decimal(str(total).strip()) if not isinstance(total, Decimal) else total
    except InvalidOperation:
        raise InvalidArgumentError(f"total must be a number, got {total!r}") from None

    if not value.is_finite():
        raise InvalidArgumentError(f"total must be finite, got {total!r}")
    if value < 0:
        raise InvalidArgumentError(f"total must be non-negative, got {total!r}")
    return value


def validate_owner_id(owner_id: Any) -> str:
    if not isinstance(owner_id, str) or not owner_id.strip():
        raise InvalidArgumentError("owner_id is required")
    return owner_id


class OrderIntake:
    """
    Entry point for creating and reading orders.

    Example:
        >>> intake = OrderIntake(store, queue)
        >>> order = await intake.create_order("U1", total=199)
        >>> order.status
        <OrderStatus.PENDING: 'PENDING'>
    """

    def __init__(
        self,
        store: OrderStore,
        publisher: TaskPublisher,
        notifier: Notifier | None = None,
        max_retries: int = 3,
        retry_delay: RetryDelay = "exponential",
    ) -> None:
        """
        Initialize the intake.

        Args:
            store: Shared order store
            publisher: Queue (or publisher) receiving confirmation tasks
            notifier: Optional notifier; receives an order.created event
            max_retries: Retries for transient store/queue failures
            retry_delay: Backoff strategy between retries
        """
        self.store = store
        self.publisher = publisher
        self.notifier = notifier
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    @classmethod
    def from_config(cls) -> "OrderIntake":
        """Build an intake on the process-wide handles from orderflow.config."""
        from orderflow.config import get_config, get_notifier, get_queue, get_store

        config = get_config()
        return cls(
            store=get_store(),
            publisher=get_queue(),
            notifier=get_notifier(),
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
        )

    async def create_order(self, owner_id: str, total: Any = None) -> Order:
        """
        Create a PENDING order and enqueue its confirmation task.

        Args:
            owner_id: Requesting party
            total: Order total (defaults to 0)

        Returns:
            The persisted order record

        Raises:
            InvalidArgumentError: Bad owner_id or total (nothing is written)
            UnavailableError: Store or queue unavailable after retries. If the
                order was already written it stays PENDING.
        """
        owner_id = validate_owner_id(owner_id)
        amount = parse_total(total)

        order = Order(
            owner_id=owner_id,
            order_id=generate_order_id(),
            status=OrderStatus.PENDING,
            total=amount,
        )
        order = replace(order, updated_at=order.created_at)

        with order_logging_context(order.owner_id, order.order_id):
            await self._persist(order)
            logger.info("Order persisted", total=str(order.total))

            task = ConfirmationTask(owner_id=order.owner_id, order_id=order.order_id)
            try:
                await with_retries(
                    lambda: self.publisher.enqueue(task),
                    name="confirmation enqueue",
                    max_retries=self.max_retries,
                    retry_delay=self.retry_delay,
                )
            except UnavailableError as e:
                logger.error(
                    "Confirmation task not enqueued; order left PENDING",
                    task_id=task.task_id,
                    error=str(e),
                )
                raise UnavailableError(
                    f"Order {order.order_id} stored but confirmation could not be queued: {e}"
                ) from e

            logger.info("Confirmation task enqueued", task_id=task.task_id)

            if self.notifier is not None:
                await self.notifier.publish(create_order_created_event(order))

        return order

    async def _persist(self, order: Order) -> None:
        """
        Put the order, retrying transient failures.

        A retried put that finds the id taken checks whether the stored record
        is this very order, committed by an attempt whose reply was lost.
        """
        attempts = 0

        async def put() -> None:
            nonlocal attempts
            attempts += 1
            try:
                await self.store.put(order)
            except AlreadyExistsError:
                if attempts == 1 or not await self._is_stored(order):
                    raise
                logger.info("Order already committed by an earlier put attempt")

        await with_retries(
            put,
            name="order store put",
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
        )

    async def _is_stored(self, order: Order) -> bool:
        try:
            stored = await self.store.get(order.owner_id, order.order_id)
        except NotFoundError:
            return False
        return stored.created_at == order.created_at and stored.total == order.total

    async def list_orders(self, owner_id: str) -> list[Order]:
        """
        List every order belonging to an owner.

        Raises:
            InvalidArgumentError: Empty owner_id
        """
        owner_id = validate_owner_id(owner_id)
        return [order async for order in self.store.query_by_owner(owner_id)]

    async def list_by_status(self, status: OrderStatus | str) -> list[Order]:
        """List every order currently in ``status``."""
        if not isinstance(status, OrderStatus):
            try:
                status = OrderStatus(str(status).upper())
            except ValueError:
                raise InvalidArgumentError(f"Unknown order status: {status}") from None
        return [order async for order in self.store.query_by_status(status)]

    async def get_order(self, owner_id: str, order_id: str) -> Order:
        """
        Fetch one order.

        Raises:
            InvalidArgumentError: Empty owner_id or order_id
            NotFoundError: If the order does not exist
        """
        owner_id = validate_owner_id(owner_id)
        if not order_id:
            raise InvalidArgumentError("order_id is required")
        return await self.store.get(owner_id, order_id)
