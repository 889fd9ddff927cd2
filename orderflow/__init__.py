"""
orderflow - Order intake and confirmation pipeline

Orders are created PENDING by the intake, a confirmation task travels
through an at-least-once queue, and a worker moves each order to CONFIRMED
exactly once (however many times its task is delivered) and notifies
subscribers.

Quick Start:
    >>> import asyncio
    >>> from orderflow import (
    ...     ConfirmationWorker, InMemoryConfirmationQueue, InMemoryOrderStore,
    ...     Notifier, OrderIntake, RecordingSubscriber,
    ... )
    >>>
    >>> async def main():
    ...     store, queue, notifier = InMemoryOrderStore(), InMemoryConfirmationQueue(), Notifier()
    ...     notifier.subscribe(RecordingSubscriber())
    ...     intake = OrderIntake(store, queue, notifier)
    ...     order = await intake.create_order("U1", total=199)
    ...     await ConfirmationWorker(store, queue, notifier).drain()
    ...     return await store.get("U1", order.order_id)
    >>>
    >>> asyncio.run(main()).status
    <OrderStatus.CONFIRMED: 'CONFIRMED'>
"""

__version__ = "0.1.0"

# Configuration
from orderflow.config import (
    OrderflowConfig,
    close_handles,
    configure,
    get_config,
    get_notifier,
    get_queue,
    get_store,
    load_config_file,
    reset_config,
)

# Exceptions
from orderflow.core.exceptions import (
    AlreadyExistsError,
    ConfigurationError,
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    OrderflowError,
    UnavailableError,
    WorkerStoppedError,
)

# Events
from orderflow.engine.events import Event, EventType

# Intake and worker
from orderflow.engine.intake import OrderIntake
from orderflow.engine.worker import ConfirmationWorker, TaskOutcome, WorkerPool, WorkerStats

# Notification
from orderflow.notify import Notifier, PublishResult, RecordingSubscriber, WebhookSubscriber

# Queues
from orderflow.queue import ConfirmationQueue, Delivery, InMemoryConfirmationQueue, TaskPublisher

# Storage
from orderflow.storage import (
    ConfirmationTask,
    InMemoryOrderStore,
    Order,
    OrderStatus,
    OrderStore,
)

# Logging
from orderflow.observability.logging import configure_logging, get_logger

__all__ = [
    "__version__",
    # Configuration
    "OrderflowConfig",
    "configure",
    "get_config",
    "reset_config",
    "load_config_file",
    "get_store",
    "get_queue",
    "get_notifier",
    "close_handles",
    # Exceptions
    "OrderflowError",
    "InvalidArgumentError",
    "NotFoundError",
    "AlreadyExistsError",
    "ConflictError",
    "UnavailableError",
    "ConfigurationError",
    "WorkerStoppedError",
    # Events
    "Event",
    "EventType",
    # Intake and worker
    "OrderIntake",
    "ConfirmationWorker",
    "WorkerPool",
    "WorkerStats",
    "TaskOutcome",
    # Notification
    "Notifier",
    "PublishResult",
    "RecordingSubscriber",
    "WebhookSubscriber",
    # Queues
    "TaskPublisher",
    "ConfirmationQueue",
    "Delivery",
    "InMemoryConfirmationQueue",
    # Storage
    "OrderStore",
    "InMemoryOrderStore",
    "Order",
    "OrderStatus",
    "ConfirmationTask",
    # Logging
    "configure_logging",
    "get_logger",
]
