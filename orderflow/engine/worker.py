"""
Confirmation worker.

Consumes confirmation tasks and moves orders from PENDING to CONFIRMED with
a compare-and-set on the order store. Redelivery is expected: a task whose
transition was already applied is acknowledged as a replay, so each order
is confirmed exactly once however many times its task is delivered.

Per-task outcomes:
- CONFIRMED: transition applied, event published, task acked
- REPLAYED:  transition already applied (Conflict), task acked
- DROPPED:   order missing or task malformed, task acked and logged
- RETRY:     store unavailable or task timed out, task nacked
"""

import asyncio
from dataclasses import asdict, dataclass
from enum import Enum

from loguru import logger

from orderflow.core.exceptions import (
    ConfigurationError,
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    OrderflowError,
    UnavailableError,
    WorkerStoppedError,
)
from orderflow.engine.events import create_order_confirmed_event
from orderflow.notify.base import Notifier
from orderflow.observability.logging import task_logging_context
from orderflow.queue.base import ConfirmationQueue, Delivery, TaskPublisher
from orderflow.storage.base import OrderStore
from orderflow.storage.schemas import ConfirmationTask, Order, OrderStatus


class TaskOutcome(Enum):
    """Result of processing one confirmation task."""

    CONFIRMED = "confirmed"
    REPLAYED = "replayed"
    DROPPED = "dropped"
    RETRY = "retry"

    @property
    def should_ack(self) -> bool:
        return self is not TaskOutcome.RETRY


@dataclass
class WorkerStats:
    """Counters per task outcome."""

    confirmed: int = 0
    replayed: int = 0
    dropped: int = 0
    retried: int = 0

    def record(self, outcome: TaskOutcome) -> None:
        if outcome is TaskOutcome.CONFIRMED:
            self.confirmed += 1
        elif outcome is TaskOutcome.REPLAYED:
            self.replayed += 1
        elif outcome is TaskOutcome.DROPPED:
            self.dropped += 1
        else:
            self.retried += 1

    @property
    def processed(self) -> int:
        return self.confirmed + self.replayed + self.dropped + self.retried

    @classmethod
    def combined(cls, stats: list["WorkerStats"]) -> "WorkerStats":
        total = cls()
        for s in stats:
            total.confirmed += s.confirmed
            total.replayed += s.replayed
            total.dropped += s.dropped
            total.retried += s.retried
        return total

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class ConfirmationWorker:
    """
    Processes confirmation tasks against a shared store, queue and notifier.

    The worker holds references to the shared handles; it never creates or
    closes them.

    Example:
        >>> worker = ConfirmationWorker(store, queue, notifier)
        >>> cancel = asyncio.Event()
        >>> await worker.run(cancel)  # until cancel.set()
    """

    def __init__(
        self,
        store: OrderStore,
        queue: TaskPublisher | None = None,
        notifier: Notifier | None = None,
        renotify_on_replay: bool = False,
        task_timeout: float | None = None,
        nack_delay: float | None = None,
        poll_timeout: float = 1.0,
        name: str = "worker-0",
    ) -> None:
        """
        Initialize the worker.

        Args:
            store: Shared order store
            queue: Confirmation queue to pull from (only needed for run/handle)
            notifier: Notifier receiving order.confirmed events
            renotify_on_replay: Re-publish the confirmed event (replay=True)
                when a redelivered task finds the order already confirmed
            task_timeout: Seconds allowed for the status transition of one task
            nack_delay: Redelivery delay for failed tasks (None = queue default)
            poll_timeout: Seconds each dequeue waits before re-checking cancel
            name: Worker name used in logs
        """
        self.store = store
        self.queue = queue
        self.notifier = notifier
        self.renotify_on_replay = renotify_on_replay
        self.task_timeout = task_timeout
        self.nack_delay = nack_delay
        self.poll_timeout = poll_timeout
        self.name = name
        self.stats = WorkerStats()

    async def process(self, task: ConfirmationTask, attempt: int = 1) -> TaskOutcome:
        """
        Apply one confirmation task.

        Never raises for classified store errors; the outcome tells the caller
        whether to acknowledge the task or hand it back for redelivery.

        Args:
            task: Task to process
            attempt: Delivery count; a replay on a redelivery re-publishes the event

        Returns:
            The task outcome
        """
        with task_logging_context(
            task.task_id, task.owner_id, task.order_id, attempt=attempt, worker=self.name
        ):
            outcome = await self._process(task, attempt)
            self.stats.record(outcome)
            return outcome

    async def _process(self, task: ConfirmationTask, attempt: int) -> TaskOutcome:
        try:
            if not task.owner_id or not task.order_id:
                raise InvalidArgumentError("Confirmation task missing owner_id or order_id")
            order = await self._transition(task)

        except ConflictError:
            logger.info("Order already confirmed, acknowledging replay")
            return await self._replay(task, attempt)

        except NotFoundError:
            logger.error("Order not found, dropping confirmation task")
            return TaskOutcome.DROPPED

        except InvalidArgumentError as e:
            logger.error("Malformed confirmation task dropped", error=str(e))
            return TaskOutcome.DROPPED

        except UnavailableError as e:
            logger.warning("Order store unavailable, task will be redelivered", error=str(e))
            return TaskOutcome.RETRY

        except asyncio.TimeoutError:
            logger.warning(
                f"Status transition exceeded {self.task_timeout}s, task will be redelivered"
            )
            return TaskOutcome.RETRY

        except Exception:
            logger.exception("Unexpected error confirming order, task will be redelivered")
            return TaskOutcome.RETRY

        logger.info("Order confirmed")
        if self.notifier is not None:
            await self.notifier.publish(create_order_confirmed_event(order))
        return TaskOutcome.CONFIRMED

    async def _transition(self, task: ConfirmationTask) -> Order:
        update = self.store.update_status(
            task.owner_id, task.order_id, OrderStatus.PENDING, OrderStatus.CONFIRMED
        )
        if self.task_timeout is None:
            return await update
        return await asyncio.wait_for(update, timeout=self.task_timeout)

    async def _replay(self, task: ConfirmationTask, attempt: int) -> TaskOutcome:
        # A redelivered task may have committed the transition on an earlier
        # attempt that never got to publish
        if self.notifier is None or not (self.renotify_on_replay or attempt > 1):
            return TaskOutcome.REPLAYED

        try:
            order = await self.store.get(task.owner_id, task.order_id)
        except UnavailableError as e:
            logger.warning("Could not load order for re-notification, retrying", error=str(e))
            return TaskOutcome.RETRY

        await self.notifier.publish(create_order_confirmed_event(order, replay=True))
        return TaskOutcome.REPLAYED

    async def handle(self, delivery: Delivery) -> TaskOutcome:
        """Process a delivery, then ack it or nack it for redelivery."""
        queue = self._pull_queue()
        outcome = await self.process(delivery.task, attempt=delivery.attempt)

        try:
            if outcome.should_ack:
                await queue.ack(delivery)
            else:
                await queue.nack(delivery, delay=self.nack_delay)
        except OrderflowError as e:
            # The visibility timeout redelivers the task
            logger.warning(
                "Could not settle delivery",
                task_id=delivery.task.task_id,
                outcome=outcome.value,
                error=str(e),
            )
        return outcome

    async def run(self, cancel: asyncio.Event) -> WorkerStats:
        """
        Consume tasks until ``cancel`` is set.

        A task already being processed when ``cancel`` is set finishes (and is
        acked or nacked) before the loop exits.

        Returns:
            This worker's stats
        """
        queue = self._pull_queue()
        logger.info(f"Confirmation worker {self.name} started")

        while not cancel.is_set():
            delivery = await queue.dequeue(cancel=cancel, timeout=self.poll_timeout)
            if delivery is None:
                continue
            await self.handle(delivery)

        logger.info(f"Confirmation worker {self.name} stopped", **self.stats.to_dict())
        return self.stats

    async def drain(self, idle_timeout: float = 0.1) -> int:
        """
        Process tasks until none arrives within ``idle_timeout`` seconds.

        Returns:
            Number of deliveries handled
        """
        queue = self._pull_queue()
        handled = 0
        while True:
            delivery = await queue.dequeue(timeout=idle_timeout)
            if delivery is None:
                return handled
            await self.handle(delivery)
            handled += 1

    def _pull_queue(self) -> ConfirmationQueue:
        if not isinstance(self.queue, ConfirmationQueue):
            raise ConfigurationError(
                f"Worker {self.name} needs a pullable ConfirmationQueue, "
                f"got {type(self.queue).__name__}"
            )
        return self.queue


class WorkerPool:
    """
    Runs N confirmation workers concurrently on the current event loop.

    All workers share the same store, queue and notifier.

    Example:
        >>> pool = WorkerPool(store, queue, notifier, concurrency=4)
        >>> await pool.start()
        >>> ...
        >>> stats = await pool.stop(timeout=10)
    """

    def __init__(
        self,
        store: OrderStore,
        queue: ConfirmationQueue,
        notifier: Notifier | None = None,
        concurrency: int = 1,
        **worker_options,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self.workers = [
            ConfirmationWorker(
                store, queue, notifier, name=f"worker-{i}", **worker_options
            )
            for i in range(concurrency)
        ]
        self._cancel: asyncio.Event | None = None
        self._tasks: list[asyncio.Task] = []
        self._stopped = False

    @classmethod
    def from_config(cls, concurrency: int | None = None) -> "WorkerPool":
        """
        Build a pool on the process-wide handles from orderflow.config.

        Raises:
            ConfigurationError: If the configured queue cannot be pulled from
        """
        from orderflow.config import get_config, get_notifier, get_queue, get_store

        config = get_config()
        queue = get_queue()
        if not isinstance(queue, ConfirmationQueue):
            raise ConfigurationError(
                f"Queue backend '{config.queue_backend}' is consumed by its own workers"
            )
        return cls(
            get_store(),
            queue,
            get_notifier(),
            concurrency=concurrency or config.worker_concurrency,
            renotify_on_replay=config.renotify_on_replay,
            task_timeout=config.task_timeout,
        )

    @property
    def running(self) -> bool:
        return bool(self._tasks) and not self._stopped

    @property
    def stats(self) -> WorkerStats:
        return WorkerStats.combined([w.stats for w in self.workers])

    async def start(self) -> None:
        """
        Start every worker.

        Raises:
            WorkerStoppedError: If the pool was already stopped
        """
        if self._stopped:
            raise WorkerStoppedError("Worker pool has been stopped")
        if self._tasks:
            return

        self._cancel = asyncio.Event()
        self._tasks = [
            asyncio.create_task(worker.run(self._cancel), name=worker.name)
            for worker in self.workers
        ]
        logger.info(f"Started {len(self.workers)} confirmation worker(s)")

    async def stop(self, timeout: float | None = None) -> WorkerStats:
        """
        Stop the workers and wait for in-flight tasks to finish.

        Workers still busy after ``timeout`` seconds are cancelled; their
        tasks are redelivered once the queue's visibility timeout lapses.

        Returns:
            Combined stats of all workers
        """
        self._stopped = True
        if not self._tasks:
            return self.stats

        assert self._cancel is not None
        self._cancel.set()

        done, pending = await asyncio.wait(self._tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(
                f"{len(pending)} worker(s) cancelled after {timeout}s; "
                "their tasks will be redelivered"
            )

        for task in done:
            if not task.cancelled() and task.exception() is not None:
                logger.error(
                    f"Worker {task.get_name()} crashed",
                    error=str(task.exception()),
                )

        self._tasks = []
        stats = self.stats
        logger.info("Confirmation workers stopped", **stats.to_dict())
        return stats

    async def __aenter__(self) -> "WorkerPool":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
