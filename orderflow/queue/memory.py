"""
In-memory confirmation queue for tests and single-process deployments.

Implements the full at-least-once contract on one asyncio event loop:
visibility timeouts, explicit ack/nack, redelivery, and an optional
dead-letter list after too many deliveries.

Note: All tasks are lost when the process exits.
"""

import asyncio
import itertools
import time
import uuid
from dataclasses import dataclass

from loguru import logger

from orderflow.core.exceptions import UnavailableError
from orderflow.queue.base import ConfirmationQueue, Delivery
from orderflow.storage.schemas import ConfirmationTask


@dataclass
class _Entry:
    seq: int
    task: ConfirmationTask
    visible_at: float
    attempts: int = 0
    receipt: str | None = None


class InMemoryConfirmationQueue(ConfirmationQueue):
    """
    asyncio-based confirmation queue.

    Tasks are delivered in enqueue order. A delivered task is hidden for
    ``visibility_timeout`` seconds; if it is neither acked nor nacked in that
    window it becomes visible again and is redelivered.

    Example:
        >>> queue = InMemoryConfirmationQueue(visibility_timeout=30)
        >>> await queue.enqueue(ConfirmationTask(owner_id="U1", order_id="ord_1"))
        >>> delivery = await queue.dequeue(timeout=1)
        >>> await queue.ack(delivery)
    """

    def __init__(
        self,
        visibility_timeout: float = 30.0,
        redelivery_delay: float = 1.0,
        max_deliveries: int | None = None,
        max_size: int | None = None,
        poll_interval: float = 0.05,
    ) -> None:
        """
        Initialize the queue.

        Args:
            visibility_timeout: Seconds a delivered task stays hidden
            redelivery_delay: Default seconds before a nacked task is visible again
            max_deliveries: Deliveries before a task is dead-lettered (None = unlimited)
            max_size: Maximum tasks held; enqueue beyond it raises UnavailableError
            poll_interval: Upper bound on how long a waiting consumer sleeps
                before re-checking cancellation and visibility
        """
        self.visibility_timeout = visibility_timeout
        self.redelivery_delay = redelivery_delay
        self.max_deliveries = max_deliveries
        self.max_size = max_size
        self.poll_interval = poll_interval
        self._entries: dict[str, _Entry] = {}  # task_id -> entry
        self._dead_letters: list[ConfirmationTask] = []
        self._seq = itertools.count()
        self._condition: asyncio.Condition | None = None

    @property
    def _cond(self) -> asyncio.Condition:
        # Created lazily so the queue can be built outside a running loop
        if self._condition is None:
            self._condition = asyncio.Condition()
        return self._condition

    async def enqueue(self, task: ConfirmationTask) -> None:
        """Accept a task; it is visible immediately."""
        async with self._cond:
            if self.max_size is not None and len(self._entries) >= self.max_size:
                raise UnavailableError(
                    f"Confirmation queue full ({self.max_size} tasks)", retry_after=0.1
                )
            if task.task_id in self._entries:
                # Same task published twice: at-least-once allows keeping one copy
                return
            self._entries[task.task_id] = _Entry(
                seq=next(self._seq), task=task, visible_at=time.monotonic()
            )
            self._cond.notify()

        logger.debug(
            "Task enqueued",
            task_id=task.task_id,
            owner_id=task.owner_id,
            order_id=task.order_id,
        )

    async def dequeue(
        self,
        cancel: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> Delivery | None:
        """Wait for the next visible task."""
        deadline = None if timeout is None else time.monotonic() + timeout

        async with self._cond:
            while True:
                if cancel is not None and cancel.is_set():
                    return None

                now = time.monotonic()
                delivery = self._take_visible(now)
                if delivery is not None:
                    return delivery

                if deadline is not None and now >= deadline:
                    return None

                wait = self.poll_interval
                next_visible = self._next_visible_at()
                if next_visible is not None:
                    wait = min(wait, max(next_visible - now, 0))
                if deadline is not None:
                    wait = min(wait, deadline - now)
                if wait <= 0:
                    continue

                try:
                    await asyncio.wait_for(self._cond.wait(), timeout=wait)
                except asyncio.TimeoutError:
                    pass

    def _take_visible(self, now: float) -> Delivery | None:
        for entry in sorted(self._entries.values(), key=lambda e: e.seq):
            if entry.visible_at > now:
                continue

            if self.max_deliveries is not None and entry.attempts >= self.max_deliveries:
                del self._entries[entry.task.task_id]
                self._dead_letters.append(entry.task)
                logger.error(
                    f"Task dead-lettered after {entry.attempts} deliveries",
                    task_id=entry.task.task_id,
                    order_id=entry.task.order_id,
                )
                continue

            entry.attempts += 1
            entry.receipt = uuid.uuid4().hex
            entry.visible_at = now + self.visibility_timeout
            return Delivery(task=entry.task, receipt=entry.receipt, attempt=entry.attempts)

        return None

    def _next_visible_at(self) -> float | None:
        if not self._entries:
            return None
        return min(e.visible_at for e in self._entries.values())

    async def ack(self, delivery: Delivery) -> bool:
        """Remove the task if the receipt is still current."""
        async with self._cond:
            entry = self._entries.get(delivery.task.task_id)
            if entry is None or entry.receipt != delivery.receipt:
                logger.warning(
                    "Ack with stale receipt ignored",
                    task_id=delivery.task.task_id,
                    attempt=delivery.attempt,
                )
                return False
            del self._entries[delivery.task.task_id]
            return True

    async def nack(self, delivery: Delivery, delay: float | None = None) -> bool:
        """Make the task visible again after ``delay`` seconds."""
        delay = self.redelivery_delay if delay is None else delay

        async with self._cond:
            entry = self._entries.get(delivery.task.task_id)
            if entry is None or entry.receipt != delivery.receipt:
                logger.warning(
                    "Nack with stale receipt ignored",
                    task_id=delivery.task.task_id,
                    attempt=delivery.attempt,
                )
                return False
            entry.receipt = None
            entry.visible_at = time.monotonic() + delay
            self._cond.notify()
            return True

    # Utility methods

    @property
    def dead_letters(self) -> list[ConfirmationTask]:
        """Tasks dropped after exceeding ``max_deliveries``."""
        return list(self._dead_letters)

    def in_flight(self) -> int:
        """Number of delivered, unacknowledged tasks that are still hidden."""
        now = time.monotonic()
        return sum(1 for e in self._entries.values() if e.receipt and e.visible_at > now)

    def __len__(self) -> int:
        """Return number of tasks not yet acknowledged."""
        return len(self._entries)

    def __repr__(self) -> str:
        return (
            f"InMemoryConfirmationQueue("
            f"tasks={len(self._entries)}, "
            f"dead_letters={len(self._dead_letters)})"
        )
