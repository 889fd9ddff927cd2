"""
Abstract base classes for confirmation queues.

The intake only needs to publish tasks (TaskPublisher). Workers that pull
from a queue need the full at-least-once contract (ConfirmationQueue):
a dequeued task stays in flight until it is acknowledged, and a task that is
nacked, or whose visibility timeout lapses, is delivered again.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass

from orderflow.storage.schemas import ConfirmationTask


@dataclass(frozen=True)
class Delivery:
    """
    A task handed to a consumer.

    Attributes:
        task: The confirmation task
        receipt: Opaque handle identifying this particular delivery
        attempt: 1-based delivery count for the task
    """

    task: ConfirmationTask
    receipt: str
    attempt: int = 1


class TaskPublisher(ABC):
    """Producer side of a confirmation queue."""

    @abstractmethod
    async def enqueue(self, task: ConfirmationTask) -> None:
        """
        Durably accept a task for delivery.

        Must return in bounded time.

        Args:
            task: Task to deliver

        Raises:
            UnavailableError: If the queue cannot accept the task right now
        """
        pass

    async def close(self) -> None:
        """Release any connections held by the publisher."""
        pass


class ConfirmationQueue(TaskPublisher):
    """
    Full at-least-once queue contract used by pulling workers.

    Delivery is ordered per producer. Redelivery is expected; consumers must
    be idempotent.
    """

    @abstractmethod
    async def dequeue(
        self,
        cancel: asyncio.Event | None = None,
        timeout: float | None = None,
    ) -> Delivery | None:
        """
        Wait for the next visible task.

        Args:
            cancel: Event that, once set, stops the wait
            timeout: Maximum seconds to wait (None = until cancelled)

        Returns:
            A Delivery, or None if cancelled or timed out
        """
        pass

    @abstractmethod
    async def ack(self, delivery: Delivery) -> bool:
        """
        Acknowledge successful processing, removing the task.

        Returns:
            True if the task was removed, False if the receipt was stale
            (the task was already redelivered or acknowledged)
        """
        pass

    @abstractmethod
    async def nack(self, delivery: Delivery, delay: float | None = None) -> bool:
        """
        Signal failed processing; the task becomes visible again after ``delay``.

        Args:
            delivery: Delivery being rejected
            delay: Seconds until redelivery (None = queue default)

        Returns:
            True if the task was scheduled for redelivery, False if the
            receipt was stale
        """
        pass
