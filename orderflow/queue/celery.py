"""
Celery-backed task publisher.

Enqueue sends the ``orderflow.confirm_order`` task to the broker. Delivery,
visibility and redelivery are the broker's job; workers consume with
``celery -A orderflow.celery.app worker``.
"""

import asyncio
from typing import Any, Dict, Optional

from kombu.exceptions import OperationalError
from loguru import logger

from orderflow.core.exceptions import UnavailableError
from orderflow.queue.base import TaskPublisher
from orderflow.storage.schemas import ConfirmationTask


class CeleryTaskPublisher(TaskPublisher):
    """
    Publish confirmation tasks to Celery.

    Example:
        >>> publisher = CeleryTaskPublisher(store_config={"type": "postgres", "dsn": dsn})
        >>> await publisher.enqueue(task)
    """

    def __init__(
        self,
        store_config: Optional[Dict[str, Any]] = None,
        queue: Optional[str] = None,
        publish_timeout: float = 5.0,
    ) -> None:
        """
        Args:
            store_config: Store configuration passed to the worker task
            queue: Override the Celery queue name
            publish_timeout: Seconds allowed for the broker to accept a task
        """
        self.store_config = store_config
        self.queue = queue
        self.publish_timeout = publish_timeout

    async def enqueue(self, task: ConfirmationTask) -> None:
        """
        Send the task to the broker.

        Raises:
            UnavailableError: If the broker cannot be reached in time
        """
        from orderflow.celery.tasks import confirm_order_task

        options: Dict[str, Any] = {"task_id": task.task_id}
        if self.queue:
            options["queue"] = self.queue

        try:
            await asyncio.wait_for(
                asyncio.to_thread(
                    confirm_order_task.apply_async,
                    args=[task.to_dict()],
                    kwargs={"store_config": self.store_config},
                    **options,
                ),
                timeout=self.publish_timeout,
            )
        except OperationalError as e:
            raise UnavailableError(f"Celery broker unavailable: {e}") from e
        except asyncio.TimeoutError as e:
            raise UnavailableError(
                f"Celery broker did not accept task within {self.publish_timeout}s"
            ) from e

        logger.debug(
            "Confirmation task sent to Celery",
            task_id=task.task_id,
            owner_id=task.owner_id,
            order_id=task.order_id,
        )
