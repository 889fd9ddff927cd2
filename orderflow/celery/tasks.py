"""
Celery task that confirms an order.

The broker redelivers a task whose worker died before acknowledging it, and
a RETRY outcome is handed back to the broker with ``self.retry``; both paths
rely on ConfirmationWorker being idempotent under redelivery.
"""

import json
from typing import Any, Dict, Optional

from celery import Task
from loguru import logger

from orderflow.celery.app import celery_app
from orderflow.celery.loop import run_async
from orderflow.config import get_config, get_notifier, get_store
from orderflow.core.exceptions import UnavailableError
from orderflow.core.retry import get_retry_delay
from orderflow.engine.worker import ConfirmationWorker, TaskOutcome
from orderflow.storage.base import OrderStore
from orderflow.storage.config import config_to_store
from orderflow.storage.schemas import ConfirmationTask

# One store per distinct config per process
_stores: Dict[str, OrderStore] = {}


class ConfirmationTaskBase(Task):
    """Base task class for order confirmation with logging hooks."""

    max_retries = None  # redelivery is bounded by the broker, not by Celery
    acks_late = True
    reject_on_worker_lost = True

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """Handle task failure."""
        logger.error(
            f"Task {self.name} failed",
            task_id=task_id,
            error=str(exc),
            traceback=einfo.traceback,
        )

    def on_retry(self, exc, task_id, args, kwargs, einfo):
        """Handle task retry."""
        logger.warning(
            f"Task {self.name} retrying",
            task_id=task_id,
            error=str(exc),
            retry_count=self.request.retries,
        )


@celery_app.task(
    name="orderflow.confirm_order",
    base=ConfirmationTaskBase,
    bind=True,
)
def confirm_order_task(
    self,
    task_data: Dict[str, Any],
    store_config: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Confirm one order in a Celery worker.

    Args:
        task_data: Serialized ConfirmationTask
        store_config: Order store configuration (None = process default store)

    Returns:
        The TaskOutcome value ("confirmed", "replayed" or "dropped")

    Raises:
        UnavailableError: Re-raised through ``self.retry`` when the order
            store is unavailable or the transition timed out
    """
    try:
        task = ConfirmationTask.from_dict(task_data)
    except (KeyError, TypeError, ValueError) as e:
        logger.error("Malformed confirmation task dropped", error=str(e), task_data=task_data)
        return TaskOutcome.DROPPED.value

    config = get_config()
    worker = ConfirmationWorker(
        _get_store(store_config),
        notifier=get_notifier(),
        renotify_on_replay=config.renotify_on_replay,
        task_timeout=config.task_timeout,
        name=f"celery:{self.request.hostname or 'local'}",
    )

    attempt = self.request.retries + 1
    outcome = run_async(worker.process(task, attempt=attempt))

    if outcome is TaskOutcome.RETRY:
        countdown = get_retry_delay(config.retry_delay, self.request.retries)
        raise self.retry(
            exc=UnavailableError(f"Confirmation of {task.order_id} must be retried"),
            countdown=countdown,
        )

    return outcome.value


def _get_store(config: Optional[Dict[str, Any]] = None) -> OrderStore:
    """
    Get the connected store for a configuration.

    Without a configuration the process-wide store from orderflow.config is
    used. Stores are created once per process and reused across tasks.
    """
    if config is None:
        store = get_store()
    else:
        key = json.dumps(config, sort_keys=True)
        store = _stores.get(key)
        if store is None:
            store = _stores[key] = config_to_store(config)

    run_async(store.connect())
    return store


async def close_stores() -> None:
    """Disconnect every store built from a task's store_config."""
    stores = list(_stores.values())
    _stores.clear()
    for store in stores:
        try:
            await store.disconnect()
        except Exception as e:
            logger.warning(f"Failed to disconnect {store.__class__.__name__}", error=str(e))
