"""
Celery application for distributed order confirmation.

Celery is the cross-host confirmation queue: the broker holds tasks until a
worker acknowledges them. Tasks are acknowledged late (after they run) and
rejected back to the broker when a worker process dies, which gives the
at-least-once delivery the confirmation worker is built for.

Broker and result backend come from, in order: explicit arguments,
orderflow.configure()/orderflow.config.yaml, then the
ORDERFLOW_CELERY_BROKER / ORDERFLOW_CELERY_RESULT_BACKEND environment
variables.

Start a worker with:
    celery -A orderflow.celery.app worker -Q orderflow.confirmations
"""

import os

from celery import Celery
from celery.signals import worker_process_init, worker_shutdown
from kombu import Queue
from loguru import logger

from orderflow.config import close_handles, get_config, get_store
from orderflow.observability.logging import configure_logging_from_env

CONFIRMATION_QUEUE = "orderflow.confirmations"
DEFAULT_BROKER = "redis://localhost:6379/0"
DEFAULT_RESULT_BACKEND = "redis://localhost:6379/1"


def create_celery_app(
    broker_url: str | None = None,
    result_backend: str | None = None,
) -> Celery:
    """
    Create and configure the orderflow Celery application.

    Args:
        broker_url: Broker URL (e.g. redis://localhost:6379/0)
        result_backend: Result backend URL

    Returns:
        Configured Celery app
    """
    config = get_config()
    broker = (
        broker_url
        or config.celery_broker
        or os.getenv("ORDERFLOW_CELERY_BROKER", DEFAULT_BROKER)
    )
    backend = (
        result_backend
        or config.celery_result_backend
        or os.getenv("ORDERFLOW_CELERY_RESULT_BACKEND", DEFAULT_RESULT_BACKEND)
    )

    app = Celery("orderflow", broker=broker, backend=backend, include=["orderflow.celery.tasks"])

    app.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        # At-least-once: ack after the task ran, requeue if the worker dies
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        task_default_queue=CONFIRMATION_QUEUE,
        task_queues=(Queue(CONFIRMATION_QUEUE, routing_key=CONFIRMATION_QUEUE),),
        task_routes={"orderflow.confirm_order": {"queue": CONFIRMATION_QUEUE}},
        broker_connection_retry_on_startup=True,
        result_expires=3600,
    )
    # Redis visibility timeout mirrors the in-memory queue's setting
    app.conf.broker_transport_options = {"visibility_timeout": config.visibility_timeout}

    return app


celery_app = create_celery_app()


@worker_process_init.connect
def _init_worker_process(**kwargs) -> None:
    """Set up logging, the persistent loop and the shared store in each worker process."""
    from orderflow.celery.loop import init_worker_loop, run_async

    configure_logging_from_env()
    init_worker_loop()
    run_async(get_store().connect())
    logger.info("orderflow worker process initialized")


@worker_shutdown.connect
def _shutdown_worker(**kwargs) -> None:
    """Disconnect every store, release the shared handles and stop the loop."""
    from orderflow.celery.loop import close_worker_loop, is_loop_running, run_async

    if is_loop_running():
        from orderflow.celery.tasks import close_stores

        run_async(close_stores())
        run_async(close_handles())
    close_worker_loop()
