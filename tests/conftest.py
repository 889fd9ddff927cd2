"""Shared fixtures for orderflow tests."""

import pytest
from loguru import logger

import orderflow
from orderflow.notify.base import Notifier, RecordingSubscriber
from orderflow.queue.memory import InMemoryConfirmationQueue
from orderflow.storage.memory import InMemoryOrderStore


@pytest.fixture(autouse=True)
def reset_orderflow_config():
    """Give every test a fresh global configuration."""
    orderflow.reset_config()
    # The CLI disables orderflow logging unless --verbose
    logger.enable("orderflow")
    yield
    orderflow.reset_config()
    logger.enable("orderflow")


@pytest.fixture
def store():
    return InMemoryOrderStore()


@pytest.fixture
def queue():
    return InMemoryConfirmationQueue(visibility_timeout=5.0, redelivery_delay=0.0, poll_interval=0.01)


@pytest.fixture
def recorder():
    return RecordingSubscriber()


@pytest.fixture
def notifier(recorder):
    notifier = Notifier(max_retries=2, retry_delay=0)
    notifier.subscribe(recorder)
    return notifier


@pytest.fixture
def log_messages():
    """Capture loguru records as dicts for the duration of a test."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)
