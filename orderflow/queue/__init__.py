"""
Confirmation queues for orderflow.

The Celery publisher is imported lazily so Celery is only loaded when used.
"""

from orderflow.queue.base import ConfirmationQueue, Delivery, TaskPublisher
from orderflow.queue.memory import InMemoryConfirmationQueue

__all__ = [
    "TaskPublisher",
    "ConfirmationQueue",
    "Delivery",
    "InMemoryConfirmationQueue",
]
