"""
Notification fan-out for order events.
"""

from orderflow.notify.base import Notifier, PublishResult, RecordingSubscriber, Subscriber
from orderflow.notify.webhook import WebhookSubscriber

__all__ = [
    "Notifier",
    "PublishResult",
    "RecordingSubscriber",
    "Subscriber",
    "WebhookSubscriber",
]
