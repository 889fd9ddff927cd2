"""
Fan-out notifier for order events.

Delivery is best-effort and at-least-once per subscriber: each subscriber is
retried with backoff when it raises, and a subscriber that still fails is
reported in the PublishResult and logged. Publishing never raises, so a
notification failure can never undo the state change it describes.
"""

import asyncio
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from orderflow.core.retry import RetryDelay, get_retry_delay
from orderflow.engine.events import Event

Subscriber = Callable[[Event], Awaitable[Any]]


@dataclass
class PublishResult:
    """Outcome of one publish call."""

    event_id: str
    delivered: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)  # name -> last error

    @property
    def ok(self) -> bool:
        return not self.failed


class Notifier:
    """
    Delivers events to every registered subscriber concurrently.

    Example:
        >>> notifier = Notifier()
        >>> notifier.subscribe(send_email, name="email")
        >>> result = await notifier.publish(event)
        >>> result.delivered
        ['email']
    """

    def __init__(
        self,
        max_retries: int = 2,
        retry_delay: RetryDelay = "exponential",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the notifier.

        Args:
            max_retries: Retries per subscriber after the first attempt
            retry_delay: Backoff strategy between attempts (see core.retry)
            sleep: Sleep function (injectable for tests)
        """
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep
        self._subscribers: dict[str, Subscriber] = {}
        self._lock = threading.Lock()

    def subscribe(self, subscriber: Subscriber, name: str | None = None) -> str:
        """
        Register a subscriber.

        Args:
            subscriber: Async callable receiving each event
            name: Unique name (defaults to the callable's name)

        Returns:
            The name the subscriber was registered under
        """
        sub_name = name or getattr(subscriber, "name", None) or getattr(
            subscriber, "__name__", type(subscriber).__name__
        )
        with self._lock:
            if sub_name in self._subscribers:
                raise ValueError(f"Subscriber '{sub_name}' already registered")
            self._subscribers[sub_name] = subscriber
        return sub_name

    def unsubscribe(self, name: str) -> bool:
        """Remove a subscriber. Returns False if it was not registered."""
        with self._lock:
            return self._subscribers.pop(name, None) is not None

    @property
    def subscribers(self) -> list[str]:
        with self._lock:
            return list(self._subscribers)

    async def publish(self, event: Event) -> PublishResult:
        """
        Deliver an event to all subscribers.

        Args:
            event: Event to deliver

        Returns:
            PublishResult listing delivered and failed subscribers
        """
        with self._lock:
            targets = list(self._subscribers.items())

        result = PublishResult(event_id=event.event_id)
        if not targets:
            return result

        outcomes = await asyncio.gather(
            *(self._deliver(name, subscriber, event) for name, subscriber in targets)
        )

        for (name, _), error in zip(targets, outcomes):
            if error is None:
                result.delivered.append(name)
            else:
                result.failed[name] = error

        if result.failed:
            logger.warning(
                f"Event {event.type.value} not delivered to {len(result.failed)} subscriber(s)",
                event_id=event.event_id,
                order_id=event.order_id,
                failed=list(result.failed),
            )
        return result

    async def _deliver(self, name: str, subscriber: Subscriber, event: Event) -> str | None:
        """Deliver to one subscriber with retries. Returns the last error, or None."""
        last_error = ""
        for attempt in range(self.max_retries + 1):
            try:
                await subscriber(event)
                return None
            except Exception as e:
                last_error = f"{type(e).__name__}: {e}"
                if attempt < self.max_retries:
                    delay = get_retry_delay(self.retry_delay, attempt)
                    logger.debug(
                        f"Subscriber {name} failed (attempt {attempt + 1}), retrying in {delay}s",
                        error=last_error,
                    )
                    await self._sleep(delay)

        logger.error(
            f"Subscriber {name} failed after {self.max_retries + 1} attempts",
            event_id=event.event_id,
            error=last_error,
        )
        return last_error


class RecordingSubscriber:
    """Subscriber that keeps every event it receives, for tests and the CLI demo."""

    name = "recorder"

    def __init__(self) -> None:
        self.events: list[Event] = []

    async def __call__(self, event: Event) -> None:
        self.events.append(event)

    def for_order(self, order_id: str) -> list[Event]:
        return [e for e in self.events if e.order_id == order_id]
