"""
Order lifecycle events delivered to notifier subscribers.

Events describe a state change that has already been committed to the order
store; publishing them never affects the authoritative order state.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Dict
import uuid

from orderflow.storage.schemas import Order


class EventType(Enum):
    """All order event types."""

    ORDER_CREATED = "order.created"
    ORDER_CONFIRMED = "order.confirmed"


@dataclass
class Event:
    """
    An order lifecycle event.

    ``replay`` is True when the event is re-published for a task that was
    already applied (idempotent replay with re-notification enabled).
    """

    owner_id: str = ""
    order_id: str = ""
    type: EventType = EventType.ORDER_CONFIRMED
    event_id: str = field(default_factory=lambda: f"evt_{uuid.uuid4().hex[:16]}")
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    data: Dict[str, Any] = field(default_factory=dict)
    replay: bool = False

    def __post_init__(self) -> None:
        """Validate event after initialization."""
        if not self.owner_id or not self.order_id:
            raise ValueError("Event must have an owner_id and order_id")
        if not isinstance(self.type, EventType):
            raise TypeError(f"Event type must be EventType enum, got {type(self.type)}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event_id": self.event_id,
            "type": self.type.value,
            "owner_id": self.owner_id,
            "order_id": self.order_id,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
            "replay": self.replay,
        }


# Event creation helpers

def create_order_created_event(order: Order) -> Event:
    """Create an order created event."""
    return Event(
        owner_id=order.owner_id,
        order_id=order.order_id,
        type=EventType.ORDER_CREATED,
        data={"status": order.status.value, "total": str(order.total)},
    )


def create_order_confirmed_event(order: Order, replay: bool = False) -> Event:
    """Create an order confirmed event."""
    return Event(
        owner_id=order.owner_id,
        order_id=order.order_id,
        type=EventType.ORDER_CONFIRMED,
        data={
            "status": order.status.value,
            "total": str(order.total),
            "confirmed_at": order.updated_at.isoformat(),
        },
        replay=replay,
    )
