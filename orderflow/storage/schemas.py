"""
Data models for orders and confirmation tasks.

These schemas define the structure of data stored in order stores and
carried through confirmation queues.
"""

import os
import time
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class OrderStatus(Enum):
    """Order lifecycle status. The only valid transition is PENDING -> CONFIRMED."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"


# (from, to) pairs accepted by OrderStore.update_status
ALLOWED_TRANSITIONS: frozenset[tuple[OrderStatus, OrderStatus]] = frozenset(
    {(OrderStatus.PENDING, OrderStatus.CONFIRMED)}
)


def generate_order_id() -> str:
    """
    Generate a fresh order identifier.

    Format: ``ord_<13-digit epoch millis>_<16 hex chars>``. The millisecond
    prefix keeps ids roughly ordered by creation time; the 64 random bits make
    collisions between concurrent callers negligible. The store's ``put``
    rejecting duplicates is the final guard.
    """
    millis = time.time_ns() // 1_000_000
    return f"ord_{millis:013d}_{os.urandom(8).hex()}"


@dataclass
class Order:
    """
    An order record.

    ``owner_id``, ``order_id``, ``total`` and ``created_at`` are written once by
    the intake; ``status`` and ``updated_at`` are written only by the
    confirmation worker.
    """

    owner_id: str
    order_id: str
    status: OrderStatus = OrderStatus.PENDING
    total: Decimal = Decimal("0")
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def key(self) -> tuple[str, str]:
        """Compound primary key."""
        return (self.owner_id, self.order_id)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "owner_id": self.owner_id,
            "order_id": self.order_id,
            "status": self.status.value,
            "total": str(self.total),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Order":
        """Create from dictionary."""
        return cls(
            owner_id=data["owner_id"],
            order_id=data["order_id"],
            status=OrderStatus(data["status"]),
            total=Decimal(str(data.get("total", "0"))),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


@dataclass
class ConfirmationTask:
    """
    Unit of work handed from the intake to the confirmation worker.

    ``task_id`` is unique per enqueue; a redelivered task keeps its id.
    """

    owner_id: str
    order_id: str
    task_id: str = field(default_factory=lambda: f"task_{uuid.uuid4().hex[:16]}")
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "owner_id": self.owner_id,
            "order_id": self.order_id,
            "task_id": self.task_id,
            "enqueued_at": self.enqueued_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConfirmationTask":
        """Create from dictionary."""
        kwargs: dict[str, Any] = {
            "owner_id": data["owner_id"],
            "order_id": data["order_id"],
        }
        if data.get("task_id"):
            kwargs["task_id"] = data["task_id"]
        if data.get("enqueued_at"):
            kwargs["enqueued_at"] = datetime.fromisoformat(data["enqueued_at"])
        return cls(**kwargs)
