"""
Unit tests for order and task schemas.
"""

import re
from datetime import UTC, datetime
from decimal import Decimal

import pytest

from orderflow.storage.schemas import (
    ALLOWED_TRANSITIONS,
    ConfirmationTask,
    Order,
    OrderStatus,
    generate_order_id,
)


class TestGenerateOrderId:
    """Test order id generation."""

    def test_format(self):
        """Test ids carry a 13-digit millisecond prefix and 16 hex chars."""
        order_id = generate_order_id()

        assert re.fullmatch(r"ord_\d{13}_[0-9a-f]{16}", order_id)

    def test_unique_across_many_calls(self):
        """Test ids do not repeat."""
        ids = {generate_order_id() for _ in range(10_000)}

        assert len(ids) == 10_000

    def test_roughly_sortable_by_creation_time(self):
        """Test the millisecond prefix never goes backwards."""
        first = generate_order_id()
        second = generate_order_id()

        assert first.split("_")[1] <= second.split("_")[1]


class TestOrder:
    """Test the Order dataclass."""

    def test_defaults(self):
        """Test a new order is PENDING with a zero total."""
        order = Order(owner_id="U1", order_id="ord_1")

        assert order.status == OrderStatus.PENDING
        assert order.total == Decimal("0")
        assert order.key == ("U1", "ord_1")

    def test_to_dict(self):
        """Test serialization uses string status, total and ISO timestamps."""
        ts = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
        order = Order(
            owner_id="U1",
            order_id="ord_1",
            total=Decimal("199.50"),
            created_at=ts,
            updated_at=ts,
        )

        data = order.to_dict()

        assert data == {
            "owner_id": "U1",
            "order_id": "ord_1",
            "status": "PENDING",
            "total": "199.50",
            "created_at": "2024-01-01T12:00:00+00:00",
            "updated_at": "2024-01-01T12:00:00+00:00",
        }

    def test_from_dict(self):
        """Test deserialization restores types."""
        order = Order.from_dict(
            {
                "owner_id": "U1",
                "order_id": "ord_1",
                "status": "CONFIRMED",
                "total": "5",
                "created_at": "2024-01-01T12:00:00+00:00",
                "updated_at": "2024-01-01T12:05:00+00:00",
            }
        )

        assert order.status == OrderStatus.CONFIRMED
        assert order.total == Decimal("5")
        assert order.updated_at == datetime(2024, 1, 1, 12, 5, tzinfo=UTC)

    def test_from_dict_rejects_unknown_status(self):
        """Test statuses outside PENDING/CONFIRMED are rejected."""
        with pytest.raises(ValueError):
            Order.from_dict(
                {
                    "owner_id": "U1",
                    "order_id": "ord_1",
                    "status": "SHIPPED",
                    "created_at": "2024-01-01T12:00:00+00:00",
                    "updated_at": "2024-01-01T12:00:00+00:00",
                }
            )


class TestConfirmationTask:
    """Test the ConfirmationTask dataclass."""

    def test_task_ids_are_unique(self):
        """Test each task gets its own id."""
        a = ConfirmationTask(owner_id="U1", order_id="ord_1")
        b = ConfirmationTask(owner_id="U1", order_id="ord_1")

        assert a.task_id != b.task_id
        assert a.task_id.startswith("task_")

    def test_from_dict_keeps_task_id(self):
        """Test a transported task keeps its identity."""
        task = ConfirmationTask(owner_id="U1", order_id="ord_1")

        restored = ConfirmationTask.from_dict(task.to_dict())

        assert restored == task

    def test_from_dict_requires_keys(self):
        """Test owner_id and order_id are mandatory."""
        with pytest.raises(KeyError):
            ConfirmationTask.from_dict({"owner_id": "U1"})


def test_only_pending_to_confirmed_allowed():
    """Test the transition table."""
    assert ALLOWED_TRANSITIONS == {(OrderStatus.PENDING, OrderStatus.CONFIRMED)}
