"""Tests for the in-memory confirmation queue."""

import asyncio

import pytest

from orderflow.core.exceptions import UnavailableError
from orderflow.queue.memory import InMemoryConfirmationQueue
from orderflow.storage.schemas import ConfirmationTask


def make_task(order_id="ord_1"):
    return ConfirmationTask(owner_id="U1", order_id=order_id)


def make_queue(**kwargs):
    kwargs.setdefault("poll_interval", 0.01)
    return InMemoryConfirmationQueue(**kwargs)


class TestEnqueueDequeue:
    """Tests for basic delivery."""

    @pytest.mark.asyncio
    async def test_fifo_delivery(self):
        """Test tasks are delivered in enqueue order."""
        queue = make_queue()
        tasks = [make_task(f"ord_{i}") for i in range(3)]
        for task in tasks:
            await queue.enqueue(task)

        delivered = [(await queue.dequeue(timeout=0.1)).task for _ in range(3)]

        assert delivered == tasks

    @pytest.mark.asyncio
    async def test_delivery_carries_attempt_and_receipt(self):
        queue = make_queue()
        await queue.enqueue(make_task())

        delivery = await queue.dequeue(timeout=0.1)

        assert delivery.attempt == 1
        assert delivery.receipt

    @pytest.mark.asyncio
    async def test_dequeue_times_out_on_empty_queue(self):
        queue = make_queue()

        assert await queue.dequeue(timeout=0.05) is None

    @pytest.mark.asyncio
    async def test_dequeue_returns_none_when_cancelled(self):
        """Test a set cancel event stops a blocked dequeue."""
        queue = make_queue()
        cancel = asyncio.Event()

        waiter = asyncio.create_task(queue.dequeue(cancel=cancel))
        await asyncio.sleep(0.02)
        cancel.set()

        assert await asyncio.wait_for(waiter, timeout=1) is None

    @pytest.mark.asyncio
    async def test_blocked_dequeue_wakes_on_enqueue(self):
        queue = make_queue()

        waiter = asyncio.create_task(queue.dequeue(timeout=2))
        await asyncio.sleep(0.02)
        await queue.enqueue(make_task())

        delivery = await asyncio.wait_for(waiter, timeout=1)
        assert delivery.task.order_id == "ord_1"

    @pytest.mark.asyncio
    async def test_same_task_enqueued_twice_kept_once(self):
        queue = make_queue()
        task = make_task()

        await queue.enqueue(task)
        await queue.enqueue(task)

        assert len(queue) == 1

    @pytest.mark.asyncio
    async def test_full_queue_raises_unavailable(self):
        """Test enqueue returns promptly with UnavailableError when full."""
        queue = make_queue(max_size=1)
        await queue.enqueue(make_task("ord_1"))

        with pytest.raises(UnavailableError) as exc_info:
            await queue.enqueue(make_task("ord_2"))

        assert exc_info.value.retry_after is not None


class TestAckNack:
    """Tests for acknowledgement and redelivery."""

    @pytest.mark.asyncio
    async def test_ack_removes_task(self):
        queue = make_queue()
        await queue.enqueue(make_task())
        delivery = await queue.dequeue(timeout=0.1)

        assert await queue.ack(delivery) is True
        assert len(queue) == 0
        assert await queue.dequeue(timeout=0.05) is None

    @pytest.mark.asyncio
    async def test_unacked_task_hidden_until_visibility_timeout(self):
        """Test an in-flight task is invisible, then redelivered."""
        queue = make_queue(visibility_timeout=0.05)
        await queue.enqueue(make_task())

        first = await queue.dequeue(timeout=0.1)
        assert queue.in_flight() == 1
        assert await queue.dequeue(timeout=0.01) is None

        second = await queue.dequeue(timeout=0.5)

        assert second.task == first.task
        assert second.attempt == 2
        assert second.receipt != first.receipt

    @pytest.mark.asyncio
    async def test_nack_redelivers_after_delay(self):
        queue = make_queue(visibility_timeout=10)
        await queue.enqueue(make_task())
        first = await queue.dequeue(timeout=0.1)

        assert await queue.nack(first, delay=0) is True
        second = await queue.dequeue(timeout=0.5)

        assert second.task == first.task
        assert second.attempt == 2

    @pytest.mark.asyncio
    async def test_stale_receipt_ack_is_rejected(self):
        """Test an ack from an expired delivery does not remove the redelivered task."""
        queue = make_queue(visibility_timeout=0.02)
        await queue.enqueue(make_task())
        first = await queue.dequeue(timeout=0.1)
        second = await queue.dequeue(timeout=0.5)

        assert await queue.ack(first) is False
        assert len(queue) == 1
        assert await queue.ack(second) is True

    @pytest.mark.asyncio
    async def test_ack_after_ack_is_rejected(self):
        queue = make_queue()
        await queue.enqueue(make_task())
        delivery = await queue.dequeue(timeout=0.1)
        await queue.ack(delivery)

        assert await queue.ack(delivery) is False
        assert await queue.nack(delivery) is False

    @pytest.mark.asyncio
    async def test_dead_letter_after_max_deliveries(self):
        """Test a task delivered max_deliveries times is moved aside."""
        queue = make_queue(max_deliveries=2)
        task = make_task()
        await queue.enqueue(task)

        for _ in range(2):
            delivery = await queue.dequeue(timeout=0.1)
            await queue.nack(delivery, delay=0)

        assert await queue.dequeue(timeout=0.05) is None
        assert queue.dead_letters == [task]
        assert len(queue) == 0

    @pytest.mark.asyncio
    async def test_unlimited_deliveries_by_default(self):
        queue = make_queue()
        await queue.enqueue(make_task())

        for attempt in range(1, 6):
            delivery = await queue.dequeue(timeout=0.1)
            assert delivery.attempt == attempt
            await queue.nack(delivery, delay=0)

        assert queue.dead_letters == []
