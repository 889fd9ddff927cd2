"""
Order Pipeline with In-Memory Backends

Store, queue and workers all live in this process.
- Data lost when process exits
- Good for testing and local development
- Demonstrates: PENDING -> CONFIRMED, duplicate deliveries, events

Run: python examples/local/example_memory.py 2>/dev/null
"""

import asyncio

from orderflow import (
    ConfirmationTask,
    InMemoryConfirmationQueue,
    InMemoryOrderStore,
    Notifier,
    OrderIntake,
    OrderStatus,
    RecordingSubscriber,
    WorkerPool,
)


async def main():
    store = InMemoryOrderStore()
    queue = InMemoryConfirmationQueue(visibility_timeout=5.0)
    notifier = Notifier()
    recorder = RecordingSubscriber()
    notifier.subscribe(recorder, name="recorder")

    intake = OrderIntake(store, queue, notifier)

    # Create a few orders
    orders = [await intake.create_order("U1", total=total) for total in (199, "25.50", None)]
    for order in orders:
        print(f"Created {order.order_id}: {order.status.value} total={order.total}")

    # Deliver the first task twice more; it must confirm only once
    for _ in range(2):
        await queue.enqueue(ConfirmationTask(owner_id="U1", order_id=orders[0].order_id))

    async with WorkerPool(store, queue, notifier, concurrency=2, poll_timeout=0.05) as pool:
        while len(queue):
            await asyncio.sleep(0.05)

    print(f"\nWorker stats: {pool.stats.to_dict()}")

    for order in await intake.list_orders("U1"):
        print(f"{order.order_id}: {order.status.value}")

    pending = await intake.list_by_status(OrderStatus.PENDING)
    print(f"Still pending: {len(pending)}")

    print("\nEvents:")
    for event in recorder.events:
        print(f"  {event.type.value:<16} {event.order_id}")


if __name__ == "__main__":
    asyncio.run(main())
