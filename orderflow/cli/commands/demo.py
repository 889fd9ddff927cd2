"""End-to-end demo on in-memory backends."""

import asyncio

import click

from orderflow.cli.output.formatters import (
    format_json,
    format_key_value,
    format_panel,
    format_table,
    print_info,
    print_success,
)
from orderflow.engine.intake import OrderIntake
from orderflow.engine.worker import WorkerPool
from orderflow.notify.base import Notifier, RecordingSubscriber
from orderflow.queue.memory import InMemoryConfirmationQueue
from orderflow.storage.memory import InMemoryOrderStore
from orderflow.storage.schemas import ConfirmationTask


async def run_demo(
    owner_id: str,
    total: str,
    duplicates: int,
    concurrency: int,
    renotify: bool,
) -> dict:
    """
    Create one order, deliver its confirmation ``1 + duplicates`` times and
    return what happened.
    """
    store = InMemoryOrderStore()
    queue = InMemoryConfirmationQueue(visibility_timeout=5.0, redelivery_delay=0.05)
    notifier = Notifier(retry_delay=0.01)
    recorder = RecordingSubscriber()
    notifier.subscribe(recorder)

    intake = OrderIntake(store, queue)
    order = await intake.create_order(owner_id, total)
    created = await store.get(owner_id, order.order_id)

    # Redeliveries of the same confirmation, as an at-least-once queue may produce
    for _ in range(duplicates):
        await queue.enqueue(ConfirmationTask(owner_id=owner_id, order_id=order.order_id))

    pool = WorkerPool(
        store,
        queue,
        notifier,
        concurrency=concurrency,
        renotify_on_replay=renotify,
        poll_timeout=0.05,
    )
    await pool.start()
    while len(queue):
        await asyncio.sleep(0.01)
    stats = await pool.stop(timeout=5.0)

    confirmed = await store.get(owner_id, order.order_id)
    return {
        "created": created,
        "confirmed": confirmed,
        "stats": stats,
        "events": recorder.events,
    }


@click.command(name="demo")
@click.option("--owner", "owner_id", default="U1", help="Owner id (default: U1)")
@click.option("--total", default="199", help="Order total (default: 199)")
@click.option(
    "--duplicates",
    type=int,
    default=2,
    help="Extra deliveries of the confirmation task (default: 2)",
)
@click.option("--concurrency", "-c", type=int, default=2, help="Workers (default: 2)")
@click.option("--renotify", is_flag=True, help="Re-publish the event on replayed deliveries")
@click.pass_context
def demo(
    ctx: click.Context,
    owner_id: str,
    total: str,
    duplicates: int,
    concurrency: int,
    renotify: bool,
) -> None:
    """
    Run the pipeline end to end in memory.

    Creates an order, delivers its confirmation task several times to
    several workers, and shows that the order is confirmed exactly once.

    Examples:

        orderflow demo

        orderflow demo --owner U7 --total 42.50 --duplicates 5 --renotify
    """
    result = asyncio.run(run_demo(owner_id, total, duplicates, concurrency, renotify))
    stats = result["stats"]

    if ctx.obj.get("output") == "json":
        format_json(
            {
                "created": result["created"].to_dict(),
                "confirmed": result["confirmed"].to_dict(),
                "stats": stats.to_dict(),
                "events": [e.to_dict() for e in result["events"]],
            }
        )
        return

    format_panel(
        f"Order [bold]{result['created'].order_id}[/bold] for {owner_id}, "
        f"{1 + duplicates} deliveries, {concurrency} worker(s)",
        title="orderflow demo",
    )
    print_info(f"Created with status {result['created'].status.value}")
    format_table(
        [
            {"Outcome": "confirmed", "Count": stats.confirmed},
            {"Outcome": "replayed", "Count": stats.replayed},
            {"Outcome": "dropped", "Count": stats.dropped},
            {"Outcome": "retry", "Count": stats.retried},
        ],
        ["Outcome", "Count"],
        title="Deliveries",
    )
    format_key_value(result["confirmed"].to_dict(), title="Final order")
    print_success(f"{len(result['events'])} event(s) published")
