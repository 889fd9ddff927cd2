"""Confirmation worker commands."""

from typing import Optional

import click

from orderflow.cli.output.formatters import (
    format_json,
    format_table,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from orderflow.config import get_config


@click.group(name="worker")
def worker() -> None:
    """Run and inspect confirmation workers."""
    pass


@worker.command(name="run")
@click.option(
    "--concurrency",
    "-c",
    type=int,
    default=None,
    help="Worker processes (default: Celery's own default)",
)
@click.option(
    "--loglevel",
    "-l",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default="info",
    help="Log level for the Celery worker (default: info)",
)
@click.option(
    "--hostname",
    "-n",
    default=None,
    help="Celery worker hostname (default: auto-generated)",
)
@click.pass_context
def run_worker(
    ctx: click.Context,
    concurrency: Optional[int],
    loglevel: str,
    hostname: Optional[str],
) -> None:
    """
    Start a Celery worker consuming the confirmation queue.

    Requires the Celery queue backend: an in-memory queue only holds tasks
    enqueued by its own process, so a standalone worker would never receive
    any. Use ``orderflow demo`` for an in-process run.

    Examples:

        orderflow --queue celery worker run --concurrency 4
    """
    if get_config().queue_backend != "celery":
        raise click.UsageError(
            "worker run needs the Celery queue backend (--queue celery or "
            "queue.backend: celery in orderflow.config.yaml)",
            ctx=ctx,
        )

    _run_celery_worker(ctx, concurrency, loglevel, hostname)


def _run_celery_worker(
    ctx: click.Context,
    concurrency: Optional[int],
    loglevel: str,
    hostname: Optional[str],
) -> None:
    from orderflow.celery.app import CONFIRMATION_QUEUE, create_celery_app

    app = create_celery_app()

    print_info("Starting Celery worker...")
    print_info(f"Broker: {app.conf.broker_url}")
    print_info(f"Queue: {CONFIRMATION_QUEUE}")

    worker_args = [
        "worker",
        f"--loglevel={loglevel.upper()}",
        f"--queues={CONFIRMATION_QUEUE}",
    ]
    if concurrency:
        worker_args.append(f"--concurrency={concurrency}")
    if hostname:
        worker_args.append(f"--hostname={hostname}")

    try:
        print_success("Worker starting...")
        app.worker_main(argv=worker_args)
    except KeyboardInterrupt:
        print_info("Worker stopped")
    except Exception as e:
        print_error(f"Worker failed: {e}")
        if ctx.obj.get("verbose"):
            raise
        raise click.Abort()


@worker.command(name="status")
@click.pass_context
def worker_status(ctx: click.Context) -> None:
    """
    Show active Celery confirmation workers.

    Examples:

        orderflow --queue celery worker status
    """
    output = ctx.obj.get("output", "table")

    if get_config().queue_backend != "celery":
        print_info("In-memory workers run inside their own process; nothing to inspect")
        return

    from orderflow.celery.app import create_celery_app

    try:
        inspect = create_celery_app().control.inspect()
        ping = inspect.ping()
        stats = inspect.stats() or {}
        active = inspect.active() or {}
    except Exception as e:
        print_error(f"Failed to get worker status: {e}")
        print_info("Make sure the broker is running and accessible")
        if ctx.obj.get("verbose"):
            raise
        raise click.Abort()

    if not ping:
        print_warning("No active workers found")
        print_info("Start a worker with: orderflow --queue celery worker run")
        return

    workers = [
        {
            "name": name,
            "status": "online" if name in ping else "offline",
            "concurrency": worker_stats.get("pool", {}).get("max-concurrency", "N/A"),
            "active_tasks": len(active.get(name, [])),
            "processed": worker_stats.get("total", {}).get("orderflow.confirm_order", 0),
        }
        for name, worker_stats in stats.items()
    ]

    if output == "json":
        format_json(workers)
    else:
        format_table(
            [
                {
                    "Worker": w["name"],
                    "Status": w["status"],
                    "Concurrency": w["concurrency"],
                    "Active Tasks": w["active_tasks"],
                    "Processed": w["processed"],
                }
                for w in workers
            ],
            ["Worker", "Status", "Concurrency", "Active Tasks", "Processed"],
            title="Celery Workers",
        )
