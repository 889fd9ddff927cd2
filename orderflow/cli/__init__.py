"""orderflow CLI - Create orders and run confirmation workers."""

from typing import Optional

import click
from loguru import logger

from orderflow import __version__
from orderflow.cli.utils.handles import apply_backend_options
from orderflow.core.exceptions import ConfigurationError


@click.group()
@click.version_option(version=__version__, prog_name="orderflow")
@click.option(
    "--config",
    "config_path",
    envvar="ORDERFLOW_CONFIG",
    type=click.Path(dir_okay=False),
    help="Path to orderflow.config.yaml (default: ./orderflow.config.yaml)",
)
@click.option(
    "--store",
    type=click.Choice(["memory", "postgres"], case_sensitive=False),
    envvar="ORDERFLOW_STORE",
    help="Order store backend (default: memory)",
)
@click.option(
    "--dsn",
    envvar="ORDERFLOW_DATABASE_URL",
    help="PostgreSQL DSN for the postgres store",
)
@click.option(
    "--queue",
    "queue_backend",
    type=click.Choice(["memory", "celery"], case_sensitive=False),
    envvar="ORDERFLOW_QUEUE",
    help="Confirmation queue backend (default: memory)",
)
@click.option(
    "--output",
    type=click.Choice(["table", "json", "plain"], case_sensitive=False),
    default="table",
    help="Output format (default: table)",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose logging",
)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Optional[str],
    store: Optional[str],
    dsn: Optional[str],
    queue_backend: Optional[str],
    output: str,
    verbose: bool,
) -> None:
    """
    orderflow CLI - Order intake and confirmation.

    Orders are created PENDING, confirmed exactly once by workers consuming
    an at-least-once queue, and announced to subscribers.

    Examples:

        # Create an order
        orderflow --store postgres --dsn postgresql://localhost/orders orders create U1 --total 199

        # List an owner's orders
        orderflow orders list U1

        # Run confirmation workers
        orderflow --queue celery worker run

        # See the pipeline end to end in memory
        orderflow demo

    Configuration:

        - CLI flags (highest priority)
        - Environment variables (ORDERFLOW_STORE, ORDERFLOW_DATABASE_URL, ...)
        - Config file (orderflow.config.yaml)
    """
    if verbose:
        logger.enable("orderflow")
        logger.info("Verbose logging enabled")
    else:
        logger.disable("orderflow")

    try:
        apply_backend_options(config_path, store, dsn, queue_backend)
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e

    ctx.ensure_object(dict)
    ctx.obj["output"] = output
    ctx.obj["verbose"] = verbose


# Import and register commands
from orderflow.cli.commands.demo import demo
from orderflow.cli.commands.orders import orders
from orderflow.cli.commands.serve import serve
from orderflow.cli.commands.worker import worker

main.add_command(orders)
main.add_command(worker)
main.add_command(demo)
main.add_command(serve)


__all__ = ["main"]
