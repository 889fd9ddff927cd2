"""Order management commands."""

from typing import List, Optional

import click

from orderflow.cli.output.formatters import (
    format_json,
    format_key_value,
    format_plain,
    format_table,
    print_error,
    print_info,
    print_success,
)
from orderflow.cli.utils.async_helpers import async_command
from orderflow.cli.utils.handles import open_intake
from orderflow.core.exceptions import OrderflowError
from orderflow.storage.schemas import Order, OrderStatus


@click.group(name="orders")
def orders() -> None:
    """Create, list and inspect orders."""
    pass


def _print_orders(orders_list: List[Order], output: str, title: str) -> None:
    if output == "json":
        format_json([o.to_dict() for o in orders_list])
    elif output == "plain":
        format_plain([o.order_id for o in orders_list])
    else:
        data = [
            {
                "Order ID": o.order_id,
                "Owner": o.owner_id,
                "Status": o.status.value,
                "Total": str(o.total),
                "Created": o.created_at,
            }
            for o in orders_list
        ]
        format_table(data, ["Order ID", "Owner", "Status", "Total", "Created"], title=title)


def _fail(ctx: click.Context, action: str, error: OrderflowError) -> None:
    print_error(f"{action}: [{error.code}] {error}")
    if ctx.obj.get("verbose"):
        raise error
    raise click.exceptions.Exit(1)


@orders.command(name="create")
@click.argument("owner_id")
@click.option("--total", default=None, help="Order total (default: 0)")
@click.pass_context
@async_command
async def create_order(ctx: click.Context, owner_id: str, total: Optional[str]) -> None:
    """
    Create a PENDING order and queue its confirmation.

    Examples:

        orderflow orders create U1 --total 199
    """
    output = ctx.obj["output"]

    async with open_intake() as intake:
        try:
            order = await intake.create_order(owner_id, total)
        except OrderflowError as e:
            _fail(ctx, "Failed to create order", e)
            return

    if output == "json":
        format_json(order.to_dict())
    elif output == "plain":
        format_plain([order.order_id])
    else:
        print_success(f"Order created: {order.order_id}")
        format_key_value(order.to_dict(), title="Order")


@orders.command(name="list")
@click.argument("owner_id")
@click.pass_context
@async_command
async def list_orders(ctx: click.Context, owner_id: str) -> None:
    """
    List an owner's orders.

    Examples:

        orderflow orders list U1

        orderflow --output json orders list U1
    """
    async with open_intake() as intake:
        try:
            orders_list = await intake.list_orders(owner_id)
        except OrderflowError as e:
            _fail(ctx, "Failed to list orders", e)
            return

    if not orders_list:
        print_info(f"No orders found for {owner_id}")
        return
    _print_orders(orders_list, ctx.obj["output"], title=f"Orders for {owner_id}")


@orders.command(name="get")
@click.argument("owner_id")
@click.argument("order_id")
@click.pass_context
@async_command
async def get_order(ctx: click.Context, owner_id: str, order_id: str) -> None:
    """
    Show one order.

    Examples:

        orderflow orders get U1 ord_1700000000000_0123456789abcdef
    """
    async with open_intake() as intake:
        try:
            order = await intake.get_order(owner_id, order_id)
        except OrderflowError as e:
            _fail(ctx, "Failed to get order", e)
            return

    output = ctx.obj["output"]
    if output == "json":
        format_json(order.to_dict())
    elif output == "plain":
        format_plain([order.status.value])
    else:
        format_key_value(order.to_dict(), title="Order")


@orders.command(name="by-status")
@click.argument(
    "status",
    type=click.Choice([s.value for s in OrderStatus], case_sensitive=False),
)
@click.pass_context
@async_command
async def orders_by_status(ctx: click.Context, status: str) -> None:
    """
    List orders currently in a status.

    Examples:

        orderflow orders by-status PENDING
    """
    async with open_intake() as intake:
        try:
            orders_list = await intake.list_by_status(status)
        except OrderflowError as e:
            _fail(ctx, "Failed to list orders", e)
            return

    if not orders_list:
        print_info(f"No {status.upper()} orders")
        return
    _print_orders(orders_list, ctx.obj["output"], title=f"{status.upper()} orders")
