"""Helpers for running async click commands."""

import asyncio
import functools
from collections.abc import Callable, Coroutine
from typing import Any


def async_command(func: Callable[..., Coroutine[Any, Any, Any]]) -> Callable[..., Any]:
    """
    Run an async click command with asyncio.run().

    Place it below the click decorators:

        @orders.command(name="list")
        @click.pass_context
        @async_command
        async def list_orders(ctx): ...
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return asyncio.run(func(*args, **kwargs))

    return wrapper
