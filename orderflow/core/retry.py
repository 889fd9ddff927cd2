"""
Bounded retry with backoff for store and queue boundaries.

Only UnavailableError is retried. Every other error propagates on the first
attempt; once retries are exhausted the last UnavailableError is re-raised
so the caller sees a classified failure.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, List, TypeVar, Union

from loguru import logger

from orderflow.core.exceptions import UnavailableError

T = TypeVar("T")

RetryDelay = Union[str, int, float, List[float]]

MAX_BACKOFF_SECONDS = 300


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    name: str,
    max_retries: int = 3,
    retry_delay: RetryDelay = "exponential",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run an async operation, retrying transient failures.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt
        name: Operation name for logging
        max_retries: Retries after the first attempt (total attempts = max_retries + 1)
        retry_delay: Delay strategy:
            - "exponential": 1s, 2s, 4s, 8s, ... (capped at 300s)
            - int/float: fixed delay in seconds
            - list: custom delay per retry, last value repeats
        sleep: Sleep function (injectable for tests)

    Returns:
        Result of the operation

    Raises:
        UnavailableError: If every attempt failed transiently
        Exception: Any non-transient error, immediately
    """
    last_error: UnavailableError | None = None

    for attempt in range(max_retries + 1):
        try:
            return await operation()

        except UnavailableError as e:
            last_error = e

            if attempt < max_retries:
                delay = e.retry_after if e.retry_after is not None else get_retry_delay(
                    retry_delay, attempt
                )

                logger.warning(
                    f"{name} unavailable (attempt {attempt + 1}/{max_retries + 1}), "
                    f"retrying in {delay}s",
                    error=str(e),
                )

                await sleep(delay)
            else:
                logger.error(
                    f"{name} unavailable after {max_retries + 1} attempts",
                    error=str(e),
                )

    assert last_error is not None
    raise last_error


def get_retry_delay(retry_delay: RetryDelay, attempt: int) -> float:
    """
    Calculate retry delay based on strategy.

    Args:
        retry_delay: Delay strategy ("exponential", number, or list)
        attempt: Current attempt number (0-indexed)

    Returns:
        Delay in seconds
    """
    if retry_delay == "exponential":
        return min(2**attempt, MAX_BACKOFF_SECONDS)
    elif isinstance(retry_delay, (int, float)):
        return retry_delay
    elif isinstance(retry_delay, list):
        if attempt < len(retry_delay):
            return retry_delay[attempt]
        return retry_delay[-1] if retry_delay else 1
    else:
        return 1
