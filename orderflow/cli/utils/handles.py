"""Backend selection and handle lifecycle for CLI commands."""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from loguru import logger

from orderflow.config import close_handles, configure, get_store, load_config_file
from orderflow.engine.intake import OrderIntake


def apply_backend_options(
    config_path: Optional[str] = None,
    store_type: Optional[str] = None,
    dsn: Optional[str] = None,
    queue_backend: Optional[str] = None,
) -> None:
    """
    Configure orderflow from CLI options.

    Configuration priority:
    1. CLI flags (store_type, dsn, queue_backend)
    2. Environment variables (handled by Click)
    3. Config file (--config, or ./orderflow.config.yaml)
    4. Defaults (in-memory store and queue)
    """
    if config_path:
        load_config_file(config_path)

    overrides: Dict[str, Any] = {}
    if dsn and store_type in (None, "postgres"):
        overrides["store_config"] = {"type": "postgres", "dsn": dsn}
    elif store_type:
        overrides["store_config"] = {"type": store_type}
    if queue_backend:
        overrides["queue_backend"] = queue_backend

    if overrides:
        logger.debug(f"CLI backend overrides: {overrides}")
        configure(**overrides)


@asynccontextmanager
async def open_intake() -> AsyncIterator[OrderIntake]:
    """Connect the shared store, yield an intake on it, then close the handles."""
    await get_store().connect()
    try:
        yield OrderIntake.from_config()
    finally:
        await close_handles()
