"""
Logging for orderflow, built on loguru.

Every record emitted while an order or a confirmation task is being handled
carries that order's context (``owner_id``, ``order_id``, and for tasks
``task_id``, ``attempt`` and ``worker``). Console output appends the context
to the line; JSON output puts it under a ``context`` key.

Environment variables (read by ``configure_logging_from_env``):
    ORDERFLOW_LOG_LEVEL    DEBUG | INFO | WARNING | ERROR | CRITICAL
    ORDERFLOW_LOG_FORMAT   console | json
    ORDERFLOW_LOG_FILE     optional path, rotated at 100 MB
    ORDERFLOW_LOG_CONTEXT  true | false
"""

import json
import os
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Generator

from loguru import logger

CONTEXT_KEYS = ("owner_id", "order_id", "task_id", "attempt", "worker")

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>{extra[_context]}"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message} | {extra}"


@dataclass
class LogContext:
    """Order context fields that may be bound to a record."""

    owner_id: str | None = None
    order_id: str | None = None
    task_id: str | None = None
    attempt: int | None = None
    worker: str | None = None


def configure_logging(
    level: str = "INFO",
    log_file: str | None = None,
    json_logs: bool = False,
    show_context: bool = True,
) -> None:
    """
    Replace all loguru handlers with orderflow's.

    Args:
        level: Minimum level
        log_file: Also write to this file (rotated, compressed)
        json_logs: Emit one JSON object per line instead of colored text
        show_context: Include order/task context fields

    Examples:
        configure_logging(level="DEBUG")
        configure_logging(log_file="/var/log/orderflow.log", json_logs=True)
    """
    logger.remove()

    if json_logs:
        json_filter = _create_json_filter(show_context)
        logger.add(sys.stderr, format="{message}", level=level, colorize=False, filter=json_filter)
        if log_file:
            _ensure_parent(log_file)
            logger.add(
                log_file,
                format="{message}",
                level=level,
                rotation="100 MB",
                retention="30 days",
                compression="gz",
                filter=json_filter,
            )
    else:

        def add_context(record: dict[str, Any]) -> bool:
            record["extra"]["_context"] = _context_suffix(record["extra"]) if show_context else ""
            return True

        logger.add(
            sys.stderr,
            format=CONSOLE_FORMAT,
            level=level,
            colorize=True,
            filter=add_context,  # type: ignore[arg-type]
        )
        if log_file:
            _ensure_parent(log_file)
            logger.add(
                log_file,
                format=FILE_FORMAT,
                level=level,
                rotation="100 MB",
                retention="30 days",
                compression="gz",
            )

    logger.debug(f"orderflow logging configured at level {level}")


def _ensure_parent(log_file: str) -> None:
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)


def _context_suffix(extra: dict[str, Any]) -> str:
    parts = [f"{key}={extra[key]}" for key in CONTEXT_KEYS if key in extra]
    return " | " + " ".join(parts) if parts else ""


def _create_json_filter(show_context: bool) -> Any:
    def json_filter(record: dict[str, Any]) -> bool:
        record["message"] = _format_for_json(record, show_context)
        return True

    return json_filter


def _format_for_json(record: dict[str, Any], show_context: bool = True) -> str:
    """
    Render a record as one JSON line.

    Keys: timestamp, level, message, logger, function, line, plus
    ``context`` (order fields), ``extra`` (other bound values) and
    ``exception`` when present.
    """
    context: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in record["extra"].items():
        if key.startswith("_"):
            continue
        if key in CONTEXT_KEYS:
            context[key] = value
        else:
            extra[key] = _safe_serialize(value)

    line: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
    }
    if show_context and context:
        line["context"] = context
    if extra:
        line["extra"] = extra

    exc = record["exception"]
    if exc is not None:
        line["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
            "traceback": exc.traceback is not None,
        }

    return json.dumps(line, default=str)


def _safe_serialize(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_safe_serialize(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _safe_serialize(v) for k, v in value.items()}
    return str(value)


def configure_logging_from_env() -> None:
    """Configure logging from the ORDERFLOW_LOG_* environment variables."""
    configure_logging(
        level=os.getenv("ORDERFLOW_LOG_LEVEL", "INFO").upper(),
        log_file=os.getenv("ORDERFLOW_LOG_FILE"),
        json_logs=os.getenv("ORDERFLOW_LOG_FORMAT", "console").lower() == "json",
        show_context=os.getenv("ORDERFLOW_LOG_CONTEXT", "true").lower() in ("true", "1", "yes"),
    )


def get_logger(name: str | None = None) -> Any:
    """The orderflow logger, optionally bound to a module name."""
    return logger.bind(module=name) if name else logger


def bind_order_context(owner_id: str, order_id: str) -> Any:
    """
    Logger bound to one order.

    Example:
        log = bind_order_context("U1", "ord_123")
        log.info("Order created")
    """
    return logger.bind(owner_id=owner_id, order_id=order_id)


@contextmanager
def order_logging_context(owner_id: str, order_id: str) -> Generator[None, None, None]:
    """Attach an order's identity to every record logged inside the block."""
    with logger.contextualize(owner_id=owner_id, order_id=order_id):
        yield


@contextmanager
def task_logging_context(
    task_id: str,
    owner_id: str,
    order_id: str,
    attempt: int = 1,
    worker: str | None = None,
) -> Generator[None, None, None]:
    """
    Attach a confirmation task's identity to every record logged inside the block.

    Example:
        with task_logging_context("task_abc", "U1", "ord_123", attempt=2, worker="worker-0"):
            logger.info("Confirming order")
    """
    fields: dict[str, Any] = dict(
        task_id=task_id, owner_id=owner_id, order_id=order_id, attempt=attempt
    )
    if worker is not None:
        fields["worker"] = worker
    with logger.contextualize(**fields):
        yield


# Honor the environment on import unless the application already added handlers
if len(logger._core.handlers) <= 1:  # type: ignore[attr-defined]
    if os.getenv("ORDERFLOW_LOG_LEVEL") or os.getenv("ORDERFLOW_LOG_FORMAT"):
        configure_logging_from_env()
