"""
Observability for orderflow.

Logging:
    - configure_logging(): Configure loguru-based logging
    - configure_logging_from_env(): Configure from environment variables
    - get_logger(): Get a logger instance
    - bind_order_context(): Bind order context to logger
    - order_logging_context(): Context manager for intake logging
    - task_logging_context(): Context manager for confirmation task logging
"""

from orderflow.observability.logging import (
    LogContext,
    bind_order_context,
    configure_logging,
    configure_logging_from_env,
    get_logger,
    order_logging_context,
    task_logging_context,
)

__all__ = [
    "configure_logging",
    "configure_logging_from_env",
    "get_logger",
    "bind_order_context",
    "order_logging_context",
    "task_logging_context",
    "LogContext",
]
