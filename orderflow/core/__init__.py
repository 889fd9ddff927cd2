"""
Core error taxonomy and retry policy.
"""

from orderflow.core.exceptions import (
    AlreadyExistsError,
    ConfigurationError,
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    OrderflowError,
    UnavailableError,
    WorkerStoppedError,
)
from orderflow.core.retry import get_retry_delay, with_retries

__all__ = [
    "OrderflowError",
    "InvalidArgumentError",
    "NotFoundError",
    "AlreadyExistsError",
    "ConflictError",
    "UnavailableError",
    "ConfigurationError",
    "WorkerStoppedError",
    "with_retries",
    "get_retry_delay",
]
