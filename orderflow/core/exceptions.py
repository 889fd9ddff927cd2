"""
Exception classes for orderflow.

Every store, queue and intake operation either returns an explicit result or
raises one of these classified errors. Each class carries a stable ``code``
used by the API layer to map failures to wire responses.

Taxonomy:
- InvalidArgumentError: bad input, rejected synchronously, never retried
- NotFoundError: surfaced to the caller, never retried
- AlreadyExistsError: duplicate key on insert, never retried
- ConflictError: compare-and-set saw the target state already applied (benign)
- UnavailableError: transient backend failure, retried with bounded backoff
"""


class OrderflowError(Exception):
    """Base exception for all orderflow errors."""

    code: str = "Internal"
    retryable: bool = False


class InvalidArgumentError(OrderflowError):
    """Raised when a request fails validation."""

    code = "InvalidArgument"


class NotFoundError(OrderflowError):
    """
    Raised when an order does not exist.

    Attributes:
        owner_id: Owner of the missing order
        order_id: Identifier of the missing order
    """

    code = "NotFound"

    def __init__(self, owner_id: str, order_id: str) -> None:
        super().__init__(f"Order {order_id} not found for owner {owner_id}")
        self.owner_id = owner_id
        self.order_id = order_id


class AlreadyExistsError(OrderflowError):
    """Raised when inserting an order whose key is already present."""

    code = "AlreadyExists"

    def __init__(self, owner_id: str, order_id: str) -> None:
        super().__init__(f"Order {order_id} already exists for owner {owner_id}")
        self.owner_id = owner_id
        self.order_id = order_id


class ConflictError(OrderflowError):
    """
    Raised by a conditional update when the target status is already applied.

    Callers treat this as "already done": it is the idempotent replay signal,
    never a failure to report to an end user.

    Attributes:
        current_status: Status the record held when the update was attempted
    """

    code = "Conflict"

    def __init__(self, owner_id: str, order_id: str, current_status: str) -> None:
        super().__init__(
            f"Order {order_id} for owner {owner_id} is already {current_status}"
        )
        self.owner_id = owner_id
        self.order_id = order_id
        self.current_status = current_status


class UnavailableError(OrderflowError):
    """
    Transient backend failure (store or queue unreachable, pool exhausted).

    Attributes:
        retry_after: Optional hint in seconds before the next attempt
    """

    code = "Unavailable"
    retryable = True

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ConfigurationError(OrderflowError):
    """Raised when orderflow is misconfigured (unknown backend, bad option)."""

    code = "Configuration"


class WorkerStoppedError(OrderflowError):
    """Raised when work is submitted to a worker pool that has been stopped."""

    code = "Cancelled"
