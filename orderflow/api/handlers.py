"""
Transport-neutral entry points for the intake.

Each handler takes a plain payload dict and returns a plain result dict, so
the same functions back the HTTP routes, the CLI and any other front end.
Classified errors come back as ``{"error": code, "message": text}``.

Example:
    >>> await handle_create_order({"owner_id": "U1", "total": 199})
    {'order_id': 'ord_...', 'status': 'PENDING'}
"""

from typing import Any, Dict, Optional

from loguru import logger

from orderflow.core.exceptions import (
    AlreadyExistsError,
    InvalidArgumentError,
    NotFoundError,
    UnavailableError,
)
from orderflow.engine.intake import OrderIntake

HANDLED_ERRORS = (InvalidArgumentError, NotFoundError, AlreadyExistsError, UnavailableError)


def error_body(error: Exception) -> Dict[str, str]:
    code = getattr(error, "code", "Internal")
    return {"error": code, "message": str(error)}


async def handle_create_order(
    payload: Dict[str, Any],
    intake: Optional[OrderIntake] = None,
) -> Dict[str, Any]:
    """
    Create an order from ``{owner_id, total}``.

    Returns:
        ``{order_id, status}`` or an error body
    """
    intake = intake or OrderIntake.from_config()
    if not isinstance(payload, dict):
        return error_body(InvalidArgumentError("payload must be an object"))

    try:
        order = await intake.create_order(payload.get("owner_id", ""), payload.get("total"))
    except HANDLED_ERRORS as e:
        logger.info(f"Create order rejected: {e.code}", error=str(e))
        return error_body(e)

    return {"order_id": order.order_id, "status": order.status.value}


async def handle_list_orders(
    payload: Dict[str, Any],
    intake: Optional[OrderIntake] = None,
) -> Dict[str, Any]:
    """
    List an owner's orders from ``{owner_id}``.

    Returns:
        ``{orders: [...]}`` or an error body
    """
    intake = intake or OrderIntake.from_config()
    if not isinstance(payload, dict):
        return error_body(InvalidArgumentError("payload must be an object"))

    try:
        orders = await intake.list_orders(payload.get("owner_id", ""))
    except HANDLED_ERRORS as e:
        return error_body(e)

    return {"orders": [order.to_dict() for order in orders]}
