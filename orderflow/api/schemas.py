"""Request and response schemas for the orders API."""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel

from orderflow.storage.schemas import Order


class CreateOrderRequest(BaseModel):
    """Request body for creating an order."""

    owner_id: str
    # Validated by the intake so every bad value maps to InvalidArgument
    total: Optional[Any] = None


class CreateOrderResponse(BaseModel):
    """Response for a created order."""

    order_id: str
    status: str


class OrderResponse(BaseModel):
    """Response model for an order."""

    owner_id: str
    order_id: str
    status: str
    total: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            owner_id=order.owner_id,
            order_id=order.order_id,
            status=order.status.value,
            total=str(order.total),
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderListResponse(BaseModel):
    """Response model for listing orders."""

    items: List[OrderResponse]
    count: int


class ErrorResponse(BaseModel):
    """Error body returned for every classified failure."""

    error: str
    message: str


class HealthResponse(BaseModel):
    status: str
    store: bool
