"""Order endpoints."""

from fastapi import APIRouter, Depends, Query, Request

from orderflow.api.schemas import (
    CreateOrderRequest,
    CreateOrderResponse,
    HealthResponse,
    OrderListResponse,
    OrderResponse,
)
from orderflow.engine.intake import OrderIntake

router = APIRouter()


def get_intake(request: Request) -> OrderIntake:
    """Get the app's intake, building one on the shared handles if needed."""
    intake = getattr(request.app.state, "intake", None)
    if intake is None:
        intake = request.app.state.intake = OrderIntake.from_config()
    return intake


@router.post("/api/v1/orders", response_model=CreateOrderResponse, status_code=201)
async def create_order(
    body: CreateOrderRequest,
    intake: OrderIntake = Depends(get_intake),
) -> CreateOrderResponse:
    """Create a PENDING order and queue its confirmation.

    Raises:
        InvalidArgumentError: 400 for a bad owner_id or total.
        UnavailableError: 503 when the store or queue is unavailable.
    """
    order = await intake.create_order(body.owner_id, body.total)
    return CreateOrderResponse(order_id=order.order_id, status=order.status.value)


@router.get("/api/v1/orders", response_model=OrderListResponse)
async def list_orders(
    owner_id: str = Query(..., description="Owner whose orders to list"),
    intake: OrderIntake = Depends(get_intake),
) -> OrderListResponse:
    """List every order belonging to an owner."""
    orders = await intake.list_orders(owner_id)
    items = [OrderResponse.from_order(o) for o in orders]
    return OrderListResponse(items=items, count=len(items))


# Registered before /{owner_id}/{order_id}, which would otherwise match it
@router.get("/api/v1/orders/by-status/{status}", response_model=OrderListResponse)
async def list_orders_by_status(
    status: str,
    intake: OrderIntake = Depends(get_intake),
) -> OrderListResponse:
    """List orders currently in a status (PENDING or CONFIRMED)."""
    orders = await intake.list_by_status(status)
    items = [OrderResponse.from_order(o) for o in orders]
    return OrderListResponse(items=items, count=len(items))


@router.get("/api/v1/orders/{owner_id}/{order_id}", response_model=OrderResponse)
async def get_order(
    owner_id: str,
    order_id: str,
    intake: OrderIntake = Depends(get_intake),
) -> OrderResponse:
    """Get one order.

    Raises:
        NotFoundError: 404 if the order does not exist.
    """
    order = await intake.get_order(owner_id, order_id)
    return OrderResponse.from_order(order)


@router.get("/health", response_model=HealthResponse)
async def health(intake: OrderIntake = Depends(get_intake)) -> HealthResponse:
    """Report whether the order store is reachable."""
    healthy = await intake.store.health_check()
    return HealthResponse(status="ok" if healthy else "degraded", store=healthy)
