"""Order API endpoints.

Domain errors raised by the service propagate to the application-level
handler, which renders them as ``{"detail": {"code", "message"}}``.
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from vendorhub.api.deps import CurrentActor, OrderServiceDep
from vendorhub.schemas.order import (
    OrderCreate,
    OrderCreateResponse,
    OrderListResponse,
    OrderRefundRequest,
    OrderResponse,
    OrderStatusUpdate,
)

router = APIRouter()


@router.post("", response_model=OrderCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    service: OrderServiceDep,
    actor_id: CurrentActor,
):
    """Place a cart; one order is created per supplier."""
    order_ids = await service.create_order(actor_id, [item.to_item() for item in order_data.items])
    return OrderCreateResponse(order_ids=order_ids)


@router.get("", response_model=OrderListResponse)
async def get_my_orders(
    service: OrderServiceDep,
    actor_id: CurrentActor,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
):
    """Get orders placed by the current user."""
    orders, total = await service.get_buyer_orders(actor_id, skip=skip, limit=limit)
    return OrderListResponse(orders=orders, total=total)


@router.get("/supplier", response_model=OrderListResponse)
async def get_supplier_orders(
    service: OrderServiceDep,
    actor_id: CurrentActor,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
):
    """Get orders received by the current user as supplier."""
    orders, total = await service.get_supplier_orders(actor_id, skip=skip, limit=limit)
    return OrderListResponse(orders=orders, total=total)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    service: OrderServiceDep,
    actor_id: CurrentActor,
):
    """Get an order visible to its buyer or supplier."""
    order = await service.get_order(order_id)
    if order is None or actor_id not in (order.buyer_id, order.supplier_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "NOT_FOUND", "message": f"Order {order_id} not found"},
        )
    return order


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: UUID,
    service: OrderServiceDep,
    actor_id: CurrentActor,
):
    """Cancel a pending order (buyer only)."""
    return await service.cancel_order(order_id, actor_id)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: UUID,
    update: OrderStatusUpdate,
    service: OrderServiceDep,
    actor_id: CurrentActor,
):
    """Advance an order's fulfilment status (supplier only)."""
    return await service.update_order_status(order_id, actor_id, update.status)


@router.post("/{order_id}/pay", response_model=OrderResponse)
async def pay_order(
    order_id: UUID,
    service: OrderServiceDep,
    actor_id: CurrentActor,
):
    """Pay for an order by holding its total in escrow (buyer only)."""
    return await service.process_order_payment(order_id, actor_id)


@router.post("/{order_id}/confirm-delivery", response_model=OrderResponse)
async def confirm_delivery(
    order_id: UUID,
    service: OrderServiceDep,
    actor_id: CurrentActor,
):
    """Confirm delivery and release escrow to the supplier (supplier only)."""
    return await service.confirm_delivery(order_id, actor_id)


@router.post("/{order_id}/refund", response_model=OrderResponse)
async def refund_order(
    order_id: UUID,
    refund: OrderRefundRequest,
    service: OrderServiceDep,
    actor_id: CurrentActor,
):
    """Refund a paid, undelivered order (buyer or supplier)."""
    return await service.refund_order(order_id, refund.reason, requester_id=actor_id)
