"""Order schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class OrderItemCreate(BaseModel):
    """One order line as passed to the order service.

    Price, supplier and name default to catalog values. Only internal
    callers set them; group order close prices lines at the discount.
    """

    product_id: UUID
    quantity: int = Field(..., gt=0)
    price: Decimal | None = Field(None, ge=0)
    supplier_id: str | None = None
    product_name: str | None = None


class OrderItemRequest(BaseModel):
    """One cart line sent by a client. Prices always come from the catalog."""

    product_id: UUID
    quantity: int = Field(..., gt=0)
    supplier_id: str | None = None

    model_config = {"extra": "forbid"}

    def to_item(self) -> OrderItemCreate:
        return OrderItemCreate(
            product_id=self.product_id, quantity=self.quantity, supplier_id=self.supplier_id
        )


class OrderCreate(BaseModel):
    """Schema for order creation request."""

    items: list[OrderItemRequest] = Field(..., min_length=1)


class OrderCreateResponse(BaseModel):
    """Ids of the orders created from one cart, one per supplier."""

    order_ids: list[UUID]


class OrderStatusUpdate(BaseModel):
    status: Literal["pending", "processing", "delivered", "cancelled"]


class OrderRefundRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class OrderItemResponse(BaseModel):
    product_id: UUID
    product_name: str
    quantity: int
    unit: str
    unit_price: Decimal

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    """Schema for order response."""

    order_id: UUID
    buyer_id: str
    supplier_id: str
    items: list[OrderItemResponse]
    total_amount: Decimal
    status: str
    payment_status: str
    escrow_id: UUID | None
    group_order_id: UUID | None
    cancel_reason: str | None
    refund_reason: str | None
    created_at: datetime
    updated_at: datetime
    paid_at: datetime | None
    delivered_at: datetime | None
    cancelled_at: datetime | None

    model_config = {"from_attributes": True}


class OrderListResponse(BaseModel):
    """Schema for order list response."""

    orders: list[OrderResponse]
    total: int
