"""Group-buy schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class DiscountTier(BaseModel):
    min_quantity: int = Field(..., ge=1)
    discount_percent: float = Field(..., ge=0, le=100)


class GroupOrderProductCreate(BaseModel):
    """A catalog product the leader wants to pool, with the leader's share."""

    product_id: UUID
    target_quantity: int = Field(..., gt=0)
    initial_quantity: int = Field(default=0, ge=0)
    discount_tiers: list[DiscountTier] = Field(default_factory=list)
    min_order_quantity: int | None = Field(None, ge=1)


class GroupOrderCreate(BaseModel):
    """Schema for group order creation request."""

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    leader_name: str = Field(..., min_length=1, max_length=255)
    products: list[GroupOrderProductCreate] = Field(..., min_length=1)
    deadline: datetime
    min_members: int = Field(default=2, ge=1)
    max_members: int = Field(default=10, ge=1)

    @model_validator(mode="after")
    def check_member_bounds(self) -> "GroupOrderCreate":
        if self.max_members < self.min_members:
            raise ValueError("max_members must be greater than or equal to min_members")
        return self


class QuantityUpdate(BaseModel):
    product_id: UUID
    quantity: int = Field(..., ge=0)


class QuantityUpdateRequest(BaseModel):
    """Absolute per-product quantities for the calling member."""

    updates: list[QuantityUpdate] = Field(..., min_length=1)


class GroupOrderProductResponse(BaseModel):
    product_id: UUID
    product_name: str
    supplier_id: str
    unit: str
    base_price: Decimal
    target_quantity: int
    min_order_quantity: int
    current_quantity: int
    discount_tiers: list[DiscountTier]
    current_discount_percent: Decimal
    member_contributions: dict[str, int]

    model_config = {"from_attributes": True}


class GroupOrderResponse(BaseModel):
    """Schema for group order response."""

    group_order_id: UUID
    leader_id: str
    leader_name: str
    title: str
    description: str | None
    member_ids: list[str]
    status: str
    deadline: datetime
    min_members: int
    max_members: int
    total_value: Decimal
    products: list[GroupOrderProductResponse]
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None
    cancelled_at: datetime | None

    model_config = {"from_attributes": True}


class GroupOrderListResponse(BaseModel):
    group_orders: list[GroupOrderResponse]
    total: int


class GroupOrderCloseResponse(BaseModel):
    group_order_id: UUID
    order_ids: list[UUID]
