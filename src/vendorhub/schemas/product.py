"""Product schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class ProductCreate(BaseModel):
    """Schema for product creation request."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    category: str | None = Field(None, max_length=100)
    unit: str = Field(default="kg", min_length=1, max_length=20)
    price: Decimal = Field(..., gt=0)
    available_quantity: int = Field(..., ge=0)
    min_order_quantity: int = Field(default=1, ge=1)


class ProductResponse(BaseModel):
    """Schema for product response."""

    product_id: UUID
    supplier_id: str
    name: str
    description: str | None
    category: str | None
    unit: str
    price: Decimal
    available_quantity: int
    min_order_quantity: int
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ProductListResponse(BaseModel):
    """Schema for product list response."""

    products: list[ProductResponse]
    total: int
