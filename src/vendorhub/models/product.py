"""Product model for catalog data."""

import uuid
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from vendorhub.core.database import Base
from vendorhub.models.base import TimestampMixin


class Product(Base, TimestampMixin):
    """A supplier's product. Stock is mutated only by the order service."""

    __tablename__ = "products"

    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    supplier_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    category: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    unit: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="kg",
    )
    price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    available_quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    min_order_quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("available_quantity >= 0", name="chk_product_stock_non_negative"),
        CheckConstraint("price > 0", name="chk_product_price_positive"),
        CheckConstraint("min_order_quantity >= 1", name="chk_product_min_order_positive"),
        Index("idx_products_supplier", "supplier_id"),
        Index("idx_products_active", "is_active"),
    )
