"""Order models: one order per (buyer, supplier) with its line items."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vendorhub.core.database import Base
from vendorhub.models.base import TimestampMixin


class OrderStatus(enum.StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(enum.StrEnum):
    PENDING = "pending"
    PAID = "paid"  # held in escrow
    COMPLETED = "completed"  # released to supplier
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class Order(Base, TimestampMixin):
    """A buyer's order against a single supplier."""

    __tablename__ = "orders"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    buyer_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )
    supplier_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    payment_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    escrow_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        nullable=True,
    )
    group_order_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        nullable=True,
    )
    cancel_reason: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    refund_reason: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    delivered_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.position",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="chk_order_total_non_negative"),
        Index("idx_orders_buyer_created", "buyer_id", "created_at"),
        Index("idx_orders_supplier_created", "supplier_id", "created_at"),
        Index("idx_orders_group_order", "group_order_id"),
        Index("idx_orders_status", "status"),
    )


class OrderItem(Base):
    """Line item with name and price snapshotted at order time.

    ``product_id`` is not a foreign key: products may be removed from the
    catalog while historical orders keep referencing them.
    """

    __tablename__ = "order_items"

    item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("orders.order_id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
    )
    product_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    unit: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_order_item_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="chk_order_item_price_non_negative"),
        Index("idx_order_items_order", "order_id"),
    )
