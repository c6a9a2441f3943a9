"""Group-buy models: a shared order and its pooled product targets."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vendorhub.core.database import Base
from vendorhub.models.base import TimestampMixin


class GroupOrderStatus(enum.StrEnum):
    OPEN = "open"
    CLOSED = "closed"
    CANCELLED = "cancelled"
    FULFILLED = "fulfilled"


class GroupOrder(Base, TimestampMixin):
    """A group buy led by one vendor that others contribute quantities to.

    ``member_ids`` is kept in sync with the contribution maps of the
    products: any other user is a member exactly while their total
    contribution is positive. The leader is always a member.
    """

    __tablename__ = "group_orders"

    group_order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    leader_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )
    leader_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    member_ids: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=GroupOrderStatus.OPEN,
    )
    deadline: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    min_members: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )
    max_members: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=10,
    )
    total_value: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    closed_at: Mapped[datetime | None] = mapped_column(
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

    products: Mapped[list["GroupOrderProduct"]] = relationship(
        "GroupOrderProduct",
        back_populates="group_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="GroupOrderProduct.position",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("min_members >= 1", name="chk_group_order_min_members"),
        CheckConstraint("max_members >= min_members", name="chk_group_order_max_members"),
        Index("idx_group_orders_status_deadline", "status", "deadline"),
        Index("idx_group_orders_leader", "leader_id"),
    )


class GroupOrderProduct(Base):
    """A catalog product snapshotted into a group order.

    ``discount_tiers`` holds ``[{"min_quantity": int, "discount_percent": float}]``
    and ``member_contributions`` maps member id to contributed quantity.
    """

    __tablename__ = "group_order_products"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    group_order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("group_orders.group_order_id", ondelete="CASCADE"),
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
    supplier_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )
    unit: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    base_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    target_quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    min_order_quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )
    current_quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    discount_tiers: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )
    current_discount_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        default=Decimal("0"),
    )
    member_contributions: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    group_order: Mapped["GroupOrder"] = relationship("GroupOrder", back_populates="products")

    __table_args__ = (
        CheckConstraint("current_quantity >= 0", name="chk_group_product_quantity_non_negative"),
        Index("idx_group_order_products_group", "group_order_id"),
    )
