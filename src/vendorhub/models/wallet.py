"""Wallet, ledger transaction and escrow models."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from vendorhub.core.database import Base
from vendorhub.models.base import TimestampMixin, utc_now


class WalletStatus(enum.StrEnum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    PENDING_VERIFICATION = "pending_verification"


class TransactionType(enum.StrEnum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    ESCROW_HOLD = "escrow_hold"
    ESCROW_RELEASE = "escrow_release"
    REFUND = "refund"
    FEE = "fee"


class TransactionStatus(enum.StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class EscrowStatus(enum.StrEnum):
    HELD = "held"
    RELEASED = "released"
    REFUNDED = "refunded"
    DISPUTED = "disputed"


class Wallet(Base, TimestampMixin):
    """One wallet per user; created lazily on first access."""

    __tablename__ = "wallets"

    user_id: Mapped[str] = mapped_column(
        String(128),
        primary_key=True,
    )
    user_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="vendor",
    )
    balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    escrow_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    total_earnings: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    total_spent: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    transaction_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=WalletStatus.ACTIVE,
    )
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="INR",
    )
    last_transaction_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("balance >= 0", name="chk_wallet_balance_non_negative"),
        CheckConstraint("escrow_balance >= 0", name="chk_wallet_escrow_non_negative"),
    )


class WalletTransaction(Base):
    """Append-only ledger entry with a before/after balance snapshot."""

    __tablename__ = "transactions"

    transaction_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    balance_before: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    balance_after: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TransactionStatus.COMPLETED,
    )
    payment_method: Mapped[str | None] = mapped_column(
        String(30),
        nullable=True,
    )
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )
    payment_reference: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    escrow_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        nullable=True,
    )
    related_entity_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    related_entity_type: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        Index("idx_transactions_user_created", "user_id", "created_at"),
        Index("idx_transactions_escrow", "escrow_id"),
    )


class EscrowRecord(Base, TimestampMixin):
    """Funds held on behalf of an order until delivery or refund."""

    __tablename__ = "escrow_records"

    escrow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )
    order_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=EscrowStatus.HELD,
    )
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )
    requires_delivery_confirmation: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    auto_release_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    released_to: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
    )
    refund_reason: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    dispute_reason: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    released_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    refunded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    disputed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_escrow_amount_positive"),
        Index("idx_escrow_user", "user_id"),
        Index("idx_escrow_order", "order_id"),
        Index("idx_escrow_status_release", "status", "auto_release_at"),
    )
