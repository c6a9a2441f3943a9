"""Invitations sent by a group order leader to prospective members."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from vendorhub.core.database import Base
from vendorhub.models.base import TimestampMixin


class InvitationStatus(enum.StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class InvitationMethod(enum.StrEnum):
    EMAIL = "email"
    SMS = "sms"
    LINK = "link"


class GroupOrderInvitation(Base, TimestampMixin):
    """A pending or resolved invitation to join a group order.

    Only a pending invitation can change status. ``expires_at`` never lies
    past the group order's deadline.
    """

    __tablename__ = "group_order_invitations"

    invitation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    group_order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("group_orders.group_order_id", ondelete="CASCADE"),
        nullable=False,
    )
    group_order_title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    sender_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )
    sender_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    recipient_contact: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    method: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=InvitationMethod.EMAIL,
    )
    message: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=InvitationStatus.PENDING,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    accepted_by: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
    )
    accepted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    declined_by: Mapped[str | None] = mapped_column(
        String(128),
        nullable=True,
    )
    declined_at: Mapped[datetime | None] = mapped_column(
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

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_invitations_group_order", "group_order_id"),
        Index("idx_invitations_status", "status"),
    )
