"""SQLAlchemy ORM models."""

from vendorhub.models.base import TimestampMixin
from vendorhub.models.group_order import GroupOrder, GroupOrderProduct, GroupOrderStatus
from vendorhub.models.invitation import GroupOrderInvitation, InvitationMethod, InvitationStatus
from vendorhub.models.order import Order, OrderItem, OrderStatus, PaymentStatus
from vendorhub.models.product import Product
from vendorhub.models.wallet import (
    EscrowRecord,
    EscrowStatus,
    TransactionStatus,
    TransactionType,
    Wallet,
    WalletStatus,
    WalletTransaction,
)

__all__ = [
    "TimestampMixin",
    "Product",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentStatus",
    "Wallet",
    "WalletStatus",
    "WalletTransaction",
    "TransactionType",
    "TransactionStatus",
    "EscrowRecord",
    "EscrowStatus",
    "GroupOrder",
    "GroupOrderProduct",
    "GroupOrderStatus",
    "GroupOrderInvitation",
    "InvitationMethod",
    "InvitationStatus",
]
