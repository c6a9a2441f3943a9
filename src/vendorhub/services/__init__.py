"""Business logic services."""

from vendorhub.services.group_order_service import GroupOrderService
from vendorhub.services.invitation_service import InvitationService
from vendorhub.services.notification_service import ConnectionManager, OrderNotifier
from vendorhub.services.order_service import OrderService
from vendorhub.services.product_service import ProductService
from vendorhub.services.wallet_service import WalletService

__all__ = [
    "ConnectionManager",
    "OrderNotifier",
    "ProductService",
    "WalletService",
    "OrderService",
    "GroupOrderService",
    "InvitationService",
]
