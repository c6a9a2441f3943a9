"""Pydantic schemas for request/response validation."""

from vendorhub.schemas.group_order import (
    DiscountTier,
    GroupOrderCloseResponse,
    GroupOrderCreate,
    GroupOrderListResponse,
    GroupOrderProductCreate,
    GroupOrderResponse,
    QuantityUpdate,
    QuantityUpdateRequest,
)
from vendorhub.schemas.invitation import (
    InvitationAcceptRequest,
    InvitationCreate,
    InvitationListResponse,
    InvitationResponse,
)
from vendorhub.schemas.order import (
    OrderCreate,
    OrderCreateResponse,
    OrderItemCreate,
    OrderItemRequest,
    OrderListResponse,
    OrderRefundRequest,
    OrderResponse,
    OrderStatusUpdate,
)
from vendorhub.schemas.product import ProductCreate, ProductListResponse, ProductResponse
from vendorhub.schemas.wallet import (
    DisputeRequest,
    EscrowListResponse,
    EscrowResponse,
    TopUpRequest,
    TransactionListResponse,
    TransactionResponse,
    WalletResponse,
    WithdrawRequest,
)

__all__ = [
    "ProductCreate",
    "ProductResponse",
    "ProductListResponse",
    "OrderItemCreate",
    "OrderItemRequest",
    "OrderCreate",
    "OrderCreateResponse",
    "OrderStatusUpdate",
    "OrderRefundRequest",
    "OrderResponse",
    "OrderListResponse",
    "TopUpRequest",
    "WithdrawRequest",
    "DisputeRequest",
    "WalletResponse",
    "TransactionResponse",
    "TransactionListResponse",
    "EscrowResponse",
    "EscrowListResponse",
    "DiscountTier",
    "GroupOrderProductCreate",
    "GroupOrderCreate",
    "QuantityUpdate",
    "QuantityUpdateRequest",
    "GroupOrderResponse",
    "GroupOrderListResponse",
    "GroupOrderCloseResponse",
    "InvitationCreate",
    "InvitationAcceptRequest",
    "InvitationResponse",
    "InvitationListResponse",
]
