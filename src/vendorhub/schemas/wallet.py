"""Wallet and escrow schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from vendorhub.core.config import settings

PaymentMethod = Literal["upi", "card", "netbanking", "wallet", "bank_transfer"]


class TopUpRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, le=settings.MAX_TOP_UP_AMOUNT, decimal_places=2)
    payment_method: PaymentMethod = "upi"


class WithdrawRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_method: PaymentMethod = "bank_transfer"


class DisputeRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class WalletResponse(BaseModel):
    """Schema for wallet response."""

    user_id: str
    user_type: str
    balance: Decimal
    escrow_balance: Decimal
    total_earnings: Decimal
    total_spent: Decimal
    transaction_count: int
    status: str
    currency: str
    last_transaction_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class TransactionResponse(BaseModel):
    """Schema for a ledger entry."""

    transaction_id: UUID
    user_id: str
    type: str
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    status: str
    payment_method: str | None
    description: str
    payment_reference: str | None
    escrow_id: UUID | None
    related_entity_id: str | None
    related_entity_type: str | None
    created_at: datetime
    completed_at: datetime | None

    model_config = {"from_attributes": True}


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int


class EscrowResponse(BaseModel):
    """Schema for an escrow record."""

    escrow_id: UUID
    user_id: str
    order_id: str
    amount: Decimal
    status: str
    description: str
    requires_delivery_confirmation: bool
    auto_release_at: datetime
    released_to: str | None
    refund_reason: str | None
    dispute_reason: str | None
    created_at: datetime
    released_at: datetime | None
    refunded_at: datetime | None
    disputed_at: datetime | None

    model_config = {"from_attributes": True}


class EscrowListResponse(BaseModel):
    escrows: list[EscrowResponse]
    total: int
