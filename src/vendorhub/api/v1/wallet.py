"""Wallet and escrow API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query

from vendorhub.api.deps import CurrentActor, WalletServiceDep
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

router = APIRouter()


@router.get("", response_model=WalletResponse)
async def get_wallet(
    service: WalletServiceDep,
    actor_id: CurrentActor,
):
    """Get the current user's wallet, creating it on first access."""
    return await service.get_wallet(actor_id)


@router.post("/top-up", response_model=TransactionResponse)
async def top_up(
    request: TopUpRequest,
    service: WalletServiceDep,
    actor_id: CurrentActor,
):
    """Add simulated funds to the wallet."""
    return await service.top_up(actor_id, request.amount, request.payment_method)


@router.post("/withdraw", response_model=TransactionResponse)
async def withdraw(
    request: WithdrawRequest,
    service: WalletServiceDep,
    actor_id: CurrentActor,
):
    """Withdraw available funds."""
    return await service.withdraw(actor_id, request.amount, request.payment_method)


@router.get("/transactions", response_model=TransactionListResponse)
async def get_transactions(
    service: WalletServiceDep,
    actor_id: CurrentActor,
    limit: int = Query(50, ge=1, le=200),
):
    """Get ledger entries, newest first."""
    transactions = await service.get_transaction_history(actor_id, limit=limit)
    return TransactionListResponse(transactions=transactions, total=len(transactions))


@router.get("/escrow", response_model=EscrowListResponse)
async def get_escrow_records(
    service: WalletServiceDep,
    actor_id: CurrentActor,
):
    """Get escrows the current user paid into."""
    escrows = await service.get_escrow_records(actor_id)
    return EscrowListResponse(escrows=escrows, total=len(escrows))


@router.post("/escrow/{escrow_id}/dispute", response_model=EscrowResponse)
async def dispute_escrow(
    escrow_id: UUID,
    request: DisputeRequest,
    service: WalletServiceDep,
    actor_id: CurrentActor,
):
    """Dispute a held escrow (payer only)."""
    return await service.dispute_escrow(escrow_id, actor_id, request.reason)
