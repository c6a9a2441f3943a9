"""Tests for the wallet and escrow ledger."""

import asyncio
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from vendorhub.core.exceptions import (
    InsufficientFunds,
    InvalidRequest,
    InvalidState,
    NotFound,
    Unauthorized,
)
from vendorhub.models import EscrowRecord, EscrowStatus, TransactionType, Wallet
from vendorhub.models.base import utc_now
from vendorhub.services.wallet_service import WalletService, to_money


def _conserved_total(entries) -> Decimal:
    """Net money that entered a wallet according to its ledger.

    Holds and refunds only move funds between balance and escrow, so they
    do not count.
    """
    total = Decimal("0")
    for entry in entries:
        if entry.type in (
            TransactionType.DEPOSIT,
            TransactionType.WITHDRAWAL,
            TransactionType.ESCROW_RELEASE,
        ):
            total += entry.amount
    return total


async def _assert_conserved(service: WalletService, user_id: str) -> None:
    wallet = await service.get_wallet(user_id)
    entries = await service.get_transaction_history(user_id, limit=1000)
    assert wallet.balance + wallet.escrow_balance == _conserved_total(entries)


class TestMoney:
    """Test cent rounding."""

    def test_rounds_half_up(self):
        assert to_money("10.005") == Decimal("10.01")
        assert to_money(Decimal("10.004")) == Decimal("10.00")
        assert to_money(7) == Decimal("7.00")


class TestWalletAccess:
    """Test lazy wallet creation."""

    @pytest.mark.asyncio
    async def test_wallet_created_on_first_access(self, db):
        service = WalletService(db)

        wallet = await service.get_wallet("vendor-1")

        assert wallet.user_id == "vendor-1"
        assert wallet.balance == Decimal("0.00")
        assert wallet.escrow_balance == Decimal("0.00")
        assert wallet.status == "active"
        assert wallet.currency == "INR"

    @pytest.mark.asyncio
    async def test_initialize_wallet_is_idempotent(self, db):
        service = WalletService(db)

        first = await service.initialize_wallet("supplier-1", user_type="supplier")
        second = await service.initialize_wallet("supplier-1", user_type="vendor")

        assert first.user_id == second.user_id
        assert second.user_type == "supplier"

    @pytest.mark.asyncio
    async def test_concurrent_first_access_creates_one_wallet(self, session_factory, load):
        async def access():
            async with session_factory() as session:
                return await WalletService(session).get_wallet("vendor-race")

        wallets = await asyncio.gather(*[access() for _ in range(5)])

        assert {w.user_id for w in wallets} == {"vendor-race"}
        assert await load(Wallet, "vendor-race") is not None


class TestTopUpAndWithdraw:
    """Test balance movements outside escrow."""

    @pytest.mark.asyncio
    async def test_top_up_records_deposit(self, db):
        service = WalletService(db)

        entry = await service.top_up("vendor-1", Decimal("250.00"), "upi")

        assert entry.type == TransactionType.DEPOSIT
        assert entry.amount == Decimal("250.00")
        assert entry.balance_before == Decimal("0.00")
        assert entry.balance_after == Decimal("250.00")
        assert entry.payment_reference.startswith("SIM_")
        wallet = await service.get_wallet("vendor-1")
        assert wallet.balance == Decimal("250.00")
        assert wallet.total_earnings == Decimal("250.00")
        assert wallet.transaction_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5.00")])
    async def test_non_positive_amount_rejected(self, db, amount):
        service = WalletService(db)

        with pytest.raises(InvalidRequest):
            await service.top_up("vendor-1", amount)

    @pytest.mark.asyncio
    async def test_withdraw_more_than_balance_fails(self, db):
        service = WalletService(db)
        await service.top_up("vendor-1", Decimal("50.00"))

        with pytest.raises(InsufficientFunds) as exc_info:
            await service.withdraw("vendor-1", Decimal("80.00"))

        assert exc_info.value.available == Decimal("50.00")
        assert exc_info.value.requested == Decimal("80.00")
        wallet = await service.get_wallet("vendor-1")
        assert wallet.balance == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_withdraw_records_negative_entry(self, db):
        service = WalletService(db)
        await service.top_up("vendor-1", Decimal("50.00"))

        entry = await service.withdraw("vendor-1", Decimal("20.00"))

        assert entry.type == TransactionType.WITHDRAWAL
        assert entry.amount == Decimal("-20.00")
        assert entry.balance_after == Decimal("30.00")

    @pytest.mark.asyncio
    async def test_suspended_wallet_cannot_withdraw(self, db):
        service = WalletService(db)
        await service.top_up("vendor-1", Decimal("50.00"))
        wallet = await service.get_wallet("vendor-1")
        wallet.status = "suspended"
        await db.commit()

        with pytest.raises(InvalidState):
            await service.withdraw("vendor-1", Decimal("10.00"))


class TestEscrow:
    """Test hold, release, refund and dispute."""

    @pytest.mark.asyncio
    async def test_hold_then_release_to_supplier(self, db):
        """Hold 100 from a vendor with 500, release it to the supplier."""
        service = WalletService(db)
        await service.top_up("vendor-1", Decimal("500.00"))

        escrow = await service.hold_in_escrow("vendor-1", "order-1", Decimal("100.00"))

        vendor = await service.get_wallet("vendor-1")
        assert escrow.status == EscrowStatus.HELD
        assert vendor.balance == Decimal("400.00")
        assert vendor.escrow_balance == Decimal("100.00")
        assert vendor.total_spent == Decimal("100.00")

        released = await service.release_from_escrow(escrow.escrow_id, "supplier-1")

        vendor = await service.get_wallet("vendor-1")
        supplier = await service.get_wallet("supplier-1")
        assert released.status == EscrowStatus.RELEASED
        assert released.released_to == "supplier-1"
        assert vendor.balance == Decimal("400.00")
        assert vendor.escrow_balance == Decimal("0.00")
        assert supplier.balance == Decimal("100.00")
        assert supplier.total_earnings == Decimal("100.00")
        assert supplier.user_type == "supplier"

        vendor_entries = await service.get_transaction_history("vendor-1")
        release_entry = vendor_entries[0]
        assert release_entry.type == TransactionType.ESCROW_RELEASE
        assert release_entry.amount == Decimal("-100.00")
        assert release_entry.balance_before == release_entry.balance_after == Decimal("400.00")

        await _assert_conserved(service, "vendor-1")
        await _assert_conserved(service, "supplier-1")

    @pytest.mark.asyncio
    async def test_hold_sets_auto_release_horizon(self, db):
        service = WalletService(db)
        await service.top_up("vendor-1", Decimal("100.00"))
        before = utc_now()

        escrow = await service.hold_in_escrow("vendor-1", "order-1", Decimal("10.00"))

        assert escrow.requires_delivery_confirmation is True
        delta = escrow.auto_release_at - before
        assert timedelta(days=6, hours=23) < delta <= timedelta(days=7, minutes=1)

    @pytest.mark.asyncio
    async def test_hold_with_insufficient_balance_changes_nothing(self, db, load):
        service = WalletService(db)
        await service.top_up("vendor-1", Decimal("30.00"))

        with pytest.raises(InsufficientFunds):
            await service.hold_in_escrow("vendor-1", "order-1", Decimal("31.00"))

        wallet = await load(Wallet, "vendor-1")
        assert wallet.balance == Decimal("30.00")
        assert wallet.escrow_balance == Decimal("0.00")
        assert await service.get_escrow_records("vendor-1") == []

    @pytest.mark.asyncio
    async def test_refund_returns_funds_to_balance(self, db):
        service = WalletService(db)
        await service.top_up("vendor-1", Decimal("200.00"))
        escrow = await service.hold_in_escrow("vendor-1", "order-1", Decimal("120.00"))

        refunded = await service.refund_from_escrow(escrow.escrow_id, "Supplier out of stock")

        wallet = await service.get_wallet("vendor-1")
        assert refunded.status == EscrowStatus.REFUNDED
        assert refunded.refund_reason == "Supplier out of stock"
        assert wallet.balance == Decimal("200.00")
        assert wallet.escrow_balance == Decimal("0.00")
        assert wallet.total_spent == Decimal("0.00")
        await _assert_conserved(service, "vendor-1")

    @pytest.mark.asyncio
    async def test_escrow_transitions_only_once(self, db):
        service = WalletService(db)
        await service.top_up("vendor-1", Decimal("100.00"))
        escrow = await service.hold_in_escrow("vendor-1", "order-1", Decimal("60.00"))
        escrow_id = escrow.escrow_id
        await service.release_from_escrow(escrow_id, "supplier-1")

        with pytest.raises(InvalidState):
            await service.release_from_escrow(escrow_id, "supplier-1")
        with pytest.raises(InvalidState):
            await service.refund_from_escrow(escrow_id, "too late")

        supplier = await service.get_wallet("supplier-1")
        assert supplier.balance == Decimal("60.00")

    @pytest.mark.asyncio
    async def test_concurrent_release_and_refund_single_winner(self, session_factory, load):
        async with session_factory() as session:
            service = WalletService(session)
            await service.top_up("vendor-1", Decimal("100.00"))
            escrow = await service.hold_in_escrow("vendor-1", "order-1", Decimal("100.00"))

        async def release():
            async with session_factory() as session:
                return await WalletService(session).release_from_escrow(escrow.escrow_id, "supplier-1")

        async def refund():
            async with session_factory() as session:
                return await WalletService(session).refund_from_escrow(escrow.escrow_id, "changed mind")

        results = await asyncio.gather(release(), refund(), return_exceptions=True)

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], InvalidState)

        vendor = await load(Wallet, "vendor-1")
        supplier = await load(Wallet, "supplier-1")
        paid_out = supplier.balance if supplier is not None else Decimal("0.00")
        assert vendor.escrow_balance == Decimal("0.00")
        assert vendor.balance + paid_out == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_unknown_escrow_not_found(self, db):
        service = WalletService(db)

        with pytest.raises(NotFound):
            await service.release_from_escrow(uuid4(), "supplier-1")

    @pytest.mark.asyncio
    async def test_dispute_freezes_escrow(self, db):
        service = WalletService(db)
        await service.top_up("vendor-1", Decimal("100.00"))
        escrow = await service.hold_in_escrow("vendor-1", "order-1", Decimal("40.00"))
        escrow_id = escrow.escrow_id

        with pytest.raises(Unauthorized):
            await service.dispute_escrow(escrow_id, "someone-else", "not mine")

        disputed = await service.dispute_escrow(escrow_id, "vendor-1", "Wrong quality")

        assert disputed.status == EscrowStatus.DISPUTED
        assert disputed.dispute_reason == "Wrong quality"
        with pytest.raises(InvalidState):
            await service.release_from_escrow(escrow_id, "supplier-1")
        wallet = await service.get_wallet("vendor-1")
        assert wallet.escrow_balance == Decimal("40.00")


class TestConservation:
    """Test balance + escrow matches the ledger after every operation."""

    @pytest.mark.asyncio
    async def test_mixed_sequence_conserves_money(self, db):
        service = WalletService(db)

        await service.top_up("vendor-1", Decimal("1000.00"))
        await _assert_conserved(service, "vendor-1")
        first = await service.hold_in_escrow("vendor-1", "order-1", Decimal("300.00"))
        await _assert_conserved(service, "vendor-1")
        second = await service.hold_in_escrow("vendor-1", "order-2", Decimal("150.50"))
        await _assert_conserved(service, "vendor-1")
        await service.withdraw("vendor-1", Decimal("100.00"))
        await _assert_conserved(service, "vendor-1")
        await service.release_from_escrow(first.escrow_id, "supplier-1")
        await _assert_conserved(service, "vendor-1")
        await _assert_conserved(service, "supplier-1")
        await service.refund_from_escrow(second.escrow_id, "cancelled")
        await _assert_conserved(service, "vendor-1")

        wallet = await service.get_wallet("vendor-1")
        assert wallet.balance == Decimal("600.00")
        assert wallet.escrow_balance == Decimal("0.00")


class TestQueries:
    """Test ledger queries."""

    @pytest.mark.asyncio
    async def test_history_is_newest_first_and_limited(self, db):
        service = WalletService(db)
        for amount in ("10.00", "20.00", "30.00"):
            await service.top_up("vendor-1", Decimal(amount))

        entries = await service.get_transaction_history("vendor-1", limit=2)

        assert [e.amount for e in entries] == [Decimal("30.00"), Decimal("20.00")]

    @pytest.mark.asyncio
    async def test_escrows_due_for_auto_release(self, db):
        service = WalletService(db)
        await service.top_up("vendor-1", Decimal("100.00"))
        escrow = await service.hold_in_escrow("vendor-1", "order-1", Decimal("10.00"))

        assert await service.get_escrows_due_for_auto_release() == []

        due = await service.get_escrows_due_for_auto_release(utc_now() + timedelta(days=8))
        assert [e.escrow_id for e in due] == [escrow.escrow_id]

        stored = await db.get(EscrowRecord, escrow.escrow_id)
        assert stored.status == EscrowStatus.HELD
