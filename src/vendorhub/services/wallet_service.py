"""Wallet and escrow ledger service.

Every mutating operation is a single atomic unit covering the wallet
row(s), the appended ledger entries and the escrow record, so the
conservation invariant holds after each call:

    balance + escrow_balance
        == deposits - withdrawals - releases to others + releases received

Payments are simulated; no money leaves the system.
"""

import logging
import secrets
import time
import uuid
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vendorhub.core.config import settings
from vendorhub.core.exceptions import (
    InsufficientFunds,
    InvalidRequest,
    InvalidState,
    NotFound,
    Unauthorized,
)
from vendorhub.core.transaction import atomic, for_update
from vendorhub.middleware.metrics import record_escrow_event
from vendorhub.models.base import utc_now
from vendorhub.models.wallet import (
    EscrowRecord,
    EscrowStatus,
    TransactionStatus,
    TransactionType,
    Wallet,
    WalletStatus,
    WalletTransaction,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Quantize a value to cents, rounding half up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def _payment_reference() -> str:
    return f"SIM_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class WalletService:
    """Service class for wallet balances, ledger entries and escrow."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Wallet access
    # ------------------------------------------------------------------

    async def initialize_wallet(self, user_id: str, user_type: str = "vendor") -> Wallet:
        """Get the user's wallet, creating an empty one on first access.

        Args:
            user_id: Owner id from the auth collaborator
            user_type: "vendor" or "supplier"; only used on creation

        Returns:
            The user's wallet
        """
        return await atomic(
            self.db,
            lambda: self._lock_wallet(user_id, user_type),
            name="wallet.initialize",
        )

    async def get_wallet(self, user_id: str) -> Wallet:
        return await self.initialize_wallet(user_id)

    async def _lock_wallet(self, user_id: str, user_type: str = "vendor") -> Wallet:
        """Row-lock a wallet inside the current unit, creating it if missing.

        Creation runs in a savepoint; losing the insert race to another
        request surfaces as an IntegrityError on the primary key, after
        which the winner's row is locked instead.
        """
        wallet = await self._select_wallet_for_update(user_id)
        if wallet is not None:
            return wallet

        try:
            async with self.db.begin_nested():
                wallet = Wallet(
                    user_id=user_id,
                    user_type=user_type,
                    balance=Decimal("0.00"),
                    escrow_balance=Decimal("0.00"),
                    total_earnings=Decimal("0.00"),
                    total_spent=Decimal("0.00"),
                    transaction_count=0,
                    status=WalletStatus.ACTIVE,
                    currency=settings.DEFAULT_CURRENCY,
                )
                self.db.add(wallet)
                await self.db.flush()
            logger.info(f"Wallet created: user={user_id}, type={user_type}")
            return wallet
        except IntegrityError:
            logger.info(f"Wallet for user={user_id} created concurrently, reusing it")

        wallet = await self._select_wallet_for_update(user_id)
        if wallet is None:
            raise NotFound(f"Wallet for user {user_id} not found")
        return wallet

    async def _select_wallet_for_update(self, user_id: str) -> Wallet | None:
        result = await self.db.execute(
            for_update(select(Wallet).where(Wallet.user_id == user_id))
        )
        return result.scalar_one_or_none()

    async def _lock_wallets(self, *user_types: tuple[str, str]) -> dict[str, Wallet]:
        """Lock several wallets in sorted user id order."""
        wallets: dict[str, Wallet] = {}
        for user_id, user_type in sorted(set(user_types)):
            if user_id not in wallets:
                wallets[user_id] = await self._lock_wallet(user_id, user_type)
        return wallets

    async def _lock_escrow(self, escrow_id: uuid.UUID) -> EscrowRecord:
        result = await self.db.execute(
            for_update(select(EscrowRecord).where(EscrowRecord.escrow_id == escrow_id))
        )
        escrow = result.scalar_one_or_none()
        if escrow is None:
            raise NotFound(f"Escrow {escrow_id} not found")
        return escrow

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_amount(amount) -> Decimal:
        try:
            value = to_money(amount)
        except ArithmeticError:
            raise InvalidRequest(f"Invalid amount: {amount}")
        if value <= 0:
            raise InvalidRequest("Amount must be greater than zero")
        return value

    @staticmethod
    def _require_active(wallet: Wallet) -> None:
        if wallet.status != WalletStatus.ACTIVE:
            raise InvalidState(f"Wallet is {wallet.status}")

    def _append_entry(
        self,
        wallet: Wallet,
        tx_type: TransactionType,
        amount: Decimal,
        balance_before: Decimal,
        description: str,
        *,
        payment_method: str | None = None,
        payment_reference: str | None = None,
        escrow_id: uuid.UUID | None = None,
        order_id: str | None = None,
    ) -> WalletTransaction:
        now = utc_now()
        entry = WalletTransaction(
            transaction_id=uuid.uuid4(),
            user_id=wallet.user_id,
            type=tx_type,
            amount=amount,
            balance_before=balance_before,
            balance_after=wallet.balance,
            status=TransactionStatus.COMPLETED,
            payment_method=payment_method,
            description=description,
            payment_reference=payment_reference,
            escrow_id=escrow_id,
            related_entity_id=order_id,
            related_entity_type="order" if order_id else None,
            created_at=now,
            completed_at=now,
        )
        self.db.add(entry)
        wallet.transaction_count += 1
        wallet.last_transaction_at = now
        return entry

    # ------------------------------------------------------------------
    # Balance movements
    # ------------------------------------------------------------------

    async def top_up(
        self, user_id: str, amount, payment_method: str = "upi"
    ) -> WalletTransaction:
        """Add simulated funds to a wallet.

        Args:
            user_id: Wallet owner
            amount: Positive amount
            payment_method: Simulated payment method label

        Returns:
            The deposit ledger entry

        Raises:
            InvalidRequest: Amount is not positive
        """
        value = self._validate_amount(amount)

        async def work() -> WalletTransaction:
            wallet = await self._lock_wallet(user_id)
            before = wallet.balance
            wallet.balance = before + value
            wallet.total_earnings = wallet.total_earnings + value
            return self._append_entry(
                wallet,
                TransactionType.DEPOSIT,
                value,
                before,
                f"Wallet top-up via {payment_method}",
                payment_method=payment_method,
                payment_reference=_payment_reference(),
            )

        entry = await atomic(self.db, work, name="wallet.top_up")
        record_escrow_event("top_up")
        logger.info(f"Top-up: user={user_id}, amount={value}")
        return entry

    async def withdraw(
        self, user_id: str, amount, payment_method: str = "bank_transfer"
    ) -> WalletTransaction:
        """Withdraw available (non-escrow) funds.

        Raises:
            InvalidRequest: Amount is not positive
            InvalidState: Wallet is not active
            InsufficientFunds: Balance is below the amount
        """
        value = self._validate_amount(amount)

        async def work() -> WalletTransaction:
            wallet = await self._lock_wallet(user_id)
            self._require_active(wallet)
            before = wallet.balance
            if before < value:
                raise InsufficientFunds(available=before, requested=value)
            wallet.balance = before - value
            return self._append_entry(
                wallet,
                TransactionType.WITHDRAWAL,
                -value,
                before,
                f"Withdrawal via {payment_method}",
                payment_method=payment_method,
                payment_reference=_payment_reference(),
            )

        entry = await atomic(self.db, work, name="wallet.withdraw")
        record_escrow_event("withdraw")
        logger.info(f"Withdrawal: user={user_id}, amount={value}")
        return entry

    async def hold_in_escrow(
        self, user_id: str, order_id: str, amount, description: str = ""
    ) -> EscrowRecord:
        """Move funds from the buyer's balance into escrow for an order.

        This is the only path that increases an escrow balance. When called
        from inside another atomic unit (order payment) it joins that unit.

        Args:
            user_id: Paying buyer
            order_id: Order the funds are held for
            amount: Positive amount
            description: Free-text description stored on the escrow

        Returns:
            The held escrow record

        Raises:
            InvalidRequest: Amount is not positive
            InvalidState: Wallet is not active
            InsufficientFunds: Balance is below the amount
        """
        value = self._validate_amount(amount)
        order_ref = str(order_id)

        async def work() -> EscrowRecord:
            wallet = await self._lock_wallet(user_id)
            self._require_active(wallet)
            before = wallet.balance
            if before < value:
                raise InsufficientFunds(available=before, requested=value)

            wallet.balance = before - value
            wallet.escrow_balance = wallet.escrow_balance + value
            wallet.total_spent = wallet.total_spent + value

            escrow = EscrowRecord(
                escrow_id=uuid.uuid4(),
                user_id=user_id,
                order_id=order_ref,
                amount=value,
                status=EscrowStatus.HELD,
                description=description or f"Payment for order {order_ref}",
                requires_delivery_confirmation=True,
                auto_release_at=utc_now() + timedelta(days=settings.ESCROW_AUTO_RELEASE_DAYS),
            )
            self.db.add(escrow)
            self._append_entry(
                wallet,
                TransactionType.ESCROW_HOLD,
                -value,
                before,
                escrow.description,
                escrow_id=escrow.escrow_id,
                order_id=order_ref,
            )
            await self.db.flush()
            return escrow

        escrow = await atomic(self.db, work, name="wallet.hold_in_escrow")
        record_escrow_event("hold")
        logger.info(
            f"Escrow held: escrow={escrow.escrow_id}, user={user_id}, "
            f"order={order_ref}, amount={value}"
        )
        return escrow

    async def release_from_escrow(
        self, escrow_id: uuid.UUID, recipient_id: str
    ) -> EscrowRecord:
        """Release held funds to the recipient (usually the supplier).

        Two ledger entries are written: the payer's shows the escrow leaving
        with an unchanged balance snapshot, the recipient's shows the credit.

        Raises:
            NotFound: Escrow does not exist
            InvalidState: Escrow is not held
        """

        async def work() -> EscrowRecord:
            escrow = await self._lock_escrow(escrow_id)
            if escrow.status != EscrowStatus.HELD:
                raise InvalidState(f"Escrow is {escrow.status}, cannot release")

            wallets = await self._lock_wallets(
                (escrow.user_id, "vendor"), (recipient_id, "supplier")
            )
            payer = wallets[escrow.user_id]
            recipient = wallets[recipient_id]
            amount = escrow.amount

            payer.escrow_balance = payer.escrow_balance - amount
            self._append_entry(
                payer,
                TransactionType.ESCROW_RELEASE,
                -amount,
                payer.balance,
                f"Escrow released to {recipient_id}",
                escrow_id=escrow.escrow_id,
                order_id=escrow.order_id,
            )

            before = recipient.balance
            recipient.balance = before + amount
            recipient.total_earnings = recipient.total_earnings + amount
            self._append_entry(
                recipient,
                TransactionType.ESCROW_RELEASE,
                amount,
                before,
                f"Payment received for order {escrow.order_id}",
                escrow_id=escrow.escrow_id,
                order_id=escrow.order_id,
            )

            escrow.status = EscrowStatus.RELEASED
            escrow.released_to = recipient_id
            escrow.released_at = utc_now()
            await self.db.flush()
            return escrow

        escrow = await atomic(self.db, work, name="wallet.release_from_escrow")
        record_escrow_event("release")
        logger.info(
            f"Escrow released: escrow={escrow_id}, recipient={recipient_id}, "
            f"amount={escrow.amount}"
        )
        return escrow

    async def refund_from_escrow(self, escrow_id: uuid.UUID, reason: str) -> EscrowRecord:
        """Return held funds to the payer's available balance.

        Raises:
            NotFound: Escrow does not exist
            InvalidState: Escrow is not held
        """

        async def work() -> EscrowRecord:
            escrow = await self._lock_escrow(escrow_id)
            if escrow.status != EscrowStatus.HELD:
                raise InvalidState(f"Escrow is {escrow.status}, cannot refund")

            payer = await self._lock_wallet(escrow.user_id)
            amount = escrow.amount
            before = payer.balance
            payer.balance = before + amount
            payer.escrow_balance = payer.escrow_balance - amount
            payer.total_spent = payer.total_spent - amount
            self._append_entry(
                payer,
                TransactionType.REFUND,
                amount,
                before,
                f"Refund: {reason}",
                escrow_id=escrow.escrow_id,
                order_id=escrow.order_id,
            )

            escrow.status = EscrowStatus.REFUNDED
            escrow.refund_reason = reason
            escrow.refunded_at = utc_now()
            await self.db.flush()
            return escrow

        escrow = await atomic(self.db, work, name="wallet.refund_from_escrow")
        record_escrow_event("refund")
        logger.info(f"Escrow refunded: escrow={escrow_id}, amount={escrow.amount}")
        return escrow

    async def dispute_escrow(
        self, escrow_id: uuid.UUID, user_id: str, reason: str
    ) -> EscrowRecord:
        """Freeze a held escrow pending manual resolution.

        No balances move. Disputed escrows can no longer be released or
        refunded through this service.

        Raises:
            NotFound: Escrow does not exist
            Unauthorized: Caller did not pay into the escrow
            InvalidState: Escrow is not held
        """

        async def work() -> EscrowRecord:
            escrow = await self._lock_escrow(escrow_id)
            if escrow.user_id != user_id:
                raise Unauthorized("Only the payer can dispute this escrow")
            if escrow.status != EscrowStatus.HELD:
                raise InvalidState(f"Escrow is {escrow.status}, cannot dispute")
            escrow.status = EscrowStatus.DISPUTED
            escrow.dispute_reason = reason
            escrow.disputed_at = utc_now()
            await self.db.flush()
            return escrow

        escrow = await atomic(self.db, work, name="wallet.dispute_escrow")
        record_escrow_event("dispute")
        logger.warning(f"Escrow disputed: escrow={escrow_id}, user={user_id}, reason={reason}")
        return escrow

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_transaction_history(
        self, user_id: str, limit: int = 50
    ) -> list[WalletTransaction]:
        """Get a user's ledger entries, newest first."""
        result = await self.db.execute(
            select(WalletTransaction)
            .where(WalletTransaction.user_id == user_id)
            .order_by(WalletTransaction.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_escrow_records(
        self, user_id: str, status: EscrowStatus | None = None
    ) -> list[EscrowRecord]:
        """Get escrows a user paid into, optionally filtered by status."""
        query = select(EscrowRecord).where(EscrowRecord.user_id == user_id)
        if status is not None:
            query = query.where(EscrowRecord.status == status)
        result = await self.db.execute(query.order_by(EscrowRecord.created_at.desc()))
        return list(result.scalars().all())

    async def get_escrow(self, escrow_id: uuid.UUID) -> EscrowRecord | None:
        result = await self.db.execute(
            select(EscrowRecord).where(EscrowRecord.escrow_id == escrow_id)
        )
        return result.scalar_one_or_none()

    async def get_escrows_due_for_auto_release(
        self, now: datetime | None = None
    ) -> list[EscrowRecord]:
        """List held escrows whose auto-release horizon has passed.

        Nothing releases these automatically; a scheduler can pick them up.
        """
        cutoff = now or utc_now()
        result = await self.db.execute(
            select(EscrowRecord)
            .where(EscrowRecord.status == EscrowStatus.HELD)
            .where(EscrowRecord.auto_release_at <= cutoff)
            .order_by(EscrowRecord.auto_release_at.asc())
        )
        return list(result.scalars().all())
