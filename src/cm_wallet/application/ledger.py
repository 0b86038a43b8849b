"""WalletLedger — the only code path that changes a wallet balance.

Every operation runs inside the caller's DB transaction: one atomic balance
UPDATE plus exactly one appended Transaction row. Commit/rollback belongs to
the calling service, so a failure anywhere in a checkout or settlement leaves
no partial writes behind.

Amounts on Transaction rows are signed (+ credit, - debit), which makes the
per-wallet invariant  balance + pending_balance == SUM(completed amounts).
"""

import logging
from typing import Any, NoReturn

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cm_common.cents import validate_amount
from src.cm_common.enums import TransactionStatus, TransactionType
from src.cm_common.errors import (
    InsufficientFundsError,
    InternalError,
    InvalidAmountError,
    TransactionNotFoundError,
    WalletLockedError,
    WalletNotFoundError,
)
from src.cm_common.references import generate_reference
from src.cm_wallet.domain.models import Transaction, Wallet
from src.cm_wallet.domain.repository import (
    TransactionRepositoryProtocol,
    WalletRepositoryProtocol,
)
from src.cm_wallet.infrastructure.persistence import TransactionRepository, WalletRepository

logger = logging.getLogger(__name__)


def _checked_amount(amount: int) -> int:
    try:
        validate_amount(amount)
    except ValueError as exc:
        raise InvalidAmountError(str(exc)) from exc
    return amount


class WalletLedger:
    def __init__(
        self,
        wallets: WalletRepositoryProtocol | None = None,
        transactions: TransactionRepositoryProtocol | None = None,
    ) -> None:
        self._wallets: WalletRepositoryProtocol = wallets or WalletRepository()
        self._txs: TransactionRepositoryProtocol = transactions or TransactionRepository()

    @property
    def transactions(self) -> TransactionRepositoryProtocol:
        return self._txs

    @property
    def wallets(self) -> WalletRepositoryProtocol:
        return self._wallets

    # ------------------------------------------------------------------
    # Wallet access
    # ------------------------------------------------------------------

    async def get_or_create_wallet(self, db: AsyncSession, user_id: str) -> Wallet:
        return await self._wallets.get_or_create(db, user_id)

    async def get_wallet(self, db: AsyncSession, user_id: str) -> Wallet:
        wallet = await self._wallets.get(db, user_id)
        if wallet is None:
            raise WalletNotFoundError(user_id)
        return wallet

    async def lock_wallet(self, db: AsyncSession, user_id: str) -> Wallet:
        """SELECT ... FOR UPDATE on the wallet row, creating it first if needed."""
        wallet = await self._wallets.lock_for_update(db, user_id)
        if wallet is None:
            await self._wallets.get_or_create(db, user_id)
            wallet = await self._wallets.lock_for_update(db, user_id)
        if wallet is None:
            raise WalletNotFoundError(user_id)
        if wallet.is_locked:
            raise WalletLockedError()
        return wallet

    async def _guard_failed(self, db: AsyncSession, user_id: str, amount: int) -> NoReturn:
        """Re-read after a 0-row UPDATE and raise the matching business error."""
        wallet = await self._wallets.get(db, user_id)
        if wallet is None:
            raise WalletNotFoundError(user_id)
        if wallet.is_locked:
            raise WalletLockedError()
        raise InsufficientFundsError(amount, wallet.balance)

    # ------------------------------------------------------------------
    # Core mutators
    # ------------------------------------------------------------------

    async def debit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        tx_type: TransactionType,
        *,
        reference: str | None = None,
        order_id: int | None = None,
        gig_id: int | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> tuple[Wallet, Transaction]:
        """balance -= amount, total_spent += amount; fails if balance < amount."""
        _checked_amount(amount)
        wallet = await self._wallets.apply_debit(db, user_id, amount)
        if wallet is None:
            await self._guard_failed(db, user_id, amount)
        tx = await self._txs.append(
            db,
            user_id=user_id,
            wallet_id=wallet.id,
            type=tx_type,
            amount=-amount,
            status=TransactionStatus.COMPLETED,
            reference=reference,
            order_id=order_id,
            gig_id=gig_id,
            description=description,
            metadata=metadata,
        )
        return wallet, tx

    async def credit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        tx_type: TransactionType,
        *,
        reference: str | None = None,
        order_id: int | None = None,
        gig_id: int | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> tuple[Wallet, Transaction]:
        """balance += amount, total_earned += amount (release, platform fee)."""
        _checked_amount(amount)
        await self._wallets.get_or_create(db, user_id)
        wallet = await self._wallets.apply_credit(db, user_id, amount)
        if wallet is None:
            await self._guard_failed(db, user_id, amount)
        tx = await self._txs.append(
            db,
            user_id=user_id,
            wallet_id=wallet.id,
            type=tx_type,
            amount=amount,
            status=TransactionStatus.COMPLETED,
            reference=reference,
            order_id=order_id,
            gig_id=gig_id,
            description=description,
            metadata=metadata,
        )
        return wallet, tx

    async def refund(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        *,
        reference: str | None = None,
        order_id: int | None = None,
        gig_id: int | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> tuple[Wallet, Transaction]:
        """balance += amount, total_spent -= amount."""
        _checked_amount(amount)
        await self._wallets.get_or_create(db, user_id)
        wallet = await self._wallets.apply_refund(db, user_id, amount)
        if wallet is None:
            await self._guard_failed(db, user_id, amount)
        tx = await self._txs.append(
            db,
            user_id=user_id,
            wallet_id=wallet.id,
            type=TransactionType.REFUND,
            amount=amount,
            status=TransactionStatus.COMPLETED,
            reference=reference,
            order_id=order_id,
            gig_id=gig_id,
            description=description,
            metadata=metadata,
        )
        return wallet, tx

    # ------------------------------------------------------------------
    # Withdrawals
    # ------------------------------------------------------------------

    async def withdraw(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> tuple[Wallet, Transaction, Transaction | None]:
        """Move ``amount`` to pending and charge the fixed withdrawal fee.

        Returns the wallet, the pending ``withdrawal`` row and the completed
        ``withdrawal_fee`` row (None when the fee is configured to 0).
        """
        _checked_amount(amount)
        if amount < settings.MIN_WITHDRAWAL:
            raise InvalidAmountError(f"minimum withdrawal is {settings.MIN_WITHDRAWAL}")
        fee = settings.WITHDRAWAL_FEE
        wallet = await self.lock_wallet(db, user_id)
        if wallet.balance < amount + fee:
            raise InsufficientFundsError(amount + fee, wallet.balance)

        moved = await self._wallets.move_to_pending(db, user_id, amount)
        if moved is None:
            await self._guard_failed(db, user_id, amount + fee)
        reference = generate_reference("wd", user_id)
        withdrawal = await self._txs.append(
            db,
            user_id=user_id,
            wallet_id=moved.id,
            type=TransactionType.WITHDRAWAL,
            amount=-amount,
            fee=fee,
            status=TransactionStatus.PENDING,
            reference=reference,
            description="Withdrawal to bank account",
        )

        wallet = moved
        fee_tx: Transaction | None = None
        if fee > 0:
            charged = await self._wallets.apply_debit(db, user_id, fee)
            if charged is None:
                await self._guard_failed(db, user_id, fee)
            wallet = charged
            fee_tx = await self._txs.append(
                db,
                user_id=user_id,
                wallet_id=charged.id,
                type=TransactionType.WITHDRAWAL_FEE,
                amount=-fee,
                status=TransactionStatus.COMPLETED,
                reference=f"{reference}_fee",
                description="Withdrawal processing fee",
            )
        logger.info("Withdrawal %s requested: user=%s amount=%d fee=%d",
                    reference, user_id, amount, fee)
        return wallet, withdrawal, fee_tx

    async def settle_withdrawal(
        self, db: AsyncSession, reference: str, success: bool
    ) -> tuple[Transaction, bool]:
        """Webhook re-entry. Returns ``(row, applied)``; a repeat is a no-op."""
        tx = await self._txs.get_by_reference(db, reference, for_update=True)
        if tx is None or tx.type != TransactionType.WITHDRAWAL:
            raise TransactionNotFoundError(reference)
        if tx.status != TransactionStatus.PENDING:
            logger.info("Withdrawal %s already %s, ignoring", reference, tx.status)
            return tx, False

        amount = -tx.amount
        if success:
            settled = await self._txs.mark_status(db, tx.id, TransactionStatus.COMPLETED)
            if settled is None:
                return tx, False
            if await self._wallets.clear_pending(db, tx.user_id, amount) is None:
                raise InternalError(f"Pending balance short for withdrawal {reference}")
            logger.info("Withdrawal %s completed: user=%s amount=%d",
                        reference, tx.user_id, amount)
            return settled, True

        settled = await self._txs.mark_status(db, tx.id, TransactionStatus.FAILED)
        if settled is None:
            return tx, False
        wallet = await self._wallets.return_pending(db, tx.user_id, amount)
        if wallet is None:
            raise InternalError(f"Pending balance short for withdrawal {reference}")
        if tx.fee > 0:
            # Compensating row: the fee row itself is never edited
            await self._wallets.apply_deposit(db, tx.user_id, tx.fee)
            await self._txs.append(
                db,
                user_id=tx.user_id,
                wallet_id=wallet.id,
                type=TransactionType.REFUND,
                amount=tx.fee,
                status=TransactionStatus.COMPLETED,
                reference=f"{reference}_fee_refund",
                description="Withdrawal fee returned after failed transfer",
            )
        logger.info("Withdrawal %s failed, %d returned to user=%s",
                    reference, amount, tx.user_id)
        return settled, True

    # ------------------------------------------------------------------
    # Deposits
    # ------------------------------------------------------------------

    async def deposit(
        self, db: AsyncSession, user_id: str, amount: int, reference: str | None = None
    ) -> Transaction:
        """Record a pending deposit awaiting gateway confirmation."""
        _checked_amount(amount)
        if amount < settings.MIN_DEPOSIT:
            raise InvalidAmountError(f"minimum deposit is {settings.MIN_DEPOSIT}")
        wallet = await self._wallets.get_or_create(db, user_id)
        if wallet.is_locked:
            raise WalletLockedError()
        return await self._txs.append(
            db,
            user_id=user_id,
            wallet_id=wallet.id,
            type=TransactionType.DEPOSIT,
            amount=amount,
            status=TransactionStatus.PENDING,
            reference=reference or generate_reference("dep", user_id),
            description="Wallet top-up",
        )

    async def confirm_deposit(
        self, db: AsyncSession, reference: str, success: bool = True
    ) -> tuple[Transaction, bool]:
        """Complete (or fail) a pending deposit. Returns ``(row, applied)``."""
        tx = await self._txs.get_by_reference(db, reference, for_update=True)
        if tx is None or tx.type != TransactionType.DEPOSIT:
            raise TransactionNotFoundError(reference)
        if tx.status != TransactionStatus.PENDING:
            logger.info("Deposit %s already %s, ignoring", reference, tx.status)
            return tx, False

        if not success:
            failed = await self._txs.mark_status(db, tx.id, TransactionStatus.FAILED)
            return (failed or tx), failed is not None

        wallet = await self._wallets.apply_deposit(db, tx.user_id, tx.amount)
        if wallet is None:
            await self._guard_failed(db, tx.user_id, tx.amount)
        settled = await self._txs.mark_status(db, tx.id, TransactionStatus.COMPLETED)
        if settled is None:
            return tx, False
        logger.info("Deposit %s confirmed: user=%s amount=%d",
                    reference, tx.user_id, tx.amount)
        return settled, True
