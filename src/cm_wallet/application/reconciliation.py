"""Per-wallet reconciliation: balance + pending_balance == SUM(completed amounts).

A mismatch is never auto-corrected. The wallet is locked for manual audit and
ReconciliationError is raised; the lock is committed on its own so it survives
the error response.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.errors import ReconciliationError, WalletNotFoundError
from src.cm_wallet.application.ledger import WalletLedger
from src.cm_wallet.domain.models import Wallet

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    user_id: str
    balance: int
    pending_balance: int
    ledger_total: int

    @property
    def ok(self) -> bool:
        return self.balance + self.pending_balance == self.ledger_total


class ReconciliationService:
    def __init__(self, ledger: WalletLedger | None = None) -> None:
        self._ledger = ledger or WalletLedger()

    async def check(self, db: AsyncSession, user_id: str) -> ReconciliationResult:
        """Compute without side effects."""
        wallet = await self._ledger.wallets.get(db, user_id)
        if wallet is None:
            raise WalletNotFoundError(user_id)
        total = await self._ledger.transactions.sum_completed(db, user_id)
        return ReconciliationResult(
            user_id=user_id,
            balance=wallet.balance,
            pending_balance=wallet.pending_balance,
            ledger_total=total,
        )

    async def reconcile_wallet(self, db: AsyncSession, user_id: str) -> ReconciliationResult:
        result = await self.check(db, user_id)
        if not result.ok:
            holdings = result.balance + result.pending_balance
            logger.error(
                "Reconciliation mismatch user=%s wallet=%d ledger=%d, locking wallet",
                user_id, holdings, result.ledger_total,
            )
            try:
                await self._ledger.wallets.set_lock(
                    db, user_id, True,
                    f"reconciliation mismatch: wallet {holdings}, ledger {result.ledger_total}",
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise
            raise ReconciliationError(user_id, result.ledger_total, holdings)

        try:
            await self._ledger.wallets.mark_reconciled(db, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return result

    async def unlock_wallet(self, db: AsyncSession, user_id: str) -> Wallet:
        """Admin release of an audit lock once the discrepancy is resolved."""
        try:
            wallet = await self._ledger.wallets.set_lock(db, user_id, False, None)
            if wallet is None:
                raise WalletNotFoundError(user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Wallet unlocked for user=%s", user_id)
        return wallet
