# src/cm_admin/application/service.py
"""Admin application service: audits, wallet unlocks and dispute resolution."""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_admin.domain.global_invariants import verify_global_invariants
from src.cm_gateway.user.models import CurrentUser
from src.cm_order.application.escrow import EscrowService
from src.cm_order.application.schemas import OrderResponse
from src.cm_wallet.application.reconciliation import ReconciliationService
from src.cm_wallet.application.schemas import WalletResponse


class AdminService:
    def __init__(
        self,
        reconciliation: ReconciliationService | None = None,
        escrow: EscrowService | None = None,
    ) -> None:
        self._reconciliation = reconciliation or ReconciliationService()
        self._escrow = escrow or EscrowService()

    async def reconcile_wallet(self, db: AsyncSession, user_id: str) -> dict[str, Any]:
        result = await self._reconciliation.reconcile_wallet(db, user_id)
        return {
            "user_id": result.user_id,
            "balance": result.balance,
            "pending_balance": result.pending_balance,
            "ledger_total": result.ledger_total,
            "ok": result.ok,
        }

    async def unlock_wallet(self, db: AsyncSession, user_id: str) -> WalletResponse:
        wallet = await self._reconciliation.unlock_wallet(db, user_id)
        return WalletResponse.from_wallet(wallet)

    async def verify_all_invariants(self, db: AsyncSession) -> dict[str, object]:
        violations = await verify_global_invariants(db)
        return {"ok": len(violations) == 0, "violations": violations}

    async def release_order(
        self, db: AsyncSession, order_id: int, admin: CurrentUser, note: str | None
    ) -> OrderResponse:
        order = await self._escrow.admin_release(db, order_id, admin, note)
        return OrderResponse.from_order(order)

    async def refund_order(
        self, db: AsyncSession, order_id: int, admin: CurrentUser, note: str | None
    ) -> OrderResponse:
        order = await self._escrow.admin_refund(db, order_id, admin, note)
        return OrderResponse.from_order(order)
