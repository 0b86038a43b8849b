"""WalletApplicationService — thin composition layer over WalletLedger.

Mutating operations commit or roll back here; reads run without an explicit
transaction.
"""

import logging

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cm_common.cents import minor_to_display
from src.cm_common.datetime_utils import days_ago
from src.cm_common.enums import TransactionStatus
from src.cm_common.errors import InternalError, InvalidWebhookPayloadError
from src.cm_notify.dispatcher import NotificationDispatcher
from src.cm_wallet.application import webhook
from src.cm_wallet.application.ledger import WalletLedger
from src.cm_wallet.application.schemas import (
    DepositResponse,
    PaymentWebhookEvent,
    TransactionItem,
    TransactionListResponse,
    TransactionQuery,
    WalletResponse,
    WalletSummaryResponse,
    WebhookAck,
    WithdrawResponse,
)
from src.cm_wallet.domain.models import Transaction, TransactionFilter

logger = logging.getLogger(__name__)


def _reference(tx: Transaction) -> str:
    if tx.reference is None:
        raise InternalError(f"transaction {tx.id} has no reference")
    return tx.reference


class WalletApplicationService:
    def __init__(
        self,
        ledger: WalletLedger | None = None,
        notifier: NotificationDispatcher | None = None,
    ) -> None:
        self._ledger = ledger or WalletLedger()
        self._notifier = notifier or NotificationDispatcher()

    async def get_wallet(self, db: AsyncSession, user_id: str) -> WalletResponse:
        try:
            wallet = await self._ledger.get_or_create_wallet(db, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return WalletResponse.from_wallet(wallet)

    async def get_summary(self, db: AsyncSession, user_id: str) -> WalletSummaryResponse:
        wallet = await self._ledger.get_wallet(db, user_id)
        counts = await self._ledger.transactions.count_by_status(db, user_id)
        earned = await self._ledger.transactions.sum_released_since(db, user_id, days_ago(30))
        return WalletSummaryResponse(
            wallet=WalletResponse.from_wallet(wallet),
            pending_transactions=counts.get(TransactionStatus.PENDING.value, 0),
            completed_transactions=counts.get(TransactionStatus.COMPLETED.value, 0),
            failed_transactions=counts.get(TransactionStatus.FAILED.value, 0),
            earnings_last_30_days=earned,
            earnings_last_30_days_display=minor_to_display(earned),
        )

    async def list_transactions(
        self, db: AsyncSession, user_id: str, query: TransactionQuery
    ) -> TransactionListResponse:
        filters = TransactionFilter(
            type=query.type.value if query.type else None,
            status=query.status.value if query.status else None,
            since=query.since,
            until=query.until,
        )
        offset = (query.page - 1) * query.limit
        rows = await self._ledger.transactions.list_for_user(
            db, user_id, filters, query.limit, offset
        )
        total = await self._ledger.transactions.count_for_user(db, user_id, filters)
        return TransactionListResponse(
            items=[TransactionItem.from_transaction(t) for t in rows],
            total=total,
            page=query.page,
            limit=query.limit,
            pages=(total + query.limit - 1) // query.limit,
        )

    async def deposit(self, db: AsyncSession, user_id: str, amount: int) -> DepositResponse:
        try:
            tx = await self._ledger.deposit(db, user_id, amount)
            reference = _reference(tx)
            if settings.SIMULATE_PAYMENTS:
                tx, _ = await self._ledger.confirm_deposit(db, reference)
            wallet = await self._ledger.get_wallet(db, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return DepositResponse(
            reference=reference,
            amount=amount,
            amount_display=minor_to_display(amount),
            status=str(getattr(tx.status, "value", tx.status)),
            balance=wallet.balance,
        )

    async def withdraw(self, db: AsyncSession, user_id: str, amount: int) -> WithdrawResponse:
        try:
            wallet, withdrawal, _fee_tx = await self._ledger.withdraw(db, user_id, amount)
            reference = _reference(withdrawal)
            status = withdrawal.status
            if settings.SIMULATE_PAYMENTS:
                withdrawal, _ = await self._ledger.settle_withdrawal(
                    db, reference, success=True
                )
                status = withdrawal.status
                wallet = await self._ledger.get_wallet(db, user_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        await self._notifier.publish(
            "wallet.withdrawal_requested", [user_id],
            {"reference": reference, "amount": amount},
        )
        return WithdrawResponse(
            reference=reference,
            amount=amount,
            fee=withdrawal.fee,
            status=str(getattr(status, "value", status)),
            balance=wallet.balance,
            balance_display=minor_to_display(wallet.balance),
            pending_balance=wallet.pending_balance,
        )

    async def handle_webhook(
        self, db: AsyncSession, raw_body: bytes, signature: str | None
    ) -> WebhookAck:
        webhook.verify_signature(raw_body, signature)
        try:
            event = PaymentWebhookEvent.model_validate_json(raw_body)
        except ValidationError as exc:
            raise InvalidWebhookPayloadError() from exc
        reference = event.reference
        if reference is None:
            logger.warning("Webhook %s without reference ignored", event.event)
            return WebhookAck(event=event.event, reference=None, applied=False)

        try:
            if event.event == webhook.CHARGE_SUCCESS:
                tx, applied = await self._ledger.confirm_deposit(db, reference, success=True)
            elif event.event == webhook.CHARGE_FAILED:
                tx, applied = await self._ledger.confirm_deposit(db, reference, success=False)
            elif event.event == webhook.TRANSFER_SUCCESS:
                tx, applied = await self._ledger.settle_withdrawal(db, reference, success=True)
            elif event.event == webhook.TRANSFER_FAILED:
                tx, applied = await self._ledger.settle_withdrawal(db, reference, success=False)
            else:
                logger.info("Unhandled webhook event %s", event.event)
                return WebhookAck(event=event.event, reference=reference, applied=False)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if applied:
            await self._notifier.publish(
                f"wallet.{event.event}", [tx.user_id],
                {"reference": reference, "amount": abs(tx.amount)},
            )
        return WebhookAck(event=event.event, reference=reference, applied=applied)
