"""Pydantic schemas for cm_wallet API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.cm_common.cents import minor_to_display
from src.cm_common.enums import TransactionStatus, TransactionType
from src.cm_wallet.domain.models import Transaction, Wallet


def _iso(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment else None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class DepositRequest(BaseModel):
    amount: int = Field(..., gt=0, description="Amount to deposit in minor units")


class WithdrawRequest(BaseModel):
    amount: int = Field(..., gt=0, description="Amount to withdraw in minor units")


class PaymentWebhookEvent(BaseModel):
    """Gateway callback body. Only ``event`` and ``data.reference`` are relied on."""

    event: str
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def reference(self) -> str | None:
        ref = self.data.get("reference")
        return str(ref) if ref is not None else None


class TransactionQuery(BaseModel):
    type: TransactionType | None = None
    status: TransactionStatus | None = None
    since: datetime | None = None
    until: datetime | None = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class WalletResponse(BaseModel):
    user_id: str
    balance: int
    balance_display: str
    pending_balance: int
    pending_balance_display: str
    total_earned: int
    total_spent: int
    is_locked: bool
    last_withdrawal: str | None
    last_transaction_at: str | None

    @classmethod
    def from_wallet(cls, w: Wallet) -> "WalletResponse":
        return cls(
            user_id=w.user_id,
            balance=w.balance,
            balance_display=minor_to_display(w.balance),
            pending_balance=w.pending_balance,
            pending_balance_display=minor_to_display(w.pending_balance),
            total_earned=w.total_earned,
            total_spent=w.total_spent,
            is_locked=w.is_locked,
            last_withdrawal=_iso(w.last_withdrawal),
            last_transaction_at=_iso(w.last_transaction_at),
        )


class TransactionItem(BaseModel):
    id: int
    type: str
    amount: int
    amount_display: str
    fee: int
    status: str
    reference: str | None
    order_id: int | None
    gig_id: int | None
    description: str | None
    created_at: str | None
    settled_at: str | None

    @classmethod
    def from_transaction(cls, t: Transaction) -> "TransactionItem":
        return cls(
            id=t.id,
            type=str(getattr(t.type, "value", t.type)),
            amount=t.amount,
            amount_display=minor_to_display(t.amount),
            fee=t.fee,
            status=str(getattr(t.status, "value", t.status)),
            reference=t.reference,
            order_id=t.order_id,
            gig_id=t.gig_id,
            description=t.description,
            created_at=_iso(t.created_at),
            settled_at=_iso(t.settled_at),
        )


class TransactionListResponse(BaseModel):
    items: list[TransactionItem]
    total: int
    page: int
    limit: int
    pages: int


class WalletSummaryResponse(BaseModel):
    wallet: WalletResponse
    pending_transactions: int
    completed_transactions: int
    failed_transactions: int
    earnings_last_30_days: int
    earnings_last_30_days_display: str


class DepositResponse(BaseModel):
    reference: str
    amount: int
    amount_display: str
    status: str
    balance: int


class WithdrawResponse(BaseModel):
    reference: str
    amount: int
    fee: int
    status: str
    balance: int
    balance_display: str
    pending_balance: int


class WebhookAck(BaseModel):
    event: str
    reference: str | None
    applied: bool
