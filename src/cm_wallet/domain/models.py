"""Domain models for cm_wallet — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

PLATFORM_FEE_USER_ID = "PLATFORM_FEE"


@dataclass
class Wallet:
    id: int
    user_id: str
    balance: int                # minor units, spendable
    pending_balance: int        # minor units, withdrawals awaiting settlement
    total_earned: int = 0
    total_spent: int = 0
    is_locked: bool = False
    locked_reason: str | None = None
    last_withdrawal: datetime | None = None
    last_transaction_at: datetime | None = None
    last_reconciled_at: datetime | None = None
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def holdings(self) -> int:
        """What the ledger must sum to: spendable plus in-flight withdrawals."""
        return self.balance + self.pending_balance


@dataclass
class Transaction:
    id: int                          # BIGSERIAL
    user_id: str
    wallet_id: int
    type: str                        # TransactionType value
    amount: int                      # signed: + credit, - debit
    status: str                      # TransactionStatus value
    reference: str | None = None
    fee: int = 0
    order_id: int | None = None
    gig_id: int | None = None
    description: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    settled_at: datetime | None = None

    @property
    def is_external(self) -> bool:
        """Money entering or leaving the platform (not tied to an order or gig)."""
        return self.order_id is None and self.gig_id is None


@dataclass
class TransactionFilter:
    type: str | None = None
    status: str | None = None
    since: datetime | None = None
    until: datetime | None = None
