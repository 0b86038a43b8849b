"""Domain models for cm_gig — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.cm_common.enums import BidStatus, GigPaymentStatus, GigStatus


@dataclass
class Gig:
    id: int
    client_id: str
    title: str
    budget: int                     # minor units, advisory only
    description: str | None = None
    campus: str | None = None
    status: str = GigStatus.OPEN.value
    payment_status: str = GigPaymentStatus.PENDING.value
    freelancer_id: str | None = None
    accepted_bid_id: int | None = None
    escrow_amount: int = 0          # accepted bid amount held in escrow
    platform_fee: int = 0           # commission retained on release
    cancel_reason: str | None = None
    escrow_released_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def payout(self) -> int:
        return self.escrow_amount - self.platform_fee


@dataclass
class Bid:
    id: int
    gig_id: int
    freelancer_id: str
    amount: int
    proposal: str | None = None
    status: str = BidStatus.PENDING.value
    created_at: datetime | None = None
    updated_at: datetime | None = None
