"""Pydantic schemas for cm_gig API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.cm_common.cents import minor_to_display
from src.cm_gig.domain.models import Bid, Gig


def _iso(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment else None


def _val(value: Any) -> str:
    return str(getattr(value, "value", value))


class CreateGigRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=5000)
    budget: int = Field(..., gt=0, description="Advisory budget in minor units")
    campus: str | None = Field(None, max_length=100)


class PlaceBidRequest(BaseModel):
    amount: int = Field(..., gt=0, description="Bid amount in minor units")
    proposal: str | None = Field(None, max_length=5000)


class CancelGigRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class BidResponse(BaseModel):
    id: int
    gig_id: int
    freelancer_id: str
    amount: int
    amount_display: str
    proposal: str | None
    status: str
    created_at: str | None

    @classmethod
    def from_bid(cls, bid: Bid) -> "BidResponse":
        return cls(
            id=bid.id,
            gig_id=bid.gig_id,
            freelancer_id=bid.freelancer_id,
            amount=bid.amount,
            amount_display=minor_to_display(bid.amount),
            proposal=bid.proposal,
            status=_val(bid.status),
            created_at=_iso(bid.created_at),
        )


class GigResponse(BaseModel):
    id: int
    client_id: str
    title: str
    description: str | None
    budget: int
    campus: str | None
    status: str
    payment_status: str
    freelancer_id: str | None
    accepted_bid_id: int | None
    escrow_amount: int
    platform_fee: int
    cancel_reason: str | None
    escrow_released_at: str | None
    created_at: str | None
    bids: list[BidResponse] = Field(default_factory=list)

    @classmethod
    def from_gig(cls, gig: Gig, bids: list[Bid] | None = None) -> "GigResponse":
        return cls(
            id=gig.id,
            client_id=gig.client_id,
            title=gig.title,
            description=gig.description,
            budget=gig.budget,
            campus=gig.campus,
            status=_val(gig.status),
            payment_status=_val(gig.payment_status),
            freelancer_id=gig.freelancer_id,
            accepted_bid_id=gig.accepted_bid_id,
            escrow_amount=gig.escrow_amount,
            platform_fee=gig.platform_fee,
            cancel_reason=gig.cancel_reason,
            escrow_released_at=_iso(gig.escrow_released_at),
            created_at=_iso(gig.created_at),
            bids=[BidResponse.from_bid(b) for b in bids or []],
        )
