"""Repository Protocols for gigs and bids."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_gig.domain.models import Bid, Gig


class GigRepositoryProtocol(Protocol):
    async def create_gig(
        self,
        db: AsyncSession,
        client_id: str,
        title: str,
        description: str | None,
        budget: int,
        campus: str | None,
    ) -> Gig: ...

    async def get(self, db: AsyncSession, gig_id: int) -> Gig | None: ...

    async def lock_for_update(self, db: AsyncSession, gig_id: int) -> Gig | None: ...

    async def mark_escrowed(
        self, db: AsyncSession, gig_id: int, freelancer_id: str, bid_id: int, amount: int
    ) -> Gig: ...

    async def mark_released(self, db: AsyncSession, gig_id: int, commission: int) -> Gig: ...

    async def mark_refunded(self, db: AsyncSession, gig_id: int, reason: str | None) -> Gig: ...

    async def mark_cancelled(self, db: AsyncSession, gig_id: int, reason: str | None) -> Gig: ...


class BidRepositoryProtocol(Protocol):
    async def create_bid(
        self,
        db: AsyncSession,
        gig_id: int,
        freelancer_id: str,
        amount: int,
        proposal: str | None,
    ) -> Bid: ...

    async def get(self, db: AsyncSession, bid_id: int) -> Bid | None: ...

    async def lock_for_update(self, db: AsyncSession, bid_id: int) -> Bid | None: ...

    async def has_pending_bid(
        self, db: AsyncSession, gig_id: int, freelancer_id: str
    ) -> bool: ...

    async def list_for_gig(self, db: AsyncSession, gig_id: int) -> list[Bid]: ...

    async def mark_accepted(self, db: AsyncSession, bid_id: int) -> Bid: ...

    async def reject_pending(
        self, db: AsyncSession, gig_id: int, except_bid_id: int | None = None
    ) -> int: ...
