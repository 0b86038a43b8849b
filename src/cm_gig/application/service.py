"""GigApplicationService — gig posting, bidding and the gig escrow cycle.

Money moves at three points only, each through WalletLedger inside the same
unit of work as the gig row update:

  accept_bid    client  -bid amount            (escrow)
  complete_gig  freelancer  +amount-commission (release)
                PLATFORM_FEE  +commission      (fee)
  cancel_gig    client  +escrow_amount         (refund, only when in escrow)

The gig row is locked FOR UPDATE before its payment_status is inspected.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cm_common.cents import bps_of_ceil
from src.cm_common.enums import BidStatus, GigPaymentStatus, GigStatus, TransactionType
from src.cm_common.errors import (
    AlreadySettledError,
    BidNotFoundError,
    DuplicateBidError,
    GigNotFoundError,
    GigNotOpenError,
    InvalidAmountError,
    NotAuthorizedError,
    OutOfOrderTransitionError,
)
from src.cm_common.references import gig_reference
from src.cm_gateway.user.models import CurrentUser
from src.cm_gig.domain.models import Bid, Gig
from src.cm_gig.domain.payment_state import validate_payment_transition
from src.cm_gig.domain.repository import BidRepositoryProtocol, GigRepositoryProtocol
from src.cm_gig.infrastructure.persistence import BidRepository, GigRepository
from src.cm_notify.dispatcher import NotificationDispatcher
from src.cm_wallet.application.ledger import WalletLedger
from src.cm_wallet.domain.models import PLATFORM_FEE_USER_ID

logger = logging.getLogger(__name__)


class GigApplicationService:
    def __init__(
        self,
        gigs: GigRepositoryProtocol | None = None,
        bids: BidRepositoryProtocol | None = None,
        ledger: WalletLedger | None = None,
        notifier: NotificationDispatcher | None = None,
    ) -> None:
        self._gigs: GigRepositoryProtocol = gigs or GigRepository()
        self._bids: BidRepositoryProtocol = bids or BidRepository()
        self._ledger = ledger or WalletLedger()
        self._notifier = notifier or NotificationDispatcher()

    async def _locked(self, db: AsyncSession, gig_id: int) -> Gig:
        gig = await self._gigs.lock_for_update(db, gig_id)
        if gig is None:
            raise GigNotFoundError(gig_id)
        return gig

    async def _notify(self, event: str, gig: Gig, recipients: list[str], **extra: Any) -> None:
        await self._notifier.publish(
            event, recipients, {"gig_id": gig.id, "title": gig.title, **extra}
        )

    async def create_gig(
        self,
        db: AsyncSession,
        client: CurrentUser,
        title: str,
        description: str | None,
        budget: int,
        campus: str | None = None,
    ) -> Gig:
        if budget <= 0:
            raise InvalidAmountError("budget must be positive")
        try:
            gig = await self._gigs.create_gig(
                db, client.id, title, description, budget, campus or client.campus
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Gig %d posted by client=%s budget=%d", gig.id, client.id, budget)
        return gig

    async def get_gig(
        self, db: AsyncSession, user: CurrentUser, gig_id: int
    ) -> tuple[Gig, list[Bid]]:
        """Return the gig; bids are visible to its client and admins only."""
        gig = await self._gigs.get(db, gig_id)
        if gig is None:
            raise GigNotFoundError(gig_id)
        if user.id == gig.client_id or user.is_admin:
            return gig, await self._bids.list_for_gig(db, gig_id)
        return gig, []

    async def place_bid(
        self,
        db: AsyncSession,
        freelancer: CurrentUser,
        gig_id: int,
        amount: int,
        proposal: str | None = None,
    ) -> Bid:
        if amount < settings.MIN_BID:
            raise InvalidAmountError(f"minimum bid is {settings.MIN_BID}")
        try:
            gig = await self._gigs.get(db, gig_id)
            if gig is None:
                raise GigNotFoundError(gig_id)
            if gig.client_id == freelancer.id:
                raise NotAuthorizedError("bid on your own gig")
            if gig.status != GigStatus.OPEN:
                raise GigNotOpenError(gig_id, gig.status)
            if await self._bids.has_pending_bid(db, gig_id, freelancer.id):
                raise DuplicateBidError(gig_id)
            bid = await self._bids.create_bid(db, gig_id, freelancer.id, amount, proposal)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Bid %d on gig %d by freelancer=%s amount=%d", bid.id, gig_id, freelancer.id, amount)
        await self._notify("gig.bid_placed", gig, [gig.client_id], bid_id=bid.id, amount=amount)
        return bid

    async def accept_bid(self, db: AsyncSession, client: CurrentUser, bid_id: int) -> Gig:
        """Accept a pending bid and move its amount from the client into escrow."""
        try:
            bid = await self._bids.get(db, bid_id)
            if bid is None:
                raise BidNotFoundError(bid_id)
            gig = await self._locked(db, bid.gig_id)
            if gig.client_id != client.id:
                raise NotAuthorizedError("accept bids on this gig")
            bid = await self._bids.lock_for_update(db, bid_id)
            if bid is None:
                raise BidNotFoundError(bid_id)
            if bid.status != BidStatus.PENDING:
                raise OutOfOrderTransitionError(bid.status, BidStatus.ACCEPTED.value)
            if gig.status != GigStatus.OPEN:
                raise GigNotOpenError(gig.id, gig.status)
            validate_payment_transition(gig.payment_status, GigPaymentStatus.IN_ESCROW)

            await self._ledger.lock_wallet(db, client.id)
            await self._ledger.debit(
                db,
                client.id,
                bid.amount,
                TransactionType.ESCROW,
                reference=gig_reference("escrow", gig.id),
                gig_id=gig.id,
                description=f"Payment held in escrow for gig: {gig.title}",
                metadata={"bid_id": bid.id, "freelancer_id": bid.freelancer_id},
            )
            await self._bids.mark_accepted(db, bid.id)
            rejected = await self._bids.reject_pending(db, gig.id, except_bid_id=bid.id)
            escrowed = await self._gigs.mark_escrowed(
                db, gig.id, bid.freelancer_id, bid.id, bid.amount
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Gig %d bid %d accepted: escrow=%d freelancer=%s rejected=%d",
            gig.id, bid.id, bid.amount, bid.freelancer_id, rejected,
        )
        await self._notify(
            "gig.bid_accepted", escrowed, [bid.freelancer_id, client.id], amount=bid.amount
        )
        return escrowed

    async def complete_gig(self, db: AsyncSession, client: CurrentUser, gig_id: int) -> Gig:
        """Release escrow to the freelancer minus commission. Repeating it is a no-op."""
        try:
            gig = await self._locked(db, gig_id)
            if gig.client_id != client.id:
                raise NotAuthorizedError("complete this gig")
            if gig.payment_status == GigPaymentStatus.RELEASED:
                await db.commit()
                logger.info("Gig %d already released, complete ignored", gig_id)
                return gig
            validate_payment_transition(gig.payment_status, GigPaymentStatus.RELEASED)
            if gig.freelancer_id is None:
                raise OutOfOrderTransitionError(gig.status, GigStatus.COMPLETED.value)

            commission = bps_of_ceil(gig.escrow_amount, settings.GIG_COMMISSION_BPS)
            released = await self._gigs.mark_released(db, gig_id, commission)
            await self._ledger.credit(
                db,
                gig.freelancer_id,
                gig.escrow_amount - commission,
                TransactionType.RELEASE,
                reference=gig_reference("release", gig_id),
                gig_id=gig_id,
                description=f"Payment released for gig: {gig.title}",
                metadata={"escrow_amount": gig.escrow_amount, "commission": commission},
            )
            if commission > 0:
                await self._ledger.credit(
                    db,
                    PLATFORM_FEE_USER_ID,
                    commission,
                    TransactionType.FEE,
                    reference=gig_reference("fee", gig_id),
                    gig_id=gig_id,
                    description=f"Commission for gig {gig_id}",
                    metadata={"client_id": gig.client_id},
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Gig %d released: freelancer=%s payout=%d commission=%d",
            gig_id, gig.freelancer_id, released.payout, commission,
        )
        await self._notify(
            "gig.completed", released, [gig.freelancer_id], amount=released.payout
        )
        return released

    async def cancel_gig(
        self, db: AsyncSession, client: CurrentUser, gig_id: int, reason: str | None = None
    ) -> Gig:
        try:
            gig = await self._locked(db, gig_id)
            if gig.client_id != client.id:
                raise NotAuthorizedError("cancel this gig")
            payment = GigPaymentStatus(gig.payment_status)
            if payment in (GigPaymentStatus.RELEASED, GigPaymentStatus.REFUNDED):
                raise AlreadySettledError(f"Gig {gig_id}")
            if payment == GigPaymentStatus.IN_ESCROW:
                cancelled = await self._gigs.mark_refunded(db, gig_id, reason)
                await self._ledger.refund(
                    db,
                    gig.client_id,
                    gig.escrow_amount,
                    reference=gig_reference("refund", gig_id),
                    gig_id=gig_id,
                    description=f"Refund for cancelled gig: {gig.title}",
                    metadata={"reason": reason, "freelancer_id": gig.freelancer_id},
                )
                notify = [gig.freelancer_id] if gig.freelancer_id else []
            else:
                if gig.status != GigStatus.OPEN:
                    raise OutOfOrderTransitionError(gig.status, GigStatus.CANCELLED.value)
                cancelled = await self._gigs.mark_cancelled(db, gig_id, reason)
                await self._bids.reject_pending(db, gig_id)
                notify = []
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Gig %d cancelled by client=%s refunded=%d",
            gig_id, client.id, gig.escrow_amount if payment == GigPaymentStatus.IN_ESCROW else 0,
        )
        if notify:
            await self._notify("gig.cancelled", cancelled, notify, reason=reason)
        return cancelled
