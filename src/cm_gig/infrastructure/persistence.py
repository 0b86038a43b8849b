"""GigRepository / BidRepository — raw SQL over gigs and bids.

Transitions carry their precondition in the WHERE clause so that a stale
caller gets no row back instead of silently overwriting a settled gig.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.errors import BidNotFoundError, GigNotFoundError, InternalError
from src.cm_gig.domain.models import Bid, Gig

_GIG_COLUMNS = """
    id, client_id, title, description, budget, campus, status, payment_status,
    freelancer_id, accepted_bid_id, escrow_amount, platform_fee, cancel_reason,
    escrow_released_at, created_at, updated_at
"""

_BID_COLUMNS = "id, gig_id, freelancer_id, amount, proposal, status, created_at, updated_at"

_INSERT_GIG_SQL = text(f"""
    INSERT INTO gigs (client_id, title, description, budget, campus)
    VALUES (:client_id, :title, :description, :budget, :campus)
    RETURNING {_GIG_COLUMNS}
""")

_GET_GIG_SQL = text(f"SELECT {_GIG_COLUMNS} FROM gigs WHERE id = :id")

_LOCK_GIG_SQL = text(f"SELECT {_GIG_COLUMNS} FROM gigs WHERE id = :id FOR UPDATE")

_MARK_ESCROWED_SQL = text(f"""
    UPDATE gigs
    SET status = 'in_progress',
        payment_status = 'in_escrow',
        freelancer_id = :freelancer_id,
        accepted_bid_id = :bid_id,
        escrow_amount = :amount
    WHERE id = :id AND status = 'open' AND payment_status = 'pending'
    RETURNING {_GIG_COLUMNS}
""")

_MARK_RELEASED_SQL = text(f"""
    UPDATE gigs
    SET status = 'completed',
        payment_status = 'released',
        platform_fee = :commission,
        escrow_released_at = NOW()
    WHERE id = :id AND payment_status = 'in_escrow'
    RETURNING {_GIG_COLUMNS}
""")

_MARK_REFUNDED_SQL = text(f"""
    UPDATE gigs
    SET status = 'cancelled',
        payment_status = 'refunded',
        cancel_reason = :reason
    WHERE id = :id AND payment_status = 'in_escrow'
    RETURNING {_GIG_COLUMNS}
""")

_MARK_CANCELLED_SQL = text(f"""
    UPDATE gigs
    SET status = 'cancelled',
        cancel_reason = :reason
    WHERE id = :id AND status = 'open' AND payment_status = 'pending'
    RETURNING {_GIG_COLUMNS}
""")

_INSERT_BID_SQL = text(f"""
    INSERT INTO bids (gig_id, freelancer_id, amount, proposal)
    VALUES (:gig_id, :freelancer_id, :amount, :proposal)
    RETURNING {_BID_COLUMNS}
""")

_GET_BID_SQL = text(f"SELECT {_BID_COLUMNS} FROM bids WHERE id = :id")

_LOCK_BID_SQL = text(f"SELECT {_BID_COLUMNS} FROM bids WHERE id = :id FOR UPDATE")

_PENDING_BID_EXISTS_SQL = text("""
    SELECT 1 FROM bids
    WHERE gig_id = :gig_id AND freelancer_id = :freelancer_id AND status = 'pending'
""")

_LIST_BIDS_SQL = text(
    f"SELECT {_BID_COLUMNS} FROM bids WHERE gig_id = :gig_id ORDER BY created_at, id"
)

_MARK_ACCEPTED_SQL = text(f"""
    UPDATE bids SET status = 'accepted'
    WHERE id = :id AND status = 'pending'
    RETURNING {_BID_COLUMNS}
""")

_REJECT_PENDING_SQL = text("""
    UPDATE bids SET status = 'rejected'
    WHERE gig_id = :gig_id
      AND status = 'pending'
      AND (CAST(:except_id AS BIGINT) IS NULL OR id <> :except_id)
""")


def _row_to_gig(row: Any) -> Gig:
    return Gig(
        id=row.id,
        client_id=row.client_id,
        title=row.title,
        description=row.description,
        budget=row.budget,
        campus=row.campus,
        status=row.status,
        payment_status=row.payment_status,
        freelancer_id=row.freelancer_id,
        accepted_bid_id=row.accepted_bid_id,
        escrow_amount=row.escrow_amount,
        platform_fee=row.platform_fee,
        cancel_reason=row.cancel_reason,
        escrow_released_at=row.escrow_released_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_bid(row: Any) -> Bid:
    return Bid(
        id=row.id,
        gig_id=row.gig_id,
        freelancer_id=row.freelancer_id,
        amount=row.amount,
        proposal=row.proposal,
        status=row.status,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class GigRepository:
    async def create_gig(
        self,
        db: AsyncSession,
        client_id: str,
        title: str,
        description: str | None,
        budget: int,
        campus: str | None,
    ) -> Gig:
        row = (
            await db.execute(
                _INSERT_GIG_SQL,
                {
                    "client_id": client_id,
                    "title": title,
                    "description": description,
                    "budget": budget,
                    "campus": campus,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Gig insert returned no rows")
        return _row_to_gig(row)

    async def get(self, db: AsyncSession, gig_id: int) -> Gig | None:
        row = (await db.execute(_GET_GIG_SQL, {"id": gig_id})).fetchone()
        return _row_to_gig(row) if row else None

    async def lock_for_update(self, db: AsyncSession, gig_id: int) -> Gig | None:
        row = (await db.execute(_LOCK_GIG_SQL, {"id": gig_id})).fetchone()
        return _row_to_gig(row) if row else None

    async def _transition(self, db: AsyncSession, sql: Any, params: dict[str, Any]) -> Gig:
        row = (await db.execute(sql, params)).fetchone()
        if row is None:
            raise GigNotFoundError(params["id"])
        return _row_to_gig(row)

    async def mark_escrowed(
        self, db: AsyncSession, gig_id: int, freelancer_id: str, bid_id: int, amount: int
    ) -> Gig:
        return await self._transition(
            db,
            _MARK_ESCROWED_SQL,
            {"id": gig_id, "freelancer_id": freelancer_id, "bid_id": bid_id, "amount": amount},
        )

    async def mark_released(self, db: AsyncSession, gig_id: int, commission: int) -> Gig:
        return await self._transition(
            db, _MARK_RELEASED_SQL, {"id": gig_id, "commission": commission}
        )

    async def mark_refunded(self, db: AsyncSession, gig_id: int, reason: str | None) -> Gig:
        return await self._transition(db, _MARK_REFUNDED_SQL, {"id": gig_id, "reason": reason})

    async def mark_cancelled(self, db: AsyncSession, gig_id: int, reason: str | None) -> Gig:
        return await self._transition(db, _MARK_CANCELLED_SQL, {"id": gig_id, "reason": reason})


class BidRepository:
    async def create_bid(
        self,
        db: AsyncSession,
        gig_id: int,
        freelancer_id: str,
        amount: int,
        proposal: str | None,
    ) -> Bid:
        row = (
            await db.execute(
                _INSERT_BID_SQL,
                {
                    "gig_id": gig_id,
                    "freelancer_id": freelancer_id,
                    "amount": amount,
                    "proposal": proposal,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Bid insert returned no rows")
        return _row_to_bid(row)

    async def get(self, db: AsyncSession, bid_id: int) -> Bid | None:
        row = (await db.execute(_GET_BID_SQL, {"id": bid_id})).fetchone()
        return _row_to_bid(row) if row else None

    async def lock_for_update(self, db: AsyncSession, bid_id: int) -> Bid | None:
        row = (await db.execute(_LOCK_BID_SQL, {"id": bid_id})).fetchone()
        return _row_to_bid(row) if row else None

    async def has_pending_bid(
        self, db: AsyncSession, gig_id: int, freelancer_id: str
    ) -> bool:
        row = (
            await db.execute(
                _PENDING_BID_EXISTS_SQL, {"gig_id": gig_id, "freelancer_id": freelancer_id}
            )
        ).fetchone()
        return row is not None

    async def list_for_gig(self, db: AsyncSession, gig_id: int) -> list[Bid]:
        rows = (await db.execute(_LIST_BIDS_SQL, {"gig_id": gig_id})).fetchall()
        return [_row_to_bid(row) for row in rows]

    async def mark_accepted(self, db: AsyncSession, bid_id: int) -> Bid:
        row = (await db.execute(_MARK_ACCEPTED_SQL, {"id": bid_id})).fetchone()
        if row is None:
            raise BidNotFoundError(bid_id)
        return _row_to_bid(row)

    async def reject_pending(
        self, db: AsyncSession, gig_id: int, except_bid_id: int | None = None
    ) -> int:
        result = await db.execute(
            _REJECT_PENDING_SQL, {"gig_id": gig_id, "except_id": except_bid_id}
        )
        return result.rowcount or 0
