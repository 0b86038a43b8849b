"""Global money-conservation audit.

Every minor unit inside the system is either in a wallet (balance or
pending_balance), held in escrow by an unsettled order, or held by an
in-escrow gig. Money only enters or leaves through external ledger rows
(deposits, withdrawals, withdrawal fees and their refunds), which are the
rows with neither order_id nor gig_id. Escrow, release, refund and fee rows
move money between the buckets above and net to zero.
"""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_WALLET_HOLDINGS_SQL = text(
    "SELECT COALESCE(SUM(balance + pending_balance), 0) FROM wallets"
)
_ORDER_ESCROW_SQL = text("""
    SELECT COALESCE(SUM(total_amount), 0)
    FROM orders
    WHERE NOT escrow_released AND status <> 'cancelled'
""")
_GIG_ESCROW_SQL = text(
    "SELECT COALESCE(SUM(escrow_amount), 0) FROM gigs WHERE payment_status = 'in_escrow'"
)
_NET_EXTERNAL_SQL = text("""
    SELECT COALESCE(SUM(amount), 0)
    FROM transactions
    WHERE status = 'completed' AND order_id IS NULL AND gig_id IS NULL
""")
_ORDER_TOTAL_MISMATCH_SQL = text("""
    SELECT order_number, subtotal, platform_fee, total_amount
    FROM orders
    WHERE total_amount <> subtotal + platform_fee
    ORDER BY id
""")
_UNCONFIRMED_RELEASE_SQL = text("""
    SELECT o.order_number
    FROM orders o
    WHERE o.escrow_released
      AND o.delivery_status <> 'confirmed_by_buyer'
      AND NOT EXISTS (
          SELECT 1 FROM transactions t
          WHERE t.order_id = o.id
            AND t.type = 'release'
            AND t.metadata ->> 'override' = 'true'
      )
    ORDER BY o.id
""")


async def verify_conservation(db: AsyncSession) -> list[str]:
    """Wallets + order escrow + gig escrow == net external money. Returns violations."""
    wallets = (await db.execute(_WALLET_HOLDINGS_SQL)).scalar_one()
    order_escrow = (await db.execute(_ORDER_ESCROW_SQL)).scalar_one()
    gig_escrow = (await db.execute(_GIG_ESCROW_SQL)).scalar_one()
    net_external = (await db.execute(_NET_EXTERNAL_SQL)).scalar_one()

    held = wallets + order_escrow + gig_escrow
    if held == net_external:
        return []
    msg = (
        f"Conservation violated: wallets({wallets}) + order_escrow({order_escrow}) "
        f"+ gig_escrow({gig_escrow}) = {held} != net_external={net_external}"
    )
    logger.error(msg)
    return [msg]


async def verify_order_totals(db: AsyncSession) -> list[str]:
    rows = (await db.execute(_ORDER_TOTAL_MISMATCH_SQL)).fetchall()
    violations = [
        f"Order {r.order_number}: total {r.total_amount} != "
        f"subtotal {r.subtotal} + fee {r.platform_fee}"
        for r in rows
    ]
    for msg in violations:
        logger.error(msg)
    return violations


async def verify_release_authority(db: AsyncSession) -> list[str]:
    """Released orders must be buyer-confirmed or carry an admin override row."""
    rows = (await db.execute(_UNCONFIRMED_RELEASE_SQL)).fetchall()
    violations = [
        f"Order {r.order_number}: escrow released without buyer confirmation or override"
        for r in rows
    ]
    for msg in violations:
        logger.error(msg)
    return violations


async def verify_global_invariants(db: AsyncSession) -> list[str]:
    violations = await verify_conservation(db)
    violations.extend(await verify_order_totals(db))
    violations.extend(await verify_release_authority(db))
    return violations
