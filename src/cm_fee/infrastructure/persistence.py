"""FeeScheduleRepository — reads the active admin-configured schedule."""

import logging
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cm_fee.domain.models import FeeSchedule

logger = logging.getLogger(__name__)

_GET_ACTIVE_SQL = text("""
    SELECT base_percentage_bps, minimum_fee, maximum_fee, free_threshold, campus_discounts
    FROM fee_schedules
    WHERE is_active
    ORDER BY id DESC
    LIMIT 1
""")


def default_fee_schedule() -> FeeSchedule:
    return FeeSchedule(
        base_percentage_bps=settings.FEE_BASE_PERCENTAGE_BPS,
        minimum_fee=settings.FEE_MINIMUM,
        maximum_fee=settings.FEE_MAXIMUM,
        free_threshold=settings.FEE_FREE_THRESHOLD,
    )


def _row_to_schedule(row: Any) -> FeeSchedule:
    discounts = {str(k): int(v) for k, v in (row.campus_discounts or {}).items()}
    return FeeSchedule(
        base_percentage_bps=row.base_percentage_bps,
        minimum_fee=row.minimum_fee,
        maximum_fee=row.maximum_fee,
        campus_discounts=discounts,
        free_threshold=row.free_threshold,
    )


class FeeScheduleRepository:
    async def get_active(self, db: AsyncSession) -> FeeSchedule:
        row = (await db.execute(_GET_ACTIVE_SQL)).fetchone()
        if row is None:
            logger.debug("No active fee schedule row, using settings defaults")
            return default_fee_schedule()
        return _row_to_schedule(row)
