from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_fee.domain.models import FeeSchedule


class FeeScheduleRepositoryProtocol(Protocol):
    async def get_active(self, db: AsyncSession) -> FeeSchedule: ...
