"""Fee preview — display-time estimate only; checkout recomputes with the live schedule."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, success_response
from src.cm_fee.application.schemas import FeePreviewResponse
from src.cm_fee.domain.calculator import calculate_platform_fee
from src.cm_fee.infrastructure.persistence import FeeScheduleRepository
from src.cm_gateway.auth.dependencies import get_current_user
from src.cm_gateway.user.models import CurrentUser

router = APIRouter(prefix="/fees", tags=["fees"])

_schedules = FeeScheduleRepository()


@router.get("/preview")
async def preview_fee(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    amount: int = Query(..., ge=0, description="Order subtotal in minor units"),
    campus: str | None = Query(None, description="Defaults to the caller's campus"),
) -> ApiResponse:
    schedule = await _schedules.get_active(db)
    breakdown = calculate_platform_fee(amount, campus or current_user.campus, schedule)
    return success_response(FeePreviewResponse.from_breakdown(breakdown).model_dump(), request)
