# src/cm_admin/api/router.py
"""Admin REST API."""
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_admin.application.service import AdminService
from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, success_response
from src.cm_gateway.auth.dependencies import require_admin
from src.cm_gateway.user.models import CurrentUser
from src.cm_order.application.schemas import AdminOverrideRequest

router = APIRouter(prefix="/admin", tags=["admin"])
_service = AdminService()


@router.get("/wallets/{user_id}/reconcile")
async def reconcile_wallet(
    user_id: str,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.reconcile_wallet(db, user_id)
    return success_response(result, request)


@router.post("/wallets/{user_id}/unlock")
async def unlock_wallet(
    user_id: str,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    wallet = await _service.unlock_wallet(db, user_id)
    return success_response(wallet.model_dump(), request)


@router.get("/invariants")
async def verify_invariants(
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _service.verify_all_invariants(db)
    return success_response(result, request)


@router.post("/orders/{order_id}/release")
async def release_order(
    order_id: int,
    body: AdminOverrideRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _service.release_order(db, order_id, admin, body.note)
    return success_response(order.model_dump(), request)


@router.post("/orders/{order_id}/refund")
async def refund_order(
    order_id: int,
    body: AdminOverrideRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _service.refund_order(db, order_id, admin, body.note)
    return success_response(order.model_dump(), request)
