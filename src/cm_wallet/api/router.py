"""cm_wallet REST API — wallet reads, deposit, withdraw, gateway webhook."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.database import get_db_session
from src.cm_common.enums import TransactionStatus, TransactionType
from src.cm_common.response import ApiResponse, success_response
from src.cm_gateway.auth.dependencies import get_current_user
from src.cm_gateway.user.models import CurrentUser
from src.cm_wallet.application.schemas import (
    DepositRequest,
    TransactionQuery,
    WithdrawRequest,
)
from src.cm_wallet.application.service import WalletApplicationService

router = APIRouter(prefix="/wallet", tags=["wallet"])

_service = WalletApplicationService()


@router.get("")
async def get_wallet(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_wallet(db, current_user.id)
    return success_response(data.model_dump(), request)


@router.get("/summary")
async def get_summary(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_summary(db, current_user.id)
    return success_response(data.model_dump(), request)


@router.get("/transactions")
async def list_transactions(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    type: TransactionType | None = Query(None),
    status: TransactionStatus | None = Query(None),
    since: datetime | None = Query(None, description="ISO8601 lower bound"),
    until: datetime | None = Query(None, description="ISO8601 upper bound"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
) -> ApiResponse:
    query = TransactionQuery(
        type=type, status=status, since=since, until=until, page=page, limit=limit
    )
    data = await _service.list_transactions(db, current_user.id, query)
    return success_response(data.model_dump(), request)


@router.post("/deposit", status_code=201)
async def deposit(
    body: DepositRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.deposit(db, current_user.id, body.amount)
    return success_response(data.model_dump(), request)


@router.post("/withdraw", status_code=201)
async def withdraw(
    body: WithdrawRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.withdraw(db, current_user.id, body.amount)
    return success_response(data.model_dump(), request)


@router.post("/webhook")
async def payment_webhook(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    x_payment_signature: Annotated[str | None, Header()] = None,
) -> ApiResponse:
    """Gateway callback; authenticated by signature, not by bearer token."""
    raw = await request.body()
    data = await _service.handle_webhook(db, raw, x_payment_signature)
    return success_response(data.model_dump(), request)
