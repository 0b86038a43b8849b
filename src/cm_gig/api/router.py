"""cm_gig REST API — gig posting, bids and the gig escrow cycle."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, success_response
from src.cm_gateway.auth.dependencies import get_current_user
from src.cm_gateway.user.models import CurrentUser
from src.cm_gig.application.schemas import (
    BidResponse,
    CancelGigRequest,
    CreateGigRequest,
    GigResponse,
    PlaceBidRequest,
)
from src.cm_gig.application.service import GigApplicationService

router = APIRouter(tags=["gigs"])

_service = GigApplicationService()


@router.post("/gigs", status_code=201)
async def create_gig(
    body: CreateGigRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    gig = await _service.create_gig(
        db, current_user, body.title, body.description, body.budget, body.campus
    )
    return success_response(GigResponse.from_gig(gig).model_dump(), request)


@router.get("/gigs/{gig_id}")
async def get_gig(
    gig_id: int,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    gig, bids = await _service.get_gig(db, current_user, gig_id)
    return success_response(GigResponse.from_gig(gig, bids).model_dump(), request)


@router.post("/gigs/{gig_id}/bids", status_code=201)
async def place_bid(
    gig_id: int,
    body: PlaceBidRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    bid = await _service.place_bid(db, current_user, gig_id, body.amount, body.proposal)
    return success_response(BidResponse.from_bid(bid).model_dump(), request)


@router.put("/bids/{bid_id}/accept")
async def accept_bid(
    bid_id: int,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    gig = await _service.accept_bid(db, current_user, bid_id)
    return success_response(GigResponse.from_gig(gig).model_dump(), request)


@router.put("/gigs/{gig_id}/complete")
async def complete_gig(
    gig_id: int,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    gig = await _service.complete_gig(db, current_user, gig_id)
    return success_response(GigResponse.from_gig(gig).model_dump(), request)


@router.put("/gigs/{gig_id}/cancel")
async def cancel_gig(
    gig_id: int,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    body: CancelGigRequest | None = None,
) -> ApiResponse:
    gig = await _service.cancel_gig(db, current_user, gig_id, body.reason if body else None)
    return success_response(GigResponse.from_gig(gig).model_dump(), request)
