"""cm_cart REST API — buyer's cart, all endpoints require JWT authentication."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_cart.application.schemas import AddCartItemRequest, UpdateCartItemRequest
from src.cm_cart.application.service import CartApplicationService
from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, success_response
from src.cm_gateway.auth.dependencies import get_current_user
from src.cm_gateway.user.models import CurrentUser

router = APIRouter(prefix="/cart", tags=["cart"])

_service = CartApplicationService()


@router.get("")
async def get_cart(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_cart(db, current_user)
    return success_response(data.model_dump(), request)


@router.post("/items", status_code=201)
async def add_item(
    body: AddCartItemRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    item = await _service.add_item(db, current_user, body.product_id, body.quantity)
    return success_response(
        {"id": item.id, "product_id": item.product_id,
         "quantity": item.quantity, "price": item.price},
        request,
    )


@router.put("/items/{item_id}")
async def update_item(
    item_id: int,
    body: UpdateCartItemRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    item = await _service.update_item(db, current_user, item_id, body.quantity)
    return success_response(
        {"id": item.id, "quantity": item.quantity, "price": item.price}, request
    )


@router.delete("/items/{item_id}")
async def remove_item(
    item_id: int,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    await _service.remove_item(db, current_user, item_id)
    return success_response({"id": item_id, "removed": True}, request)


@router.delete("")
async def clear_cart(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    removed = await _service.clear(db, current_user)
    return success_response({"removed": removed}, request)
