"""cm_order REST API — checkout, order reads, and party-driven escrow transitions."""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.cents import minor_to_display
from src.cm_common.database import get_db_session
from src.cm_common.enums import OrderStatus
from src.cm_common.response import ApiResponse, success_response
from src.cm_gateway.auth.dependencies import get_current_user
from src.cm_gateway.user.models import CurrentUser
from src.cm_order.application import service as order_queries
from src.cm_order.application.escrow import EscrowService
from src.cm_order.application.factory import OrderFactory
from src.cm_order.application.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    ConfirmDeliveryRequest,
    OrderResponse,
    ReasonRequest,
    UpdateDeliveryRequest,
)

router = APIRouter(prefix="/orders", tags=["orders"])

_factory = OrderFactory()
_escrow = EscrowService()


@router.post("", status_code=201)
async def checkout(
    body: CheckoutRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    result = await _factory.checkout(
        db, current_user, body.delivery_method, body.delivery_address, body.notes
    )
    data = CheckoutResponse(
        orders=[
            OrderResponse.from_order(o, result.items.get(o.id)) for o in result.orders
        ],
        total_orders=len(result.orders),
        grand_total=result.grand_total,
        grand_total_display=minor_to_display(result.grand_total),
    )
    return success_response(data.model_dump(), request)


@router.get("")
async def list_orders(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    role: Literal["buyer", "seller"] = Query("buyer"),
    status: OrderStatus | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> ApiResponse:
    data = await order_queries.list_orders(
        db, current_user, role, status.value if status else None, page, limit
    )
    return success_response(data.model_dump(), request)


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await order_queries.get_order(db, current_user, order_id)
    return success_response(data.model_dump(), request)


@router.put("/{order_id}/delivery-status")
async def update_delivery_status(
    order_id: int,
    body: UpdateDeliveryRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _escrow.advance_delivery(
        db, order_id, current_user, body.delivery_status, body.seller_notes
    )
    return success_response(OrderResponse.from_order(order).model_dump(), request)


@router.put("/{order_id}/confirm-delivery")
async def confirm_delivery(
    order_id: int,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    body: ConfirmDeliveryRequest | None = None,
) -> ApiResponse:
    buyer_notes = body.buyer_notes if body else None
    order = await _escrow.confirm_delivery(db, order_id, current_user, buyer_notes)
    return success_response(OrderResponse.from_order(order).model_dump(), request)


@router.put("/{order_id}/cancel")
async def cancel_order(
    order_id: int,
    body: ReasonRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _escrow.cancel_order(db, order_id, current_user, body.reason)
    return success_response(OrderResponse.from_order(order).model_dump(), request)


@router.put("/{order_id}/dispute")
async def open_dispute(
    order_id: int,
    body: ReasonRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    order = await _escrow.open_dispute(db, order_id, current_user, body.reason)
    return success_response(OrderResponse.from_order(order).model_dump(), request)
