# src/cm_order/application/service.py
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.errors import NotAuthorizedError, OrderNotFoundError
from src.cm_gateway.user.models import CurrentUser
from src.cm_order.application.schemas import OrderListResponse, OrderResponse
from src.cm_order.domain.models import OrderQuery
from src.cm_order.domain.repository import OrderRepositoryProtocol
from src.cm_order.infrastructure.persistence import OrderRepository

_repo: OrderRepositoryProtocol = OrderRepository()


async def list_orders(
    db: AsyncSession,
    user: CurrentUser,
    role: str = "buyer",
    status: str | None = None,
    page: int = 1,
    limit: int = 10,
    repo: OrderRepositoryProtocol | None = None,
) -> OrderListResponse:
    repo = repo or _repo
    query = OrderQuery(user_id=user.id, role=role, status=status, page=page, limit=limit)
    orders = await repo.list_for_user(db, query)
    total = await repo.count_for_user(db, query)
    return OrderListResponse(
        items=[OrderResponse.from_order(o) for o in orders],
        total=total,
        page=page,
        limit=limit,
        pages=(total + limit - 1) // limit,
    )


async def get_order(
    db: AsyncSession,
    user: CurrentUser,
    order_id: int,
    repo: OrderRepositoryProtocol | None = None,
) -> OrderResponse:
    repo = repo or _repo
    order = await repo.get(db, order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    if order.party_role(user.id) is None and not user.is_admin:
        raise NotAuthorizedError("view this order")
    items = await repo.list_items(db, order_id)
    return OrderResponse.from_order(order, items)
