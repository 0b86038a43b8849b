"""Repository Protocol for orders and order items."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_order.domain.models import Order, OrderDraft, OrderItem, OrderQuery
from src.cm_order.domain.snapshot import ProductSnapshot


class OrderRepositoryProtocol(Protocol):
    async def order_number_exists(self, db: AsyncSession, order_number: str) -> bool: ...

    async def create_order(
        self, db: AsyncSession, draft: OrderDraft, order_number: str
    ) -> Order: ...

    async def add_item(
        self,
        db: AsyncSession,
        order_id: int,
        product_id: str,
        quantity: int,
        price: int,
        snapshot: ProductSnapshot,
    ) -> OrderItem: ...

    async def get(self, db: AsyncSession, order_id: int) -> Order | None: ...

    async def lock_for_update(self, db: AsyncSession, order_id: int) -> Order | None: ...

    async def list_items(self, db: AsyncSession, order_id: int) -> list[OrderItem]: ...

    async def list_for_user(self, db: AsyncSession, query: OrderQuery) -> list[Order]: ...

    async def count_for_user(self, db: AsyncSession, query: OrderQuery) -> int: ...

    async def update_delivery(
        self,
        db: AsyncSession,
        order_id: int,
        delivery_status: str,
        status: str,
        seller_notes: str | None,
    ) -> Order: ...

    async def mark_released(
        self,
        db: AsyncSession,
        order_id: int,
        confirmed_by_buyer: bool,
        buyer_notes: str | None,
    ) -> Order: ...

    async def mark_cancelled(self, db: AsyncSession, order_id: int, reason: str) -> Order: ...

    async def mark_disputed(self, db: AsyncSession, order_id: int, reason: str) -> Order: ...
