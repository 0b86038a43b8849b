"""Repository Protocols for carts and the read-only product catalogue."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_cart.domain.models import Cart, CartItem, Product


class CartRepositoryProtocol(Protocol):
    async def get_cart(self, db: AsyncSession, user_id: str) -> Cart | None: ...

    async def get_or_create_cart(self, db: AsyncSession, user_id: str) -> Cart: ...

    async def list_items(self, db: AsyncSession, cart_id: int) -> list[CartItem]: ...

    async def get_item(self, db: AsyncSession, item_id: int) -> CartItem | None: ...

    async def upsert_item(
        self, db: AsyncSession, cart_id: int, product_id: str, quantity: int, price: int
    ) -> CartItem: ...

    async def update_quantity(
        self, db: AsyncSession, item_id: int, quantity: int
    ) -> CartItem | None: ...

    async def delete_items(self, db: AsyncSession, item_ids: list[int]) -> int: ...

    async def clear(self, db: AsyncSession, cart_id: int) -> int: ...


class ProductReaderProtocol(Protocol):
    async def get(self, db: AsyncSession, product_id: str) -> Product | None: ...

    async def get_many(
        self, db: AsyncSession, product_ids: list[str]
    ) -> dict[str, Product]: ...
