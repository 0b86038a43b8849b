"""CartRepository — carts and cart_items via raw SQL."""

from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_cart.domain.models import Cart, CartItem
from src.cm_common.errors import InternalError

_CART_COLUMNS = "id, user_id, created_at, updated_at"
_ITEM_COLUMNS = "id, cart_id, product_id, quantity, price, created_at, updated_at"

_GET_CART_SQL = text(f"SELECT {_CART_COLUMNS} FROM carts WHERE user_id = :user_id")

_ENSURE_CART_SQL = text("""
    INSERT INTO carts (user_id) VALUES (:user_id)
    ON CONFLICT (user_id) DO NOTHING
""")

_LIST_ITEMS_SQL = text(
    f"SELECT {_ITEM_COLUMNS} FROM cart_items WHERE cart_id = :cart_id ORDER BY id"
)

_GET_ITEM_SQL = text(f"SELECT {_ITEM_COLUMNS} FROM cart_items WHERE id = :id")

# Re-adding a product replaces quantity and refreshes the price-at-add
_UPSERT_ITEM_SQL = text(f"""
    INSERT INTO cart_items (cart_id, product_id, quantity, price)
    VALUES (:cart_id, :product_id, :quantity, :price)
    ON CONFLICT (cart_id, product_id) DO UPDATE
        SET quantity = EXCLUDED.quantity,
            price = EXCLUDED.price
    RETURNING {_ITEM_COLUMNS}
""")

_UPDATE_QUANTITY_SQL = text(f"""
    UPDATE cart_items SET quantity = :quantity
    WHERE id = :id
    RETURNING {_ITEM_COLUMNS}
""")

_DELETE_ITEMS_SQL = text("DELETE FROM cart_items WHERE id IN :ids").bindparams(
    bindparam("ids", expanding=True)
)

_CLEAR_SQL = text("DELETE FROM cart_items WHERE cart_id = :cart_id")


def _row_to_cart(row: Any) -> Cart:
    return Cart(
        id=row.id,
        user_id=row.user_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_item(row: Any) -> CartItem:
    return CartItem(
        id=row.id,
        cart_id=row.cart_id,
        product_id=row.product_id,
        quantity=row.quantity,
        price=row.price,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class CartRepository:
    async def get_cart(self, db: AsyncSession, user_id: str) -> Cart | None:
        row = (await db.execute(_GET_CART_SQL, {"user_id": user_id})).fetchone()
        return _row_to_cart(row) if row else None

    async def get_or_create_cart(self, db: AsyncSession, user_id: str) -> Cart:
        await db.execute(_ENSURE_CART_SQL, {"user_id": user_id})
        cart = await self.get_cart(db, user_id)
        if cart is None:
            raise InternalError(f"Cart upsert returned nothing for user {user_id}")
        return cart

    async def list_items(self, db: AsyncSession, cart_id: int) -> list[CartItem]:
        rows = (await db.execute(_LIST_ITEMS_SQL, {"cart_id": cart_id})).fetchall()
        return [_row_to_item(row) for row in rows]

    async def get_item(self, db: AsyncSession, item_id: int) -> CartItem | None:
        row = (await db.execute(_GET_ITEM_SQL, {"id": item_id})).fetchone()
        return _row_to_item(row) if row else None

    async def upsert_item(
        self, db: AsyncSession, cart_id: int, product_id: str, quantity: int, price: int
    ) -> CartItem:
        row = (
            await db.execute(
                _UPSERT_ITEM_SQL,
                {
                    "cart_id": cart_id,
                    "product_id": product_id,
                    "quantity": quantity,
                    "price": price,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Cart item upsert returned no rows")
        return _row_to_item(row)

    async def update_quantity(
        self, db: AsyncSession, item_id: int, quantity: int
    ) -> CartItem | None:
        row = (
            await db.execute(_UPDATE_QUANTITY_SQL, {"id": item_id, "quantity": quantity})
        ).fetchone()
        return _row_to_item(row) if row else None

    async def delete_items(self, db: AsyncSession, item_ids: list[int]) -> int:
        if not item_ids:
            return 0
        result = await db.execute(_DELETE_ITEMS_SQL, {"ids": item_ids})
        return result.rowcount or 0

    async def clear(self, db: AsyncSession, cart_id: int) -> int:
        result = await db.execute(_CLEAR_SQL, {"cart_id": cart_id})
        return result.rowcount or 0
