"""CartApplicationService — buyer-facing cart operations.

The cart is a staging area: nothing here touches money. Prices are copied from
the live listing when an item is added and are what checkout later charges.
"""

import logging
from collections import defaultdict

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_cart.application.schemas import (
    CartItemResponse,
    CartResponse,
    CartSellerGroupResponse,
)
from src.cm_cart.domain.models import CartItem, Product
from src.cm_cart.domain.repository import CartRepositoryProtocol, ProductReaderProtocol
from src.cm_cart.infrastructure.persistence import CartRepository
from src.cm_cart.infrastructure.product_reader import ProductReader
from src.cm_common.cents import minor_to_display
from src.cm_common.errors import (
    CartItemNotFoundError,
    NotAuthorizedError,
    ProductNotFoundError,
    ProductUnavailableError,
)
from src.cm_fee.domain.calculator import platform_fee
from src.cm_fee.domain.repository import FeeScheduleRepositoryProtocol
from src.cm_fee.infrastructure.persistence import FeeScheduleRepository
from src.cm_gateway.user.models import CurrentUser

logger = logging.getLogger(__name__)


class CartApplicationService:
    def __init__(
        self,
        carts: CartRepositoryProtocol | None = None,
        products: ProductReaderProtocol | None = None,
        fees: FeeScheduleRepositoryProtocol | None = None,
    ) -> None:
        self._carts: CartRepositoryProtocol = carts or CartRepository()
        self._products: ProductReaderProtocol = products or ProductReader()
        self._fees: FeeScheduleRepositoryProtocol = fees or FeeScheduleRepository()

    async def get_cart(self, db: AsyncSession, user: CurrentUser) -> CartResponse:
        cart = await self._carts.get_cart(db, user.id)
        items = await self._carts.list_items(db, cart.id) if cart else []
        products = await self._products.get_many(
            db, sorted({item.product_id for item in items})
        )
        schedule = await self._fees.get_active(db)

        by_seller: dict[str, list[tuple[CartItem, Product | None]]] = defaultdict(list)
        unavailable: list[str] = []
        for item in items:
            product = products.get(item.product_id)
            if product is None or product.is_deleted or not product.platform_purchase_enabled:
                unavailable.append(item.product_id)
            seller_id = product.seller_id if product else ""
            by_seller[seller_id].append((item, product))

        groups: list[CartSellerGroupResponse] = []
        for seller_id in sorted(by_seller):
            lines = [
                CartItemResponse(
                    id=item.id,
                    product_id=item.product_id,
                    title=product.title if product else None,
                    image_url=product.image_url if product else None,
                    quantity=item.quantity,
                    price=item.price,
                    line_total=item.line_total,
                    available=item.product_id not in unavailable,
                )
                for item, product in by_seller[seller_id]
            ]
            subtotal = sum(line.line_total for line in lines if line.available)
            campus = user.campus or _first_campus(by_seller[seller_id])
            fee = platform_fee(subtotal, campus, schedule)
            groups.append(
                CartSellerGroupResponse(
                    seller_id=seller_id,
                    items=lines,
                    subtotal=subtotal,
                    platform_fee=fee,
                    total=subtotal + fee,
                )
            )

        subtotal = sum(g.subtotal for g in groups)
        fees = sum(g.platform_fee for g in groups)
        return CartResponse(
            cart_id=cart.id if cart else None,
            groups=groups,
            item_count=sum(item.quantity for item in items),
            subtotal=subtotal,
            platform_fee=fees,
            grand_total=subtotal + fees,
            grand_total_display=minor_to_display(subtotal + fees),
            unavailable_product_ids=sorted(set(unavailable)),
        )

    async def add_item(
        self, db: AsyncSession, user: CurrentUser, product_id: str, quantity: int
    ) -> CartItem:
        try:
            product = await self._products.get(db, product_id)
            if product is None or product.is_deleted:
                raise ProductNotFoundError(product_id)
            if not product.purchasable or product.price is None:
                raise ProductUnavailableError(product_id)
            if product.seller_id == user.id:
                raise NotAuthorizedError("buy your own listing")
            cart = await self._carts.get_or_create_cart(db, user.id)
            item = await self._carts.upsert_item(
                db, cart.id, product_id, quantity, product.price
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.debug("Cart add user=%s product=%s qty=%d", user.id, product_id, quantity)
        return item

    async def _owned_item(self, db: AsyncSession, user: CurrentUser, item_id: int) -> CartItem:
        item = await self._carts.get_item(db, item_id)
        if item is None:
            raise CartItemNotFoundError(item_id)
        cart = await self._carts.get_cart(db, user.id)
        if cart is None or cart.id != item.cart_id:
            raise NotAuthorizedError("modify another user's cart")
        return item

    async def update_item(
        self, db: AsyncSession, user: CurrentUser, item_id: int, quantity: int
    ) -> CartItem:
        try:
            await self._owned_item(db, user, item_id)
            item = await self._carts.update_quantity(db, item_id, quantity)
            if item is None:
                raise CartItemNotFoundError(item_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return item

    async def remove_item(self, db: AsyncSession, user: CurrentUser, item_id: int) -> None:
        try:
            await self._owned_item(db, user, item_id)
            await self._carts.delete_items(db, [item_id])
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    async def clear(self, db: AsyncSession, user: CurrentUser) -> int:
        try:
            cart = await self._carts.get_cart(db, user.id)
            removed = await self._carts.clear(db, cart.id) if cart else 0
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return removed


def _first_campus(entries: list[tuple[CartItem, Product | None]]) -> str | None:
    for _, product in entries:
        if product is not None:
            return product.campus
    return None
