"""CartAggregator — loads a buyer's cart and groups it by seller for checkout."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_cart.domain.grouping import group_by_seller
from src.cm_cart.domain.models import SellerGroup
from src.cm_cart.domain.repository import CartRepositoryProtocol, ProductReaderProtocol
from src.cm_cart.infrastructure.persistence import CartRepository
from src.cm_cart.infrastructure.product_reader import ProductReader
from src.cm_common.errors import EmptyCartError


class CartAggregator:
    def __init__(
        self,
        carts: CartRepositoryProtocol | None = None,
        products: ProductReaderProtocol | None = None,
    ) -> None:
        self._carts: CartRepositoryProtocol = carts or CartRepository()
        self._products: ProductReaderProtocol = products or ProductReader()

    async def aggregate(self, db: AsyncSession, buyer_id: str) -> list[SellerGroup]:
        """Raises EmptyCartError or StaleCartItemError; never drops items."""
        cart = await self._carts.get_cart(db, buyer_id)
        if cart is None:
            raise EmptyCartError()
        items = await self._carts.list_items(db, cart.id)
        if not items:
            raise EmptyCartError()
        products = await self._products.get_many(
            db, sorted({item.product_id for item in items})
        )
        return group_by_seller(items, products)
