"""ProductReader — read-only access to listings owned by the listings service."""

from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_cart.domain.models import Product

_PRODUCT_COLUMNS = """
    id, seller_id, title, description, category, price, campus, image_url,
    platform_purchase_enabled, is_deleted
"""

_GET_PRODUCT_SQL = text(f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE id = :id")

_GET_PRODUCTS_SQL = text(
    f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE id IN :ids"
).bindparams(bindparam("ids", expanding=True))


def _row_to_product(row: Any) -> Product:
    return Product(
        id=str(row.id),
        seller_id=str(row.seller_id),
        title=row.title,
        description=row.description,
        category=row.category,
        price=row.price,
        campus=row.campus,
        image_url=row.image_url,
        platform_purchase_enabled=row.platform_purchase_enabled,
        is_deleted=row.is_deleted,
    )


class ProductReader:
    async def get(self, db: AsyncSession, product_id: str) -> Product | None:
        row = (await db.execute(_GET_PRODUCT_SQL, {"id": product_id})).fetchone()
        return _row_to_product(row) if row else None

    async def get_many(
        self, db: AsyncSession, product_ids: list[str]
    ) -> dict[str, Product]:
        if not product_ids:
            return {}
        rows = (await db.execute(_GET_PRODUCTS_SQL, {"ids": list(product_ids)})).fetchall()
        return {str(row.id): _row_to_product(row) for row in rows}
