"""ProductSnapshot — the listing as it was when the order was placed.

Stored as JSONB on order_items and versioned so later readers can parse old
rows after the listing schema moves on.
"""

from dataclasses import asdict, dataclass
from typing import Any

SNAPSHOT_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class ProductSnapshot:
    id: str
    title: str
    price: int
    seller_id: str
    campus: str | None = None
    description: str | None = None
    category: str | None = None
    image_url: str | None = None
    schema_version: int = SNAPSHOT_SCHEMA_VERSION

    @classmethod
    def capture(cls, product: Any, price: int) -> "ProductSnapshot":
        """Snapshot a listing at the price the buyer is charged (price at add)."""
        return cls(
            id=str(product.id),
            title=product.title,
            price=price,
            seller_id=str(product.seller_id),
            campus=product.campus,
            description=product.description,
            category=product.category,
            image_url=product.image_url,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProductSnapshot":
        version = int(data.get("schema_version", SNAPSHOT_SCHEMA_VERSION))
        if version != SNAPSHOT_SCHEMA_VERSION:
            raise ValueError(f"Unsupported product snapshot schema_version {version}")
        return cls(
            id=str(data["id"]),
            title=data["title"],
            price=int(data["price"]),
            seller_id=str(data["seller_id"]),
            campus=data.get("campus"),
            description=data.get("description"),
            category=data.get("category"),
            image_url=data.get("image_url"),
            schema_version=version,
        )
