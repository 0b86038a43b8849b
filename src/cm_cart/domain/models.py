"""Domain models for cm_cart — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Product:
    """Listing as seen by checkout. Owned by the listings service; read-only here."""

    id: str
    seller_id: str
    title: str
    price: int | None                  # minor units; None = price on request
    campus: str
    description: str | None = None
    category: str | None = None
    image_url: str | None = None
    platform_purchase_enabled: bool = False
    is_deleted: bool = False

    @property
    def purchasable(self) -> bool:
        return (
            not self.is_deleted
            and self.platform_purchase_enabled
            and self.price is not None
            and self.price > 0
        )


@dataclass
class Cart:
    id: int
    user_id: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class CartItem:
    id: int
    cart_id: int
    product_id: str
    quantity: int
    price: int                         # unit price copied at add time
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def line_total(self) -> int:
        return self.price * self.quantity


@dataclass(frozen=True)
class CartLine:
    cart_item_id: int
    product_id: str
    quantity: int
    price: int
    product: Product

    @property
    def line_total(self) -> int:
        return self.price * self.quantity


@dataclass
class SellerGroup:
    seller_id: str
    items: list[CartLine] = field(default_factory=list)

    @property
    def subtotal(self) -> int:
        return sum(line.line_total for line in self.items)

    @property
    def cart_item_ids(self) -> list[int]:
        return [line.cart_item_id for line in self.items]
