"""Domain models for cm_order — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime

from src.cm_common.enums import DeliveryStatus, OrderStatus
from src.cm_order.domain.snapshot import ProductSnapshot


@dataclass
class Order:
    id: int
    order_number: str
    buyer_id: str
    seller_id: str
    campus: str | None
    subtotal: int           # minor units, sum of item price * quantity
    platform_fee: int       # minor units, fixed at checkout
    total_amount: int       # subtotal + platform_fee; the escrowed amount
    status: str = OrderStatus.PENDING.value
    delivery_status: str = DeliveryStatus.PENDING.value
    delivery_method: str = "pickup"
    delivery_address: str | None = None
    notes: str | None = None
    buyer_notes: str | None = None
    seller_notes: str | None = None
    cancel_reason: str | None = None
    dispute_reason: str | None = None
    escrow_released: bool = False
    escrow_released_at: datetime | None = None
    buyer_confirmed_at: datetime | None = None
    delivery_confirmed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_settled(self) -> bool:
        """Escrow left the holding state: released to the seller or refunded."""
        return self.escrow_released or self.status == OrderStatus.CANCELLED

    def party_role(self, user_id: str) -> str | None:
        if user_id == self.buyer_id:
            return "buyer"
        if user_id == self.seller_id:
            return "seller"
        return None


@dataclass
class OrderItem:
    id: int
    order_id: int
    product_id: str
    quantity: int
    price: int
    product_snapshot: ProductSnapshot

    @property
    def line_total(self) -> int:
        return self.price * self.quantity


@dataclass
class OrderDraft:
    """Values the factory computes for one seller group before insertion."""

    buyer_id: str
    seller_id: str
    campus: str | None
    subtotal: int
    platform_fee: int
    delivery_method: str
    delivery_address: str | None = None
    notes: str | None = None
    cart_item_ids: list[int] = field(default_factory=list)

    @property
    def total_amount(self) -> int:
        return self.subtotal + self.platform_fee


@dataclass
class OrderQuery:
    user_id: str
    role: str = "buyer"         # buyer | seller
    status: str | None = None
    page: int = 1
    limit: int = 10
