"""Pydantic schemas for cm_order API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.cm_common.cents import minor_to_display
from src.cm_common.enums import DeliveryMethod, DeliveryStatus
from src.cm_order.domain.models import Order, OrderItem


def _iso(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment else None


def _val(value: Any) -> str:
    return str(getattr(value, "value", value))


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CheckoutRequest(BaseModel):
    delivery_method: DeliveryMethod = DeliveryMethod.PICKUP
    delivery_address: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=1000)


class UpdateDeliveryRequest(BaseModel):
    delivery_status: DeliveryStatus
    seller_notes: str | None = Field(None, max_length=1000)


class ConfirmDeliveryRequest(BaseModel):
    buyer_notes: str | None = Field(None, max_length=1000)


class ReasonRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class AdminOverrideRequest(BaseModel):
    note: str | None = Field(None, max_length=500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class OrderItemResponse(BaseModel):
    id: int
    product_id: str
    title: str
    quantity: int
    price: int
    line_total: int
    product_snapshot: dict[str, Any]

    @classmethod
    def from_item(cls, item: OrderItem) -> "OrderItemResponse":
        return cls(
            id=item.id,
            product_id=item.product_id,
            title=item.product_snapshot.title,
            quantity=item.quantity,
            price=item.price,
            line_total=item.line_total,
            product_snapshot=item.product_snapshot.to_dict(),
        )


class OrderResponse(BaseModel):
    id: int
    order_number: str
    buyer_id: str
    seller_id: str
    campus: str | None
    subtotal: int
    platform_fee: int
    total_amount: int
    total_amount_display: str
    status: str
    delivery_status: str
    delivery_method: str
    delivery_address: str | None
    notes: str | None
    buyer_notes: str | None
    seller_notes: str | None
    cancel_reason: str | None
    dispute_reason: str | None
    escrow_released: bool
    escrow_released_at: str | None
    buyer_confirmed_at: str | None
    delivery_confirmed_at: str | None
    created_at: str | None
    items: list[OrderItemResponse] = Field(default_factory=list)

    @classmethod
    def from_order(
        cls, order: Order, items: list[OrderItem] | None = None
    ) -> "OrderResponse":
        return cls(
            id=order.id,
            order_number=order.order_number,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            campus=order.campus,
            subtotal=order.subtotal,
            platform_fee=order.platform_fee,
            total_amount=order.total_amount,
            total_amount_display=minor_to_display(order.total_amount),
            status=_val(order.status),
            delivery_status=_val(order.delivery_status),
            delivery_method=_val(order.delivery_method),
            delivery_address=order.delivery_address,
            notes=order.notes,
            buyer_notes=order.buyer_notes,
            seller_notes=order.seller_notes,
            cancel_reason=order.cancel_reason,
            dispute_reason=order.dispute_reason,
            escrow_released=order.escrow_released,
            escrow_released_at=_iso(order.escrow_released_at),
            buyer_confirmed_at=_iso(order.buyer_confirmed_at),
            delivery_confirmed_at=_iso(order.delivery_confirmed_at),
            created_at=_iso(order.created_at),
            items=[OrderItemResponse.from_item(i) for i in items or []],
        )


class CheckoutResponse(BaseModel):
    orders: list[OrderResponse]
    total_orders: int
    grand_total: int
    grand_total_display: str


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    total: int
    page: int
    limit: int
    pages: int
