"""Pydantic schemas for cm_cart API."""

from pydantic import BaseModel, Field

MAX_QUANTITY = 99


class AddCartItemRequest(BaseModel):
    product_id: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(1, ge=1, le=MAX_QUANTITY)


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(..., ge=1, le=MAX_QUANTITY)


class CartItemResponse(BaseModel):
    id: int
    product_id: str
    title: str | None
    image_url: str | None
    quantity: int
    price: int
    line_total: int
    available: bool


class CartSellerGroupResponse(BaseModel):
    seller_id: str
    items: list[CartItemResponse]
    subtotal: int
    platform_fee: int
    total: int


class CartResponse(BaseModel):
    cart_id: int | None
    groups: list[CartSellerGroupResponse]
    item_count: int
    subtotal: int
    platform_fee: int
    grand_total: int
    grand_total_display: str
    unavailable_product_ids: list[str]
