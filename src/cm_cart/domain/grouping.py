"""Pure grouping of cart items into per-seller groups.

Prices come from the cart item (price at add time), never from the live
listing, so the buyer pays what they saw. Items whose listing has vanished or
stopped accepting platform purchases fail the whole aggregation; nothing is
dropped silently.
"""

from src.cm_cart.domain.models import CartItem, CartLine, Product, SellerGroup
from src.cm_common.errors import EmptyCartError, StaleCartItemError


def group_by_seller(
    items: list[CartItem], products: dict[str, Product]
) -> list[SellerGroup]:
    """Return one SellerGroup per seller, ordered by seller id."""
    if not items:
        raise EmptyCartError()

    stale = sorted(
        {
            item.product_id
            for item in items
            if item.product_id not in products
            or not _accepts_platform_purchase(products[item.product_id])
        }
    )
    if stale:
        raise StaleCartItemError(stale)

    groups: dict[str, SellerGroup] = {}
    for item in sorted(items, key=lambda i: i.id):
        product = products[item.product_id]
        group = groups.setdefault(product.seller_id, SellerGroup(seller_id=product.seller_id))
        group.items.append(
            CartLine(
                cart_item_id=item.id,
                product_id=item.product_id,
                quantity=item.quantity,
                price=item.price,
                product=product,
            )
        )
    return [groups[seller_id] for seller_id in sorted(groups)]


def _accepts_platform_purchase(product: Product) -> bool:
    # The cart price is authoritative, so a later price change on the listing
    # does not make the item stale.
    return not product.is_deleted and product.platform_purchase_enabled
