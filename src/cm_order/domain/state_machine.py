"""Escrow state machine for orders.

Delivery moves strictly forward one step at a time:

    pending -> preparing -> ready_for_pickup -> in_transit -> delivered
            -> confirmed_by_buyer

The seller drives it up to ``delivered``; only the buyer's confirmation (or an
admin override) reaches ``confirmed_by_buyer`` and releases escrow. Order
``status`` is derived from delivery progress, plus the off-path states
``cancelled`` and ``disputed``.

Every mutator consults these functions before writing; they raise
OutOfOrderTransitionError rather than returning flags.
"""

from src.cm_common.enums import DeliveryStatus, OrderStatus
from src.cm_common.errors import OutOfOrderTransitionError

DELIVERY_SEQUENCE: tuple[DeliveryStatus, ...] = (
    DeliveryStatus.PENDING,
    DeliveryStatus.PREPARING,
    DeliveryStatus.READY_FOR_PICKUP,
    DeliveryStatus.IN_TRANSIT,
    DeliveryStatus.DELIVERED,
    DeliveryStatus.CONFIRMED_BY_BUYER,
)

SELLER_DELIVERY_STATUSES: frozenset[DeliveryStatus] = frozenset({
    DeliveryStatus.PREPARING,
    DeliveryStatus.READY_FOR_PICKUP,
    DeliveryStatus.IN_TRANSIT,
    DeliveryStatus.DELIVERED,
})

_STATUS_FOR_DELIVERY: dict[DeliveryStatus, OrderStatus] = {
    DeliveryStatus.PENDING: OrderStatus.PENDING,
    DeliveryStatus.PREPARING: OrderStatus.CONFIRMED,
    DeliveryStatus.READY_FOR_PICKUP: OrderStatus.SHIPPED,
    DeliveryStatus.IN_TRANSIT: OrderStatus.SHIPPED,
    DeliveryStatus.DELIVERED: OrderStatus.DELIVERED,
    DeliveryStatus.CONFIRMED_BY_BUYER: OrderStatus.COMPLETED,
}

# Allowed order.status moves (same-status repeats are never transitions)
_STATUS_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({
        OrderStatus.CONFIRMED, OrderStatus.CANCELLED, OrderStatus.DISPUTED,
    }),
    OrderStatus.CONFIRMED: frozenset({
        OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.DISPUTED,
    }),
    OrderStatus.SHIPPED: frozenset({
        OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.DISPUTED,
    }),
    OrderStatus.DELIVERED: frozenset({
        OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.DISPUTED,
    }),
    OrderStatus.DISPUTED: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset({
    OrderStatus.COMPLETED, OrderStatus.CANCELLED,
})


def next_delivery_status(current: str) -> DeliveryStatus | None:
    """The single legal successor of ``current``, or None at the end."""
    idx = DELIVERY_SEQUENCE.index(DeliveryStatus(current))
    if idx + 1 >= len(DELIVERY_SEQUENCE):
        return None
    return DELIVERY_SEQUENCE[idx + 1]


def delivery_rank(status: str) -> int:
    return DELIVERY_SEQUENCE.index(DeliveryStatus(status))


def order_status_for(delivery_status: str) -> OrderStatus:
    return _STATUS_FOR_DELIVERY[DeliveryStatus(delivery_status)]


def validate_delivery_transition(current: str, target: str) -> DeliveryStatus:
    """Raise unless ``target`` is exactly the next delivery step."""
    try:
        wanted = DeliveryStatus(target)
    except ValueError:
        raise OutOfOrderTransitionError(current, target) from None
    if next_delivery_status(current) != wanted:
        raise OutOfOrderTransitionError(current, target)
    return wanted


def validate_status_transition(current: str, target: str) -> OrderStatus:
    """Raise unless ``current -> target`` is a legal order.status move."""
    wanted = OrderStatus(target)
    if wanted not in _STATUS_TRANSITIONS[OrderStatus(current)]:
        raise OutOfOrderTransitionError(current, target)
    return wanted


def validate_seller_advance(
    status: str, delivery_status: str, escrow_released: bool, target: str
) -> tuple[DeliveryStatus, OrderStatus]:
    """Full check for a seller-driven delivery update.

    Returns the new (delivery_status, status) pair.
    """
    if escrow_released or OrderStatus(status) in TERMINAL_STATUSES | {OrderStatus.DISPUTED}:
        raise OutOfOrderTransitionError(status, target)
    if target not in {s.value for s in SELLER_DELIVERY_STATUSES}:
        raise OutOfOrderTransitionError(delivery_status, target)
    new_delivery = validate_delivery_transition(delivery_status, target)
    new_status = order_status_for(new_delivery)
    if new_status != OrderStatus(status):
        validate_status_transition(status, new_status)
    return new_delivery, new_status
