"""Gig payment lifecycle.

    pending ──accept bid──► in_escrow ──complete──► released
                                │
                                └──────cancel──────► refunded

released and refunded are terminal. The gig status moves in step:
open → in_progress on accept, then completed or cancelled.
"""

from src.cm_common.enums import GigPaymentStatus, GigStatus
from src.cm_common.errors import OutOfOrderTransitionError

_PAYMENT_TRANSITIONS: dict[GigPaymentStatus, frozenset[GigPaymentStatus]] = {
    GigPaymentStatus.PENDING: frozenset({GigPaymentStatus.IN_ESCROW}),
    GigPaymentStatus.IN_ESCROW: frozenset(
        {GigPaymentStatus.RELEASED, GigPaymentStatus.REFUNDED}
    ),
    GigPaymentStatus.RELEASED: frozenset(),
    GigPaymentStatus.REFUNDED: frozenset(),
}

SETTLED_PAYMENT_STATUSES = frozenset(
    {GigPaymentStatus.RELEASED, GigPaymentStatus.REFUNDED}
)

CLOSED_GIG_STATUSES = frozenset({GigStatus.COMPLETED, GigStatus.CANCELLED})


def validate_payment_transition(
    current: GigPaymentStatus | str, target: GigPaymentStatus | str
) -> GigPaymentStatus:
    src = GigPaymentStatus(current)
    dst = GigPaymentStatus(target)
    if dst not in _PAYMENT_TRANSITIONS[src]:
        raise OutOfOrderTransitionError(src.value, dst.value)
    return dst


def is_payment_settled(payment_status: GigPaymentStatus | str) -> bool:
    return GigPaymentStatus(payment_status) in SETTLED_PAYMENT_STATUSES
