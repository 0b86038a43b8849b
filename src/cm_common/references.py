"""Human-readable business identifiers: order numbers and payment references.

Order numbers look like ``ORD-1716800000000-042``; uniqueness is enforced by the
orders table, callers retry on collision. Payment references are unique per
transactions row and are what external gateways echo back in webhooks.
"""

import secrets

from src.cm_common.datetime_utils import epoch_ms


def generate_order_number(now_ms: int | None = None, suffix: int | None = None) -> str:
    """Return ``ORD-<ms timestamp>-<3-digit random>``."""
    ts = epoch_ms() if now_ms is None else now_ms
    rnd = secrets.randbelow(1000) if suffix is None else suffix
    return f"ORD-{ts}-{rnd:03d}"


def generate_reference(prefix: str, user_id: str) -> str:
    """Return a unique external payment reference, e.g. ``dep_1716800000000_<user>_a1b2c3``."""
    return f"{prefix}_{epoch_ms()}_{user_id}_{secrets.token_hex(4)}"


def escrow_reference(order_number: str) -> str:
    return f"escrow_{order_number}"


def release_reference(order_number: str) -> str:
    return f"release_{order_number}"


def fee_reference(order_number: str) -> str:
    return f"fee_{order_number}"


def refund_reference(order_number: str) -> str:
    return f"refund_{order_number}"


def gig_reference(kind: str, gig_id: int) -> str:
    return f"gig_{gig_id}_{kind}"
