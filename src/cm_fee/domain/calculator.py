"""Platform fee calculation — pure, deterministic, no I/O.

fee = clamp(ceil(amount * base_bps / 10000), minimum_fee, maximum_fee)
fee = fee - floor(fee * campus_discount_bps / 10000)
fee = 0 if free_threshold is set and amount >= free_threshold

Call it with the schedule in effect at checkout; the returned fee is what the
order persists and what the buyer is charged.
"""

from src.cm_common.cents import bps_of_ceil, bps_of_floor
from src.cm_fee.domain.models import FeeBreakdown, FeeSchedule


def calculate_platform_fee(
    amount: int, campus: str | None, schedule: FeeSchedule
) -> FeeBreakdown:
    if amount < 0:
        raise ValueError(f"Fee base must be non-negative, got {amount}")
    discount_bps = schedule.discount_for(campus)

    if amount == 0:
        return FeeBreakdown(amount, campus, 0, 0, discount_bps, 0)

    base_fee = bps_of_ceil(amount, schedule.base_percentage_bps)
    clamped = max(schedule.minimum_fee, min(schedule.maximum_fee, base_fee))
    fee = clamped - bps_of_floor(clamped, discount_bps)

    free = schedule.free_threshold is not None and amount >= schedule.free_threshold
    if free:
        fee = 0

    return FeeBreakdown(
        amount=amount,
        campus=campus,
        base_fee=base_fee,
        clamped_fee=clamped,
        discount_bps=discount_bps,
        fee=fee,
        free_threshold_applied=free,
    )


def platform_fee(amount: int, campus: str | None, schedule: FeeSchedule) -> int:
    """Shortcut returning only the charged fee."""
    return calculate_platform_fee(amount, campus, schedule).fee
