"""Fee domain models — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class FeeSchedule:
    base_percentage_bps: int          # 500 = 5%
    minimum_fee: int                  # minor units
    maximum_fee: int                  # minor units
    campus_discounts: dict[str, int] = field(default_factory=dict)  # campus -> bps off
    free_threshold: int | None = None  # amount >= threshold pays no fee

    def discount_for(self, campus: str | None) -> int:
        if not campus:
            return 0
        return self.campus_discounts.get(campus, 0)


@dataclass(frozen=True)
class FeeBreakdown:
    amount: int
    campus: str | None
    base_fee: int        # percentage of amount, before clamping
    clamped_fee: int     # after minimum/maximum
    discount_bps: int
    fee: int             # what is actually charged
    free_threshold_applied: bool = False
