from pydantic import BaseModel

from src.cm_common.cents import minor_to_display
from src.cm_fee.domain.models import FeeBreakdown


class FeePreviewResponse(BaseModel):
    amount: int
    campus: str | None
    base_fee: int
    discount_bps: int
    platform_fee: int
    platform_fee_display: str
    total: int
    total_display: str
    free_threshold_applied: bool

    @classmethod
    def from_breakdown(cls, b: FeeBreakdown) -> "FeePreviewResponse":
        return cls(
            amount=b.amount,
            campus=b.campus,
            base_fee=b.base_fee,
            discount_bps=b.discount_bps,
            platform_fee=b.fee,
            platform_fee_display=minor_to_display(b.fee),
            total=b.amount + b.fee,
            total_display=minor_to_display(b.amount + b.fee),
            free_threshold_applied=b.free_threshold_applied,
        )
