"""SQLAlchemy ORM model for fee_schedules (written by admin tooling, read-only here)."""

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.cm_common.database import Base


class FeeScheduleORM(Base):
    __tablename__ = "fee_schedules"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    base_percentage_bps: Mapped[int] = mapped_column(Integer, nullable=False)
    minimum_fee: Mapped[int] = mapped_column(BigInteger, nullable=False)
    maximum_fee: Mapped[int] = mapped_column(BigInteger, nullable=False)
    free_threshold: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    campus_discounts: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
