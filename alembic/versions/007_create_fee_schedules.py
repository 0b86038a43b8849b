"""007: create fee_schedules table

Revision ID: 007
Revises: 006
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE fee_schedules (
            id                  BIGSERIAL   PRIMARY KEY,
            base_percentage_bps INTEGER     NOT NULL,
            minimum_fee         BIGINT      NOT NULL,
            maximum_fee         BIGINT      NOT NULL,
            free_threshold      BIGINT,
            campus_discounts    JSONB       NOT NULL DEFAULT '{}'::jsonb,
            is_active           BOOLEAN     NOT NULL DEFAULT TRUE,
            created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_fee_schedules_bps     CHECK (base_percentage_bps BETWEEN 0 AND 10000),
            CONSTRAINT ck_fee_schedules_bounds  CHECK (0 <= minimum_fee AND minimum_fee <= maximum_fee)
        );
    """)
    op.execute("""
        INSERT INTO fee_schedules (base_percentage_bps, minimum_fee, maximum_fee)
        VALUES (500, 50, 1000);
    """)
    op.execute(
        "COMMENT ON TABLE fee_schedules IS "
        "'Platform fee policy; the newest active row applies at checkout';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS fee_schedules CASCADE;")
