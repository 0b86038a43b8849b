"""006: create gigs and bids tables

Revision ID: 006
Revises: 005
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE gigs (
            id                  BIGSERIAL       PRIMARY KEY,
            client_id           VARCHAR(64)     NOT NULL,
            title               VARCHAR(200)    NOT NULL,
            description         TEXT,
            budget              BIGINT          NOT NULL,
            campus              VARCHAR(100),
            status              VARCHAR(20)     NOT NULL DEFAULT 'open',
            payment_status      VARCHAR(20)     NOT NULL DEFAULT 'pending',
            freelancer_id       VARCHAR(64),
            accepted_bid_id     BIGINT,
            escrow_amount       BIGINT          NOT NULL DEFAULT 0,
            platform_fee        BIGINT          NOT NULL DEFAULT 0,
            cancel_reason       TEXT,
            escrow_released_at  TIMESTAMPTZ,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_gigs_budget_gt_0      CHECK (budget > 0),
            CONSTRAINT ck_gigs_escrow_gte_0     CHECK (escrow_amount >= 0),
            CONSTRAINT ck_gigs_fee_lte_escrow   CHECK (platform_fee BETWEEN 0 AND escrow_amount),
            CONSTRAINT ck_gigs_status CHECK (status IN (
                'open', 'in_progress', 'completed', 'cancelled'
            )),
            CONSTRAINT ck_gigs_payment_status CHECK (payment_status IN (
                'pending', 'in_escrow', 'released', 'refunded'
            ))
        );
    """)
    op.execute("""
        CREATE TABLE bids (
            id              BIGSERIAL       PRIMARY KEY,
            gig_id          BIGINT          NOT NULL REFERENCES gigs (id),
            freelancer_id   VARCHAR(64)     NOT NULL,
            amount          BIGINT          NOT NULL,
            proposal        TEXT,
            status          VARCHAR(20)     NOT NULL DEFAULT 'pending',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_bids_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_bids_status CHECK (status IN (
                'pending', 'accepted', 'rejected', 'withdrawn'
            ))
        );
    """)
    # One pending bid per freelancer per gig
    op.execute("""
        CREATE UNIQUE INDEX uq_bids_pending_per_freelancer
            ON bids (gig_id, freelancer_id) WHERE status = 'pending';
    """)
    for table in ("gigs", "bids"):
        op.execute(f"""
            CREATE TRIGGER trg_{table}_updated_at
                BEFORE UPDATE ON {table}
                FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
        """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS bids CASCADE;")
    op.execute("DROP TABLE IF EXISTS gigs CASCADE;")
