"""003: create transactions table

Revision ID: 003
Revises: 002
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE transactions (
            id              BIGSERIAL       PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            wallet_id       BIGINT          NOT NULL REFERENCES wallets (id),
            type            VARCHAR(20)     NOT NULL,
            amount          BIGINT          NOT NULL,
            fee             BIGINT          NOT NULL DEFAULT 0,
            status          VARCHAR(20)     NOT NULL,
            reference       VARCHAR(128),
            order_id        BIGINT,
            gig_id          BIGINT,
            description     VARCHAR(500),
            metadata        JSONB           NOT NULL DEFAULT '{}'::jsonb,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            settled_at      TIMESTAMPTZ,
            CONSTRAINT uq_transactions_reference    UNIQUE (reference),
            CONSTRAINT ck_transactions_type CHECK (type IN (
                'deposit', 'withdrawal', 'withdrawal_fee',
                'escrow', 'release', 'refund', 'fee'
            )),
            CONSTRAINT ck_transactions_status CHECK (status IN (
                'pending', 'completed', 'failed', 'cancelled'
            )),
            CONSTRAINT ck_transactions_amount_ne_0  CHECK (amount <> 0),
            CONSTRAINT ck_transactions_fee_gte_0    CHECK (fee >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_transactions_user_created ON transactions (user_id, created_at DESC);")
    op.execute("CREATE INDEX idx_transactions_order ON transactions (order_id) WHERE order_id IS NOT NULL;")
    op.execute("CREATE INDEX idx_transactions_gig ON transactions (gig_id) WHERE gig_id IS NOT NULL;")
    op.execute(
        "COMMENT ON TABLE transactions IS "
        "'Append-only ledger; signed amounts, status leaves pending exactly once';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
