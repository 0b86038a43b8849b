"""002: create wallets table

Revision ID: 002
Revises: 001
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE wallets (
            id                  BIGSERIAL       PRIMARY KEY,
            user_id             VARCHAR(64)     NOT NULL,
            balance             BIGINT          NOT NULL DEFAULT 0,
            pending_balance     BIGINT          NOT NULL DEFAULT 0,
            total_earned        BIGINT          NOT NULL DEFAULT 0,
            total_spent         BIGINT          NOT NULL DEFAULT 0,
            is_locked           BOOLEAN         NOT NULL DEFAULT FALSE,
            locked_reason       VARCHAR(500),
            last_withdrawal     TIMESTAMPTZ,
            last_transaction_at TIMESTAMPTZ,
            last_reconciled_at  TIMESTAMPTZ,
            version             BIGINT          NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_wallets_user_id           UNIQUE (user_id),
            CONSTRAINT ck_wallets_balance_gte_0     CHECK (balance >= 0),
            CONSTRAINT ck_wallets_pending_gte_0     CHECK (pending_balance >= 0),
            CONSTRAINT ck_wallets_earned_gte_0      CHECK (total_earned >= 0),
            CONSTRAINT ck_wallets_spent_gte_0       CHECK (total_spent >= 0)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_wallets_updated_at
            BEFORE UPDATE ON wallets
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE wallets IS 'Per-user wallet; all amounts in minor units';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS wallets CASCADE;")
