"""008: seed the platform fee wallet

Revision ID: 008
Revises: 007
Create Date: 2026-10-05
"""

from typing import Sequence, Union

from alembic import op

revision: str = "008"
down_revision: Union[str, None] = "007"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        INSERT INTO wallets (user_id, balance, pending_balance, version)
        VALUES ('PLATFORM_FEE', 0, 0, 0)
        ON CONFLICT (user_id) DO NOTHING;
    """)


def downgrade() -> None:
    op.execute("DELETE FROM wallets WHERE user_id = 'PLATFORM_FEE';")
