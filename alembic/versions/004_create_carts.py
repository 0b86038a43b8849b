"""004: create carts and cart_items tables

Revision ID: 004
Revises: 003
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE carts (
            id          BIGSERIAL       PRIMARY KEY,
            user_id     VARCHAR(64)     NOT NULL,
            created_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_carts_user_id UNIQUE (user_id)
        );
    """)
    op.execute("""
        CREATE TABLE cart_items (
            id          BIGSERIAL       PRIMARY KEY,
            cart_id     BIGINT          NOT NULL REFERENCES carts (id) ON DELETE CASCADE,
            product_id  VARCHAR(64)     NOT NULL REFERENCES products (id),
            quantity    INTEGER         NOT NULL,
            price       BIGINT          NOT NULL,
            created_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_cart_items_cart_product   UNIQUE (cart_id, product_id),
            CONSTRAINT ck_cart_items_quantity       CHECK (quantity BETWEEN 1 AND 99),
            CONSTRAINT ck_cart_items_price_gt_0     CHECK (price > 0)
        );
    """)
    for table in ("carts", "cart_items"):
        op.execute(f"""
            CREATE TRIGGER trg_{table}_updated_at
                BEFORE UPDATE ON {table}
                FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
        """)
    op.execute("COMMENT ON COLUMN cart_items.price IS 'Unit price copied from the product when added';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS cart_items CASCADE;")
    op.execute("DROP TABLE IF EXISTS carts CASCADE;")
