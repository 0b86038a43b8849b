"""005: create orders and order_items tables

Revision ID: 005
Revises: 004
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id                      BIGSERIAL       PRIMARY KEY,
            order_number            VARCHAR(32)     NOT NULL,
            buyer_id                VARCHAR(64)     NOT NULL,
            seller_id               VARCHAR(64)     NOT NULL,
            campus                  VARCHAR(100),
            subtotal                BIGINT          NOT NULL,
            platform_fee            BIGINT          NOT NULL,
            total_amount            BIGINT          NOT NULL,
            status                  VARCHAR(20)     NOT NULL DEFAULT 'pending',
            delivery_status         VARCHAR(20)     NOT NULL DEFAULT 'pending',
            delivery_method         VARCHAR(20)     NOT NULL DEFAULT 'pickup',
            delivery_address        TEXT,
            notes                   TEXT,
            buyer_notes             TEXT,
            seller_notes            TEXT,
            cancel_reason           TEXT,
            dispute_reason          TEXT,
            escrow_released         BOOLEAN         NOT NULL DEFAULT FALSE,
            escrow_released_at      TIMESTAMPTZ,
            buyer_confirmed_at      TIMESTAMPTZ,
            delivery_confirmed_at   TIMESTAMPTZ,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_orders_order_number   UNIQUE (order_number),
            CONSTRAINT ck_orders_subtotal_gt_0  CHECK (subtotal > 0),
            CONSTRAINT ck_orders_fee_gte_0      CHECK (platform_fee >= 0),
            CONSTRAINT ck_orders_total          CHECK (total_amount = subtotal + platform_fee),
            CONSTRAINT ck_orders_buyer_ne_seller CHECK (buyer_id <> seller_id),
            CONSTRAINT ck_orders_status CHECK (status IN (
                'pending', 'confirmed', 'shipped', 'delivered',
                'completed', 'cancelled', 'disputed'
            )),
            CONSTRAINT ck_orders_delivery_status CHECK (delivery_status IN (
                'pending', 'preparing', 'ready_for_pickup', 'in_transit',
                'delivered', 'confirmed_by_buyer'
            )),
            CONSTRAINT ck_orders_delivery_method CHECK (delivery_method IN (
                'pickup', 'campus_delivery', 'meetup'
            ))
        );
    """)
    op.execute("CREATE INDEX idx_orders_buyer_created ON orders (buyer_id, created_at DESC);")
    op.execute("CREATE INDEX idx_orders_seller_created ON orders (seller_id, created_at DESC);")
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE order_items (
            id                  BIGSERIAL       PRIMARY KEY,
            order_id            BIGINT          NOT NULL REFERENCES orders (id),
            product_id          VARCHAR(64)     NOT NULL,
            quantity            INTEGER         NOT NULL,
            price               BIGINT          NOT NULL,
            product_snapshot    JSONB           NOT NULL,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_order_items_quantity_gt_0 CHECK (quantity > 0),
            CONSTRAINT ck_order_items_price_gt_0    CHECK (price > 0)
        );
    """)
    op.execute("CREATE INDEX idx_order_items_order ON order_items (order_id);")
    op.execute(
        "COMMENT ON TABLE orders IS "
        "'One order per seller per checkout; total_amount is held in escrow until release';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS order_items CASCADE;")
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
