"""001: create common functions, users and products

Revision ID: 001
Revises: 
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE OR REPLACE FUNCTION fn_update_timestamp()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TABLE users (
            id              VARCHAR(64)     PRIMARY KEY,
            username        VARCHAR(64)     NOT NULL,
            email           VARCHAR(255)    NOT NULL,
            campus          VARCHAR(128)    NOT NULL DEFAULT 'default',
            role            VARCHAR(16)     NOT NULL DEFAULT 'user',
            is_active       BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_users_username    UNIQUE (username),
            CONSTRAINT uq_users_email       UNIQUE (email),
            CONSTRAINT ck_users_role        CHECK (role IN ('user', 'admin'))
        );
    """)
    op.execute("COMMENT ON TABLE users IS 'Identities issued by the auth service, read-only here';")
    op.execute("""
        CREATE TABLE products (
            id                          VARCHAR(64)     PRIMARY KEY,
            seller_id                   VARCHAR(64)     NOT NULL REFERENCES users (id),
            title                       VARCHAR(200)    NOT NULL,
            description                 TEXT,
            category                    VARCHAR(50),
            price                       BIGINT,
            campus                      VARCHAR(100)    NOT NULL,
            image_url                   VARCHAR(500),
            platform_purchase_enabled   BOOLEAN         NOT NULL DEFAULT FALSE,
            is_deleted                  BOOLEAN         NOT NULL DEFAULT FALSE,
            created_at                  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at                  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_products_price_gte_0 CHECK (price IS NULL OR price >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_products_seller ON products (seller_id);")
    op.execute("""
        CREATE TRIGGER trg_products_updated_at
            BEFORE UPDATE ON products
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE products IS 'Listings; price in minor units, NULL = price on request';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS products CASCADE;")
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
    op.execute("DROP FUNCTION IF EXISTS fn_update_timestamp();")
