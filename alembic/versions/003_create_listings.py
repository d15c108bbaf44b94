"""003: create categories and listings tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE categories (
            id                  UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            name                VARCHAR(100)    NOT NULL,
            commission_rate_bps INTEGER         NOT NULL DEFAULT 800,
            CONSTRAINT uq_categories_name UNIQUE (name),
            CONSTRAINT ck_categories_rate CHECK (commission_rate_bps BETWEEN 0 AND 10000)
        );
    """)
    op.execute("""
        CREATE TABLE listings (
            id                  UUID            PRIMARY KEY DEFAULT gen_random_uuid(),
            seller_id           UUID            NOT NULL REFERENCES users(id),
            category_id         UUID            NOT NULL REFERENCES categories(id),
            title               VARCHAR(200)    NOT NULL,
            price               BIGINT          NOT NULL,
            stock_type          VARCHAR(16)     NOT NULL DEFAULT 'limited',
            quantity            INTEGER,
            active              BOOLEAN         NOT NULL DEFAULT TRUE,
            hidden              BOOLEAN         NOT NULL DEFAULT FALSE,
            delivery_type       VARCHAR(16)     NOT NULL DEFAULT 'manual',
            delivery_content    TEXT,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_listings_price_gt_0 CHECK (price > 0),
            CONSTRAINT ck_listings_stock_type CHECK (stock_type IN ('limited', 'unlimited')),
            CONSTRAINT ck_listings_quantity CHECK (
                (stock_type = 'unlimited') OR (quantity IS NOT NULL AND quantity >= 0)
            ),
            CONSTRAINT ck_listings_delivery_type CHECK (delivery_type IN ('instant', 'manual')),
            CONSTRAINT ck_listings_delivery_content_len CHECK (
                delivery_content IS NULL OR LENGTH(delivery_content) <= 5000
            )
        );
    """)
    op.execute("CREATE INDEX idx_listings_seller ON listings (seller_id);")
    op.execute("""
        CREATE TRIGGER trg_listings_updated_at
            BEFORE UPDATE ON listings
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS listings CASCADE;")
    op.execute("DROP TABLE IF EXISTS categories CASCADE;")
