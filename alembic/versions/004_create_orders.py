"""004: create orders table

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id              UUID            PRIMARY KEY,
            listing_id      UUID            NOT NULL REFERENCES listings(id),
            buyer_id        UUID            NOT NULL REFERENCES users(id),
            seller_id       UUID            NOT NULL REFERENCES users(id),
            item_price      BIGINT          NOT NULL,
            commission      BIGINT          NOT NULL,
            amount          BIGINT          NOT NULL,
            status          VARCHAR(16)     NOT NULL DEFAULT 'PENDING',
            payment_method  VARCHAR(32),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_orders_status CHECK (
                status IN ('PENDING', 'PAID', 'DELIVERED', 'COMPLETED', 'DISPUTED', 'REFUNDED')
            ),
            CONSTRAINT ck_orders_amount CHECK (amount = item_price + commission),
            CONSTRAINT ck_orders_commission_gte_0 CHECK (commission >= 0),
            CONSTRAINT ck_orders_item_price_gt_0 CHECK (item_price > 0),
            CONSTRAINT ck_orders_not_self CHECK (buyer_id <> seller_id)
        );
    """)
    op.execute("CREATE INDEX idx_orders_buyer ON orders (buyer_id, created_at DESC, id DESC);")
    op.execute("CREATE INDEX idx_orders_seller ON orders (seller_id, created_at DESC, id DESC);")
    op.execute("""
        CREATE TRIGGER trg_orders_updated_at
            BEFORE UPDATE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
