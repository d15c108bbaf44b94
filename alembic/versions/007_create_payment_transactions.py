"""007: create payment_transactions table

Revision ID: 007
Revises: 006
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE payment_transactions (
            transaction_id  VARCHAR(64)     PRIMARY KEY,
            order_id        UUID            NOT NULL REFERENCES orders(id),
            gateway         VARCHAR(32)     NOT NULL,
            amount          BIGINT          NOT NULL,
            status          VARCHAR(16)     NOT NULL DEFAULT 'INITIATED',
            request_context JSONB           NOT NULL,
            provider_code   VARCHAR(32),
            expires_at      TIMESTAMPTZ     NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_payment_status CHECK (status IN ('INITIATED', 'SUCCEEDED', 'FAILED')),
            CONSTRAINT ck_payment_gateway CHECK (gateway IN ('jazzcash', 'easypaisa')),
            CONSTRAINT ck_payment_amount_gt_0 CHECK (amount > 0)
        );
    """)
    op.execute("CREATE INDEX idx_payment_order ON payment_transactions (order_id);")
    op.execute("""
        CREATE TRIGGER trg_payment_transactions_updated_at
            BEFORE UPDATE ON payment_transactions
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS payment_transactions CASCADE;")
