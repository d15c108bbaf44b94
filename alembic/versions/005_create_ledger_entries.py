"""005: create ledger_entries table

Revision ID: 005
Revises: 004
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE ledger_entries (
            id              BIGSERIAL       PRIMARY KEY,
            user_id         UUID            NOT NULL REFERENCES users(id),
            order_id        UUID            REFERENCES orders(id),
            kind            VARCHAR(10)     NOT NULL,
            amount          BIGINT          NOT NULL,
            status          VARCHAR(16)     NOT NULL,
            method          VARCHAR(32)     NOT NULL,
            hold_until      TIMESTAMPTZ,
            balance_after   BIGINT          NOT NULL,
            description     VARCHAR(500),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_ledger_kind CHECK (kind IN ('CREDIT', 'DEBIT')),
            CONSTRAINT ck_ledger_status CHECK (status IN ('PENDING', 'COMPLETED', 'FAILED')),
            CONSTRAINT ck_ledger_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_ledger_balance_gte_0 CHECK (balance_after >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_ledger_user_id ON ledger_entries (user_id, id DESC);")
    # At most one seller credit per order, however many release paths race.
    op.execute("""
        CREATE UNIQUE INDEX uq_ledger_order_credit
        ON ledger_entries (order_id, user_id)
        WHERE kind = 'CREDIT' AND order_id IS NOT NULL;
    """)
    op.execute("COMMENT ON TABLE ledger_entries IS 'Append-only; minor currency units';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ledger_entries CASCADE;")
