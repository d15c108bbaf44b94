"""006: create messages table

Revision ID: 006
Revises: 005
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE messages (
            id                      UUID            PRIMARY KEY,
            order_id                UUID            NOT NULL REFERENCES orders(id),
            sender_id               UUID            NOT NULL REFERENCES users(id),
            receiver_id             UUID            NOT NULL REFERENCES users(id),
            content                 TEXT            NOT NULL,
            type                    VARCHAR(16)     NOT NULL DEFAULT 'text',
            is_automated_delivery   BOOLEAN         NOT NULL DEFAULT FALSE,
            read_at                 TIMESTAMPTZ,
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_messages_type CHECK (
                type IN ('text', 'system', 'delivery', 'dispute', 'completion')
            )
        );
    """)
    op.execute("CREATE INDEX idx_messages_order ON messages (order_id, created_at);")
    op.execute("""
        CREATE INDEX idx_messages_unread
        ON messages (order_id, receiver_id)
        WHERE read_at IS NULL;
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS messages CASCADE;")
