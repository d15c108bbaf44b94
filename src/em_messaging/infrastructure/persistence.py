"""MessageRepository — raw SQL persistence implementation.

Messages are append-only; the only mutation is stamping read_at.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_common.errors import InternalError
from src.em_messaging.domain.models import Conversation, Message

_SELECT_COLUMNS = """
    id, order_id, sender_id, receiver_id, content, type,
    is_automated_delivery, read_at, created_at
"""

_INSERT_MESSAGE_SQL = text(f"""
    INSERT INTO messages (id, order_id, sender_id, receiver_id, content, type,
                          is_automated_delivery)
    VALUES (:id, :order_id, :sender_id, :receiver_id, :content, :type,
            :is_automated_delivery)
    RETURNING {_SELECT_COLUMNS}
""")

_LIST_MESSAGES_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM messages
    WHERE order_id = :order_id
    ORDER BY created_at ASC, id ASC
""")

_MARK_READ_SQL = text("""
    UPDATE messages
    SET read_at = NOW()
    WHERE order_id = :order_id
      AND receiver_id = :receiver_id
      AND read_at IS NULL
""")


# Inbox: every order the user is a party to, newest order first, with the
# latest message and the count of messages addressed to the user still unread.
_LIST_CONVERSATIONS_SQL = text("""
    SELECT o.id AS order_id, o.status AS order_status, o.amount,
           o.created_at AS order_created_at,
           o.listing_id, l.title AS listing_title,
           u.id AS other_user_id, u.username AS other_username,
           m.id AS message_id, m.sender_id, m.receiver_id, m.content,
           m.type AS message_type, m.is_automated_delivery, m.read_at,
           m.created_at AS message_created_at,
           (SELECT COUNT(*) FROM messages r
            WHERE r.order_id = o.id
              AND r.receiver_id = CAST(:user_id AS UUID)
              AND r.read_at IS NULL) AS unread_count
    FROM orders o
    JOIN listings l ON l.id = o.listing_id
    JOIN users u ON u.id = CASE WHEN o.buyer_id = CAST(:user_id AS UUID)
                                THEN o.seller_id ELSE o.buyer_id END
    LEFT JOIN LATERAL (
        SELECT id, sender_id, receiver_id, content, type,
               is_automated_delivery, read_at, created_at
        FROM messages
        WHERE order_id = o.id
        ORDER BY created_at DESC, id DESC
        LIMIT 1
    ) m ON TRUE
    WHERE (o.buyer_id = CAST(:user_id AS UUID) OR o.seller_id = CAST(:user_id AS UUID))
      AND (CAST(:cursor_ts AS TIMESTAMPTZ) IS NULL
           OR (o.created_at, o.id) < (CAST(:cursor_ts AS TIMESTAMPTZ), CAST(:cursor_id AS UUID)))
    ORDER BY o.created_at DESC, o.id DESC
    LIMIT :limit
""")

def _row_to_message(row: Any) -> Message:
    return Message(
        id=str(row.id),
        order_id=str(row.order_id),
        sender_id=str(row.sender_id),
        receiver_id=str(row.receiver_id),
        content=row.content,
        type=row.type,
        is_automated_delivery=row.is_automated_delivery,
        read_at=row.read_at,
        created_at=row.created_at,
    )


def _row_to_conversation(row: Any) -> Conversation:
    last = None
    if row.message_id is not None:
        last = Message(
            id=str(row.message_id),
            order_id=str(row.order_id),
            sender_id=str(row.sender_id),
            receiver_id=str(row.receiver_id),
            content=row.content,
            type=row.message_type,
            is_automated_delivery=row.is_automated_delivery,
            read_at=row.read_at,
            created_at=row.message_created_at,
        )
    return Conversation(
        order_id=str(row.order_id),
        order_status=row.order_status,
        amount=row.amount,
        order_created_at=row.order_created_at,
        listing_id=str(row.listing_id),
        listing_title=row.listing_title,
        other_user_id=str(row.other_user_id),
        other_username=row.other_username,
        last_message=last,
        unread_count=row.unread_count,
    )


class MessageRepository:
    async def insert(self, message: Message, db: AsyncSession) -> Message:
        result = await db.execute(
            _INSERT_MESSAGE_SQL,
            {
                "id": message.id,
                "order_id": message.order_id,
                "sender_id": message.sender_id,
                "receiver_id": message.receiver_id,
                "content": message.content,
                "type": message.type,
                "is_automated_delivery": message.is_automated_delivery,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Message insert returned no rows")
        return _row_to_message(row)

    async def list_for_order(self, order_id: str, db: AsyncSession) -> list[Message]:
        result = await db.execute(_LIST_MESSAGES_SQL, {"order_id": order_id})
        return [_row_to_message(row) for row in result.fetchall()]

    async def mark_read(self, order_id: str, receiver_id: str, db: AsyncSession) -> int:
        result = await db.execute(
            _MARK_READ_SQL, {"order_id": order_id, "receiver_id": receiver_id}
        )
        return result.rowcount  # type: ignore[attr-defined]

    async def list_conversations(
        self,
        user_id: str,
        cursor: tuple[datetime, str] | None,
        limit: int,
        db: AsyncSession,
    ) -> list[Conversation]:
        cursor_ts, cursor_id = cursor if cursor else (None, None)
        result = await db.execute(
            _LIST_CONVERSATIONS_SQL,
            {"user_id": user_id, "cursor_ts": cursor_ts, "cursor_id": cursor_id, "limit": limit},
        )
        return [_row_to_conversation(row) for row in result.fetchall()]
