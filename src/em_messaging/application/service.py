"""MessagingService — per-order chat between buyer and seller."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.em_common.enums import MessageType
from src.em_common.errors import ForbiddenError, OrderNotFoundError
from src.em_common.identifiers import new_id
from src.em_messaging.application.schemas import (
    ConversationResponse,
    InboxResponse,
    MessageListResponse,
    MessageResponse,
    SendMessageRequest,
)
from src.em_messaging.domain.models import Message
from src.em_messaging.domain.repository import MessageRepositoryProtocol
from src.em_messaging.infrastructure.persistence import MessageRepository
from src.em_notification.publisher import (
    NotificationPort,
    RedisNotificationPublisher,
    publish_all,
)
from src.em_order.application.schemas import cursor_decode, keyset_encode
from src.em_order.domain.models import Order
from src.em_order.domain.repository import OrderRepositoryProtocol
from src.em_order.infrastructure.persistence import OrderRepository

logger = logging.getLogger(__name__)


class MessagingService:
    def __init__(
        self,
        messages: MessageRepositoryProtocol | None = None,
        orders: OrderRepositoryProtocol | None = None,
        publisher: NotificationPort | None = None,
    ) -> None:
        self._messages: MessageRepositoryProtocol = messages or MessageRepository()
        self._orders: OrderRepositoryProtocol = orders or OrderRepository()
        self._publisher: NotificationPort = publisher or RedisNotificationPublisher()

    async def _party_order(self, order_id: str, user_id: str, db: AsyncSession) -> Order:
        order = await self._orders.get_by_id(order_id, db)
        if order is None:
            raise OrderNotFoundError(order_id)
        if order.party_role(user_id) is None:
            raise ForbiddenError("Not a party to this order")
        return order

    async def send_message(
        self,
        order_id: str,
        sender_id: str,
        req: SendMessageRequest,
        db: AsyncSession,
    ) -> MessageResponse:
        try:
            order = await self._party_order(order_id, sender_id, db)
            message = await self._messages.insert(
                Message(
                    id=new_id(),
                    order_id=order.id,
                    sender_id=sender_id,
                    receiver_id=order.counterparty(sender_id),
                    content=req.content,
                    type=MessageType.TEXT.value,
                ),
                db,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await publish_all(self._publisher, [message.to_event()])
        return MessageResponse.from_domain(message)

    async def list_messages(
        self, order_id: str, user_id: str, db: AsyncSession
    ) -> MessageListResponse:
        """Chat history for a party; messages addressed to them become read."""
        try:
            await self._party_order(order_id, user_id, db)
            marked = await self._messages.mark_read(order_id, user_id, db)
            messages = await self._messages.list_for_order(order_id, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if marked:
            logger.debug("order=%s marked %d messages read for %s", order_id, marked, user_id)
        return MessageListResponse(
            items=[MessageResponse.from_domain(m) for m in messages],
            marked_read=marked,
        )

    async def inbox(
        self, user_id: str, cursor: str | None, limit: int, db: AsyncSession
    ) -> InboxResponse:
        """Conversations across every order the user is a party to. Reading the
        inbox does not mark anything read; opening an order's chat does."""
        conversations = await self._messages.list_conversations(
            user_id, cursor_decode(cursor), limit + 1, db
        )
        has_more = len(conversations) > limit
        page = conversations[:limit]
        next_cursor = None
        if has_more and page:
            next_cursor = keyset_encode(page[-1].order_created_at, page[-1].order_id)
        return InboxResponse(
            items=[ConversationResponse.from_domain(c) for c in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )
