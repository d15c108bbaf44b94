"""MessageRepository Protocol — interface contract for persistence layer."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.em_messaging.domain.models import Conversation, Message


class MessageRepositoryProtocol(Protocol):
    async def insert(self, message: Message, db: AsyncSession) -> Message: ...

    async def list_for_order(self, order_id: str, db: AsyncSession) -> list[Message]: ...

    async def mark_read(self, order_id: str, receiver_id: str, db: AsyncSession) -> int: ...

    async def list_conversations(
        self,
        user_id: str,
        cursor: tuple[datetime, str] | None,
        limit: int,
        db: AsyncSession,
    ) -> list[Conversation]: ...
