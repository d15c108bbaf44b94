"""Pydantic schemas for em_messaging API."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from src.em_common.money import to_display
from src.em_messaging.domain.models import Conversation, Message

MAX_MESSAGE_LENGTH = 1000


class SendMessageRequest(BaseModel):
    content: str = Field(..., max_length=MAX_MESSAGE_LENGTH)

    @field_validator("content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Message content cannot be empty")
        return stripped


class MessageResponse(BaseModel):
    id: str
    order_id: str
    sender_id: str
    receiver_id: str
    content: str
    type: str
    is_automated_delivery: bool
    read_at: datetime | None
    created_at: datetime | None

    @classmethod
    def from_domain(cls, message: Message) -> "MessageResponse":
        return cls(
            id=message.id,
            order_id=message.order_id,
            sender_id=message.sender_id,
            receiver_id=message.receiver_id,
            content=message.content,
            type=message.type,
            is_automated_delivery=message.is_automated_delivery,
            read_at=message.read_at,
            created_at=message.created_at,
        )


class MessageListResponse(BaseModel):
    items: list[MessageResponse]
    marked_read: int


class ConversationResponse(BaseModel):
    order_id: str
    order_status: str
    amount: int
    amount_display: str
    listing_id: str
    listing_title: str
    other_user_id: str
    other_username: str
    last_message: MessageResponse | None
    unread_count: int

    @classmethod
    def from_domain(cls, conversation: Conversation) -> "ConversationResponse":
        last = conversation.last_message
        return cls(
            order_id=conversation.order_id,
            order_status=conversation.order_status,
            amount=conversation.amount,
            amount_display=to_display(conversation.amount),
            listing_id=conversation.listing_id,
            listing_title=conversation.listing_title,
            other_user_id=conversation.other_user_id,
            other_username=conversation.other_username,
            last_message=MessageResponse.from_domain(last) if last else None,
            unread_count=conversation.unread_count,
        )


class InboxResponse(BaseModel):
    items: list[ConversationResponse]
    next_cursor: str | None
    has_more: bool
