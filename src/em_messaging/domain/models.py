"""Domain models for em_messaging — pure dataclasses."""

from dataclasses import dataclass
from datetime import datetime

from src.em_notification.events import NewMessageEvent


@dataclass
class Message:
    id: str
    order_id: str
    sender_id: str
    receiver_id: str
    content: str
    type: str                       # MessageType value
    is_automated_delivery: bool = False
    read_at: datetime | None = None
    created_at: datetime | None = None

    def to_event(self) -> NewMessageEvent:
        return NewMessageEvent(
            order_id=self.order_id,
            message_id=self.id,
            sender_id=self.sender_id,
            receiver_id=self.receiver_id,
            content=self.content,
            message_type=self.type,
            is_automated_delivery=self.is_automated_delivery,
            created_at=self.created_at,
        )


@dataclass
class Conversation:
    """One order's chat as seen from one party's inbox."""

    order_id: str
    order_status: str
    amount: int
    order_created_at: datetime
    listing_id: str
    listing_title: str
    other_user_id: str
    other_username: str
    last_message: Message | None
    unread_count: int
