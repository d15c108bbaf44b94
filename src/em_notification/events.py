"""Real-time event contract.

Every event is scoped to one order and travels on channel ``order:{order_id}``.
Consumers (socket gateway, mobile push bridge) subscribe outside this service.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol


def order_channel(order_id: str) -> str:
    return f"order:{order_id}"


class OrderEvent(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def channel(self) -> str: ...

    def payload(self) -> dict[str, Any]: ...


@dataclass(frozen=True)
class NewMessageEvent:
    order_id: str
    message_id: str
    sender_id: str
    receiver_id: str
    content: str
    message_type: str
    is_automated_delivery: bool = False
    created_at: datetime | None = None

    name: str = field(default="new-message", init=False)

    @property
    def channel(self) -> str:
        return order_channel(self.order_id)

    def payload(self) -> dict[str, Any]:
        return {
            "id": self.message_id,
            "order_id": self.order_id,
            "sender_id": self.sender_id,
            "receiver_id": self.receiver_id,
            "content": self.content,
            "type": self.message_type,
            "is_automated_delivery": self.is_automated_delivery,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class OrderStatusUpdatedEvent:
    order_id: str
    status: str
    automated: bool = False

    name: str = field(default="order-status-updated", init=False)

    @property
    def channel(self) -> str:
        return order_channel(self.order_id)

    def payload(self) -> dict[str, Any]:
        return {"order_id": self.order_id, "status": self.status, "automated": self.automated}
