"""AutomatedDeliveryEngine — hands instant-delivery content to the buyer.

Runs right after PENDING -> PAID inside the caller's transaction, wrapped in
a savepoint so a failure here rolls back only the delivery and leaves the
payment applied. The order row is re-read under FOR UPDATE; anything other
than PAID means another path (seller, retried webhook) got there first and
the call is a no-op.

Stock is not touched: it was reserved when the order was created.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_common.enums import MessageType, OrderStatus
from src.em_common.identifiers import new_id
from src.em_listing.domain.repository import ListingRepositoryProtocol
from src.em_listing.infrastructure.persistence import ListingRepository
from src.em_messaging.domain.models import Message
from src.em_messaging.domain.repository import MessageRepositoryProtocol
from src.em_messaging.infrastructure.persistence import MessageRepository
from src.em_notification.events import OrderEvent as NotificationEvent
from src.em_notification.events import OrderStatusUpdatedEvent
from src.em_order.domain.models import Order
from src.em_order.domain.repository import OrderRepositoryProtocol
from src.em_order.domain.state_machine import OrderEvent, ensure_transition
from src.em_order.infrastructure.persistence import OrderRepository

logger = logging.getLogger(__name__)

AUTOMATED_DELIVERY_NOTICE = (
    "Item has been automatically delivered. "
    "Please confirm receipt when you have received your item."
)


@dataclass
class DeliveryOutcome:
    delivered: bool
    reason: str | None = None
    order: Order | None = None
    messages: list[Message] = field(default_factory=list)

    @classmethod
    def not_eligible(cls, reason: str) -> "DeliveryOutcome":
        return cls(delivered=False, reason=reason)

    def events(self) -> list[NotificationEvent]:
        if not self.delivered or self.order is None:
            return []
        events: list[NotificationEvent] = [m.to_event() for m in self.messages]
        events.append(
            OrderStatusUpdatedEvent(order_id=self.order.id, status=self.order.status, automated=True)
        )
        return events


class AutomatedDeliveryEngine:
    def __init__(
        self,
        orders: OrderRepositoryProtocol | None = None,
        listings: ListingRepositoryProtocol | None = None,
        messages: MessageRepositoryProtocol | None = None,
    ) -> None:
        self._orders: OrderRepositoryProtocol = orders or OrderRepository()
        self._listings: ListingRepositoryProtocol = listings or ListingRepository()
        self._messages: MessageRepositoryProtocol = messages or MessageRepository()

    async def process(self, order_id: str, db: AsyncSession) -> DeliveryOutcome:
        """Deliver if eligible. Never raises for an ineligible order."""
        try:
            async with db.begin_nested():
                outcome = await self._deliver(order_id, db)
        except SQLAlchemyError:
            logger.exception("Automated delivery failed for order=%s", order_id)
            return DeliveryOutcome.not_eligible("error")

        if outcome.delivered:
            logger.info("order=%s PAID -> DELIVERED (automated)", order_id)
        else:
            logger.info("order=%s not eligible for automated delivery: %s", order_id, outcome.reason)
        return outcome

    async def _deliver(self, order_id: str, db: AsyncSession) -> DeliveryOutcome:
        order = await self._orders.get_for_update(order_id, db)
        if order is None:
            return DeliveryOutcome.not_eligible("order_not_found")
        if order.status != OrderStatus.PAID:
            return DeliveryOutcome.not_eligible(f"status_{order.status}")

        listing = await self._listings.get_by_id(order.listing_id, db)
        if listing is None or not listing.has_instant_content:
            return DeliveryOutcome.not_eligible("no_instant_content")

        target = ensure_transition(order, OrderEvent.DELIVERED)
        delivery = await self._messages.insert(
            Message(
                id=new_id(),
                order_id=order.id,
                sender_id=order.seller_id,
                receiver_id=order.buyer_id,
                content=listing.delivery_content or "",
                type=MessageType.DELIVERY.value,
                is_automated_delivery=True,
            ),
            db,
        )
        updated = await self._orders.update_status(order.id, target.value, db)
        notice = await self._messages.insert(
            Message(
                id=new_id(),
                order_id=order.id,
                sender_id=order.seller_id,
                receiver_id=order.buyer_id,
                content=AUTOMATED_DELIVERY_NOTICE,
                type=MessageType.SYSTEM.value,
            ),
            db,
        )
        return DeliveryOutcome(delivered=True, order=updated, messages=[delivery, notice])
