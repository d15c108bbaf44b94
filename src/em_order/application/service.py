"""OrderService — the escrow state machine.

Every transition follows the same shape:
  1. lock the order row (SELECT ... FOR UPDATE)
  2. check the actor, then the transition table
  3. write status, messages and ledger effects in the same session
  4. commit (or roll back and re-raise)
  5. publish the buffered events

Events are published only after commit, so a rolled-back transition is
never announced.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.em_account.domain.models import LedgerEntry
from src.em_account.domain.repository import LedgerRepositoryProtocol
from src.em_account.infrastructure.persistence import LedgerRepository
from src.em_common.datetime_utils import hours_from_now
from src.em_common.enums import LedgerMethod, MessageType, OrderStatus, PaymentMethod
from src.em_common.errors import (
    ForbiddenError,
    InvalidInputError,
    ListingNotFoundError,
    ListingUnavailableError,
    OrderNotFoundError,
    SelfPurchaseError,
    UserNotFoundError,
)
from src.em_common.identifiers import new_id
from src.em_common.money import calculate_commission, to_display
from src.em_delivery.application.service import AutomatedDeliveryEngine
from src.em_gateway.user.repository import UserRepository, UserRepositoryProtocol
from src.em_listing.domain.repository import ListingRepositoryProtocol
from src.em_listing.infrastructure.persistence import ListingRepository
from src.em_messaging.domain.models import Message
from src.em_messaging.domain.repository import MessageRepositoryProtocol
from src.em_messaging.infrastructure.persistence import MessageRepository
from src.em_notification.events import OrderEvent as NotificationEvent
from src.em_notification.events import OrderStatusUpdatedEvent
from src.em_notification.publisher import (
    NotificationPort,
    RedisNotificationPublisher,
    publish_all,
)
from src.em_order.application.schemas import (
    CompleteOrderRequest,
    CompleteOrderResponse,
    CostBreakdown,
    CreateOrderRequest,
    CreateOrderResponse,
    DisputeOrderRequest,
    MarkDeliveredRequest,
    OrderListResponse,
    OrderResponse,
    cursor_decode,
    cursor_encode,
)
from src.em_order.domain.models import Order
from src.em_order.domain.repository import OrderRepositoryProtocol
from src.em_order.domain.state_machine import OrderEvent, can_transition, ensure_transition
from src.em_order.infrastructure.persistence import OrderRepository

logger = logging.getLogger(__name__)

MARK_PAID_NOTICE = "Order marked as PAID by seller. Awaiting delivery."
DEFAULT_DELIVERY_NOTICE = (
    "Order has been delivered! Please confirm receipt to complete the transaction."
)


def _hold_notice(entry: LedgerEntry) -> str | None:
    if entry.hold_until is None:
        return None
    return f"{settings.UNVERIFIED_HOLD_HOURS}-hour fund hold applies for unverified sellers"


@dataclass
class PaymentApplication:
    """Result of applying a verified gateway payment to an order."""

    order: Order
    applied: bool
    events: list[NotificationEvent] = field(default_factory=list)


class OrderService:
    def __init__(
        self,
        orders: OrderRepositoryProtocol | None = None,
        listings: ListingRepositoryProtocol | None = None,
        messages: MessageRepositoryProtocol | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
        users: UserRepositoryProtocol | None = None,
        delivery: AutomatedDeliveryEngine | None = None,
        publisher: NotificationPort | None = None,
    ) -> None:
        self._orders: OrderRepositoryProtocol = orders or OrderRepository()
        self._listings: ListingRepositoryProtocol = listings or ListingRepository()
        self._messages: MessageRepositoryProtocol = messages or MessageRepository()
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._users: UserRepositoryProtocol = users or UserRepository()
        self._delivery = delivery or AutomatedDeliveryEngine(
            self._orders, self._listings, self._messages
        )
        self._publisher: NotificationPort = publisher or RedisNotificationPublisher()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_order(
        self, req: CreateOrderRequest, buyer_id: str, db: AsyncSession
    ) -> CreateOrderResponse:
        listing_id = str(req.listing_id)
        try:
            listing = await self._listings.get_by_id(listing_id, db)
            if listing is None:
                raise ListingNotFoundError(listing_id)
            if listing.seller_id == buyer_id:
                raise SelfPurchaseError()

            reservation = await self._listings.reserve_unit(listing_id, buyer_id, db)
            if reservation is None:
                raise ListingUnavailableError(listing_id)

            price = reservation.listing.price
            commission = calculate_commission(price, reservation.commission_rate_bps)
            order = await self._orders.insert(
                Order(
                    id=new_id(),
                    listing_id=reservation.listing.id,
                    buyer_id=buyer_id,
                    seller_id=reservation.listing.seller_id,
                    item_price=price,
                    commission=commission,
                    amount=price + commission,
                    status=OrderStatus.PENDING.value,
                    payment_method=req.payment_method.value if req.payment_method else None,
                ),
                db,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "order=%s created listing=%s amount=%d commission=%d",
            order.id, order.listing_id, order.amount, order.commission,
        )
        return CreateOrderResponse(
            order=OrderResponse.from_domain(order),
            breakdown=CostBreakdown(
                item_price=order.item_price,
                commission=order.commission,
                commission_rate_bps=reservation.commission_rate_bps,
                amount=order.amount,
                item_price_display=to_display(order.item_price),
                commission_display=to_display(order.commission),
                amount_display=to_display(order.amount),
            ),
        )

    # ------------------------------------------------------------------
    # PENDING -> PAID
    # ------------------------------------------------------------------

    async def mark_paid(self, order_id: str, seller_id: str, db: AsyncSession) -> OrderResponse:
        try:
            order = await self._lock(order_id, db)
            if order.seller_id != seller_id:
                raise ForbiddenError("Only the seller can mark order as paid")
            order, events = await self._apply_payment(
                order,
                PaymentMethod.MANUAL.value,
                MARK_PAID_NOTICE,
                sender_id=order.seller_id,
                receiver_id=order.buyer_id,
                db=db,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await publish_all(self._publisher, events)
        return OrderResponse.from_domain(order)

    async def apply_gateway_payment(
        self,
        order_id: str,
        gateway: str,
        gateway_label: str,
        transaction_id: str,
        db: AsyncSession,
    ) -> PaymentApplication:
        """Apply a verified gateway payment inside the caller's transaction.

        The caller owns commit/rollback and publishes the returned events
        after committing. An order that already left PENDING is reported as
        not applied instead of raising, so gateway retries stay harmless.
        """
        order = await self._lock(order_id, db)
        if not can_transition(order.status, OrderEvent.PAYMENT_CONFIRMED):
            logger.warning(
                "order=%s payment %s via %s arrived in status %s; not applied",
                order.id, transaction_id, gateway, order.status,
            )
            return PaymentApplication(order=order, applied=False)

        order, events = await self._apply_payment(
            order,
            gateway,
            f"Payment completed via {gateway_label}! Transaction ID: {transaction_id}",
            sender_id=order.buyer_id,
            receiver_id=order.seller_id,
            db=db,
        )
        return PaymentApplication(order=order, applied=True, events=events)

    async def _apply_payment(
        self,
        order: Order,
        payment_method: str,
        notice: str,
        sender_id: str,
        receiver_id: str,
        db: AsyncSession,
    ) -> tuple[Order, list[NotificationEvent]]:
        target = ensure_transition(order, OrderEvent.PAYMENT_CONFIRMED)
        updated = await self._orders.update_status(
            order.id, target.value, db, payment_method=payment_method
        )
        message = await self._post(
            updated, sender_id, receiver_id, notice, MessageType.SYSTEM, db
        )
        logger.info("order=%s PENDING -> PAID via %s", order.id, payment_method)
        events: list[NotificationEvent] = [
            message.to_event(),
            OrderStatusUpdatedEvent(order_id=updated.id, status=updated.status),
        ]

        outcome = await self._delivery.process(order.id, db)
        if outcome.delivered and outcome.order is not None:
            updated = outcome.order
            events.extend(outcome.events())
        return updated, events

    # ------------------------------------------------------------------
    # PAID -> DELIVERED -> COMPLETED
    # ------------------------------------------------------------------

    async def mark_delivered(
        self,
        order_id: str,
        seller_id: str,
        req: MarkDeliveredRequest,
        db: AsyncSession,
    ) -> OrderResponse:
        try:
            order = await self._lock(order_id, db)
            if order.seller_id != seller_id:
                raise ForbiddenError("Only the seller can mark order as delivered")
            target = ensure_transition(order, OrderEvent.DELIVERED)
            listing = await self._listings.get_by_id(order.listing_id, db)
            updated = await self._orders.update_status(order.id, target.value, db)
            message = await self._post(
                updated,
                order.seller_id,
                order.buyer_id,
                req.delivery_message or DEFAULT_DELIVERY_NOTICE,
                MessageType.DELIVERY,
                db,
                is_automated_delivery=listing is not None and listing.delivery_type == "instant",
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("order=%s PAID -> DELIVERED", order_id)
        await publish_all(
            self._publisher,
            [message.to_event(), OrderStatusUpdatedEvent(order_id=updated.id, status=updated.status)],
        )
        return OrderResponse.from_domain(updated)

    async def complete_order(
        self,
        order_id: str,
        buyer_id: str,
        req: CompleteOrderRequest,
        db: AsyncSession,
    ) -> CompleteOrderResponse:
        try:
            order = await self._lock(order_id, db)
            if order.buyer_id != buyer_id:
                raise ForbiddenError("Only the buyer can confirm receipt")
            target = ensure_transition(order, OrderEvent.BUYER_CONFIRMED)
            entry = await self._release_funds(order, LedgerMethod.ESCROW_RELEASE, db)
            updated = await self._orders.update_status(order.id, target.value, db)
            hold_text = (
                f" ({settings.UNVERIFIED_HOLD_HOURS}-hour hold applies)" if entry.hold_until else ""
            )
            message = await self._post(
                updated,
                order.buyer_id,
                order.seller_id,
                req.confirmation_message
                or (
                    f"Order completed! Payment of {to_display(entry.amount)} "
                    f"has been released to seller{hold_text}."
                ),
                MessageType.COMPLETION,
                db,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "order=%s DELIVERED -> COMPLETED credited=%d hold_until=%s",
            order_id, entry.amount, entry.hold_until,
        )
        await publish_all(
            self._publisher,
            [message.to_event(), OrderStatusUpdatedEvent(order_id=updated.id, status=updated.status)],
        )
        return CompleteOrderResponse(
            order=OrderResponse.from_domain(updated),
            seller_earnings=entry.amount,
            seller_earnings_display=to_display(entry.amount),
            hold_until=entry.hold_until,
            hold_notice=_hold_notice(entry),
        )

    # ------------------------------------------------------------------
    # Disputes
    # ------------------------------------------------------------------

    async def dispute_order(
        self,
        order_id: str,
        user_id: str,
        req: DisputeOrderRequest,
        db: AsyncSession,
    ) -> OrderResponse:
        reason = req.reason.strip()
        if len(reason) < settings.DISPUTE_REASON_MIN_LENGTH:
            raise InvalidInputError(
                f"Dispute reason must be at least {settings.DISPUTE_REASON_MIN_LENGTH} characters",
                code=4005,
            )

        try:
            order = await self._lock(order_id, db)
            role = order.party_role(user_id)
            if role is None:
                raise ForbiddenError("Only the buyer or seller can dispute this order")
            previous = order.status
            target = ensure_transition(order, OrderEvent.DISPUTE)
            updated = await self._orders.update_status(order.id, target.value, db)
            message = await self._post(
                updated,
                user_id,
                order.counterparty(user_id),
                f"DISPUTE INITIATED by {role}: {reason}",
                MessageType.DISPUTE,
                db,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("order=%s %s -> DISPUTED by %s", order_id, previous, role)
        await publish_all(
            self._publisher,
            [message.to_event(), OrderStatusUpdatedEvent(order_id=updated.id, status=updated.status)],
        )
        return OrderResponse.from_domain(updated)

    # ------------------------------------------------------------------
    # Admin overrides
    # ------------------------------------------------------------------

    async def force_complete(
        self, order_id: str, admin_id: str, note: str | None, db: AsyncSession
    ) -> CompleteOrderResponse:
        note_text = f": {note.strip()}" if note and note.strip() else ""
        try:
            order = await self._lock(order_id, db)
            previous = order.status
            target = ensure_transition(order, OrderEvent.FORCE_COMPLETE)
            entry = await self._release_funds(order, LedgerMethod.ADMIN_OVERRIDE, db)
            updated = await self._orders.update_status(order.id, target.value, db)
            message = await self._post(
                updated,
                admin_id,
                order.buyer_id,
                f"ORDER FORCE-COMPLETED BY ADMIN{note_text}. Payment released to seller.",
                MessageType.SYSTEM,
                db,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.warning(
            "order=%s %s -> COMPLETED forced by admin=%s credited=%d",
            order_id, previous, admin_id, entry.amount,
        )
        await publish_all(
            self._publisher,
            [message.to_event(), OrderStatusUpdatedEvent(order_id=updated.id, status=updated.status)],
        )
        return CompleteOrderResponse(
            order=OrderResponse.from_domain(updated),
            seller_earnings=entry.amount,
            seller_earnings_display=to_display(entry.amount),
            hold_until=entry.hold_until,
            hold_notice=_hold_notice(entry),
        )

    async def refund_order(
        self, order_id: str, admin_id: str, note: str | None, db: AsyncSession
    ) -> OrderResponse:
        note_text = f": {note.strip()}" if note and note.strip() else ""
        try:
            order = await self._lock(order_id, db)
            target = ensure_transition(order, OrderEvent.REFUND)
            updated = await self._orders.update_status(order.id, target.value, db)
            message = await self._post(
                updated,
                admin_id,
                order.buyer_id,
                f"ORDER REFUNDED BY ADMIN{note_text}. Dispute resolved in favour of buyer.",
                MessageType.SYSTEM,
                db,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.warning("order=%s DISPUTED -> REFUNDED by admin=%s", order_id, admin_id)
        await publish_all(
            self._publisher,
            [message.to_event(), OrderStatusUpdatedEvent(order_id=updated.id, status=updated.status)],
        )
        return OrderResponse.from_domain(updated)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_order(self, order_id: str, user_id: str, db: AsyncSession) -> OrderResponse:
        order = await self._orders.get_by_id(order_id, db)
        if order is None:
            raise OrderNotFoundError(order_id)
        if order.party_role(user_id) is None:
            raise ForbiddenError("Not a party to this order")
        return OrderResponse.from_domain(order)

    async def list_orders(
        self,
        user_id: str,
        role: str,
        status: str | None,
        cursor: str | None,
        limit: int,
        db: AsyncSession,
    ) -> OrderListResponse:
        orders = await self._orders.list_by_party(
            user_id, role, status, cursor_decode(cursor), limit + 1, db
        )
        has_more = len(orders) > limit
        page = orders[:limit]
        return OrderListResponse(
            items=[OrderResponse.from_domain(o) for o in page],
            next_cursor=cursor_encode(page[-1]) if has_more and page else None,
            has_more=has_more,
        )

    async def list_all_orders(
        self,
        status: str | None,
        search: str | None,
        cursor: str | None,
        limit: int,
        db: AsyncSession,
    ) -> OrderListResponse:
        """Admin listing across all parties, newest first."""
        orders = await self._orders.list_all(
            status.upper() if status else None,
            (search or "").strip() or None,
            cursor_decode(cursor),
            limit + 1,
            db,
        )
        has_more = len(orders) > limit
        page = orders[:limit]
        return OrderListResponse(
            items=[OrderResponse.from_domain(o) for o in page],
            next_cursor=cursor_encode(page[-1]) if has_more and page else None,
            has_more=has_more,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _lock(self, order_id: str, db: AsyncSession) -> Order:
        order = await self._orders.get_for_update(order_id, db)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def _release_funds(
        self, order: Order, method: LedgerMethod, db: AsyncSession
    ) -> LedgerEntry:
        """Credit seller earnings; unverified sellers get a timed hold."""
        seller = await self._users.get_profile(order.seller_id, db)
        if seller is None:
            raise UserNotFoundError(order.seller_id)
        hold_until = None if seller.verified else hours_from_now(settings.UNVERIFIED_HOLD_HOURS)
        return await self._ledger.credit(
            db,
            order.seller_id,
            order.id,
            order.seller_earnings,
            method.value,
            hold_until,
            f"Escrow release for order {order.id}",
        )

    async def _post(
        self,
        order: Order,
        sender_id: str,
        receiver_id: str,
        content: str,
        message_type: MessageType,
        db: AsyncSession,
        is_automated_delivery: bool = False,
    ) -> Message:
        return await self._messages.insert(
            Message(
                id=new_id(),
                order_id=order.id,
                sender_id=sender_id,
                receiver_id=receiver_id,
                content=content,
                type=message_type.value,
                is_automated_delivery=is_automated_delivery,
            ),
            db,
        )
