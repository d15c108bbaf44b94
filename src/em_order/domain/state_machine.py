"""Order lifecycle transition table.

    PENDING ──pay──▶ PAID ──deliver──▶ DELIVERED ──confirm──▶ COMPLETED
       │               │                  │
       └───────────────┴──── dispute ─────┴──▶ DISPUTED ──refund──▶ REFUNDED

Admin force-complete reaches COMPLETED from any non-terminal status.
COMPLETED and REFUNDED are terminal. Actor checks (buyer, seller, admin)
belong to the service; this module only knows statuses.
"""

from enum import Enum

from src.em_common.enums import OrderStatus
from src.em_common.errors import InvalidTransitionError
from src.em_order.domain.models import Order


class OrderEvent(str, Enum):
    PAYMENT_CONFIRMED = "payment_confirmed"   # seller marks paid, or gateway callback
    DELIVERED = "delivered"                   # seller marks delivered, or automated delivery
    BUYER_CONFIRMED = "buyer_confirmed"
    DISPUTE = "dispute"
    FORCE_COMPLETE = "force_complete"
    REFUND = "refund"


_TRANSITIONS: dict[OrderEvent, tuple[frozenset[OrderStatus], OrderStatus]] = {
    OrderEvent.PAYMENT_CONFIRMED: (frozenset({OrderStatus.PENDING}), OrderStatus.PAID),
    OrderEvent.DELIVERED: (frozenset({OrderStatus.PAID}), OrderStatus.DELIVERED),
    OrderEvent.BUYER_CONFIRMED: (frozenset({OrderStatus.DELIVERED}), OrderStatus.COMPLETED),
    OrderEvent.DISPUTE: (
        frozenset({OrderStatus.PENDING, OrderStatus.PAID, OrderStatus.DELIVERED}),
        OrderStatus.DISPUTED,
    ),
    OrderEvent.FORCE_COMPLETE: (
        frozenset({
            OrderStatus.PENDING,
            OrderStatus.PAID,
            OrderStatus.DELIVERED,
            OrderStatus.DISPUTED,
        }),
        OrderStatus.COMPLETED,
    ),
    OrderEvent.REFUND: (frozenset({OrderStatus.DISPUTED}), OrderStatus.REFUNDED),
}


def can_transition(status: str, event: OrderEvent) -> bool:
    allowed, _ = _TRANSITIONS[event]
    return status in allowed


def ensure_transition(order: Order, event: OrderEvent) -> OrderStatus:
    """Return the target status or raise InvalidTransitionError (409)."""
    allowed, target = _TRANSITIONS[event]
    if order.is_terminal or order.status not in allowed:
        raise InvalidTransitionError(order.id, order.status, target.value)
    return target
