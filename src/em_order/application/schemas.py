"""Pydantic schemas and cursor utilities for em_order API."""

import base64
import json
import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from src.em_common.enums import PaymentMethod
from src.em_common.money import to_display
from src.em_order.domain.models import Order

# ---------------------------------------------------------------------------
# Cursor-based pagination: (created_at, id) keyset
# ---------------------------------------------------------------------------


def keyset_encode(created_at: datetime | None, row_id: str) -> str:
    created = created_at.isoformat() if created_at else ""
    payload = json.dumps({"t": created, "id": row_id})
    return base64.urlsafe_b64encode(payload.encode()).decode()


def cursor_encode(order: Order) -> str:
    return keyset_encode(order.created_at, order.id)


def cursor_decode(cursor: str | None) -> tuple[datetime, str] | None:
    """Decode an opaque cursor. Returns None for a missing or garbled cursor."""
    if not cursor:
        return None
    try:
        payload = json.loads(base64.urlsafe_b64decode(cursor.encode()).decode())
        return datetime.fromisoformat(payload["t"]), str(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class CreateOrderRequest(BaseModel):
    listing_id: uuid.UUID
    payment_method: PaymentMethod | None = None


class MarkDeliveredRequest(BaseModel):
    delivery_message: str | None = Field(None, max_length=5000)


class CompleteOrderRequest(BaseModel):
    confirmation_message: str | None = Field(None, max_length=1000)


class DisputeOrderRequest(BaseModel):
    reason: str = Field(..., max_length=1000)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class OrderResponse(BaseModel):
    id: str
    listing_id: str
    buyer_id: str
    seller_id: str
    item_price: int
    commission: int
    amount: int
    amount_display: str
    status: str
    payment_method: str | None
    created_at: datetime | None
    updated_at: datetime | None

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            listing_id=order.listing_id,
            buyer_id=order.buyer_id,
            seller_id=order.seller_id,
            item_price=order.item_price,
            commission=order.commission,
            amount=order.amount,
            amount_display=to_display(order.amount),
            status=order.status,
            payment_method=order.payment_method,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class CostBreakdown(BaseModel):
    item_price: int
    commission: int
    commission_rate_bps: int
    amount: int
    item_price_display: str
    commission_display: str
    amount_display: str


class CreateOrderResponse(BaseModel):
    order: OrderResponse
    breakdown: CostBreakdown


class CompleteOrderResponse(BaseModel):
    order: OrderResponse
    seller_earnings: int
    seller_earnings_display: str
    hold_until: datetime | None
    hold_notice: str | None


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    next_cursor: str | None
    has_more: bool
