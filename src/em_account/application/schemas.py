"""Pydantic schemas and cursor utilities for em_account API."""

import base64
import json
from datetime import datetime

from pydantic import BaseModel

from src.em_account.domain.models import BalanceSnapshot, LedgerEntry
from src.em_common.money import to_display

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    user_id: str
    balance: int
    balance_display: str
    held: int
    held_display: str
    withdrawable: int
    withdrawable_display: str

    @classmethod
    def from_snapshot(cls, snapshot: BalanceSnapshot) -> "BalanceResponse":
        return cls(
            user_id=snapshot.user_id,
            balance=snapshot.balance,
            balance_display=to_display(snapshot.balance),
            held=snapshot.held,
            held_display=to_display(snapshot.held),
            withdrawable=snapshot.withdrawable,
            withdrawable_display=to_display(snapshot.withdrawable),
        )


class LedgerEntryItem(BaseModel):
    id: int
    order_id: str | None
    kind: str
    amount: int
    amount_display: str
    status: str
    method: str
    hold_until: datetime | None
    balance_after: int
    description: str | None
    created_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, entry: LedgerEntry) -> "LedgerEntryItem":
        return cls(
            id=entry.id,
            order_id=entry.order_id,
            kind=entry.kind,
            amount=entry.amount,
            amount_display=to_display(entry.signed_amount),
            status=entry.status,
            method=entry.method,
            hold_until=entry.hold_until,
            balance_after=entry.balance_after,
            description=entry.description,
            created_at=entry.created_at.isoformat() if entry.created_at else "",
        )


class LedgerResponse(BaseModel):
    items: list[LedgerEntryItem]
    next_cursor: str | None
    has_more: bool
