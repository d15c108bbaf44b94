"""OrderRepository — raw SQL persistence implementation."""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_common.errors import InternalError, OrderNotFoundError
from src.em_order.domain.models import Order

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SELECT_COLUMNS = """
    id, listing_id, buyer_id, seller_id, item_price, commission, amount,
    status, payment_method, created_at, updated_at
"""

_INSERT_ORDER_SQL = text(f"""
    INSERT INTO orders (id, listing_id, buyer_id, seller_id,
        item_price, commission, amount, status, payment_method)
    VALUES (:id, :listing_id, :buyer_id, :seller_id,
        :item_price, :commission, :amount, :status, :payment_method)
    RETURNING {_SELECT_COLUMNS}
""")

_GET_ORDER_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE id = :id
""")

# Row lock serializes every transition on one order for the rest of the
# transaction; other orders are unaffected.
_GET_ORDER_FOR_UPDATE_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE id = :id
    FOR UPDATE
""")

_UPDATE_STATUS_SQL = text(f"""
    UPDATE orders
    SET status = :status,
        payment_method = COALESCE(:payment_method, payment_method),
        updated_at = NOW()
    WHERE id = :id
    RETURNING {_SELECT_COLUMNS}
""")

_LIST_BUYING_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE buyer_id = :user_id
      AND (CAST(:status AS TEXT) IS NULL OR status = :status)
      AND (CAST(:cursor_ts AS TIMESTAMPTZ) IS NULL
           OR (created_at, id) < (CAST(:cursor_ts AS TIMESTAMPTZ), CAST(:cursor_id AS UUID)))
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

_LIST_SELLING_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE seller_id = :user_id
      AND (CAST(:status AS TEXT) IS NULL OR status = :status)
      AND (CAST(:cursor_ts AS TIMESTAMPTZ) IS NULL
           OR (created_at, id) < (CAST(:cursor_ts AS TIMESTAMPTZ), CAST(:cursor_id AS UUID)))
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

# Admin view across all parties. search matches listing title or either
# party's username, case-insensitively.
_LIST_ALL_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders o
    WHERE (CAST(:status AS TEXT) IS NULL OR o.status = :status)
      AND (CAST(:pattern AS TEXT) IS NULL OR EXISTS (
            SELECT 1
            FROM listings l, users b, users s
            WHERE l.id = o.listing_id AND b.id = o.buyer_id AND s.id = o.seller_id
              AND (l.title ILIKE :pattern OR b.username ILIKE :pattern
                   OR s.username ILIKE :pattern)))
      AND (CAST(:cursor_ts AS TIMESTAMPTZ) IS NULL
           OR (o.created_at, o.id) < (CAST(:cursor_ts AS TIMESTAMPTZ), CAST(:cursor_id AS UUID)))
    ORDER BY o.created_at DESC, o.id DESC
    LIMIT :limit
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _row_to_order(row: Any) -> Order:
    """Convert a DB result row to an Order domain object."""
    return Order(
        id=str(row.id),
        listing_id=str(row.listing_id),
        buyer_id=str(row.buyer_id),
        seller_id=str(row.seller_id),
        item_price=row.item_price,
        commission=row.commission,
        amount=row.amount,
        status=row.status,
        payment_method=row.payment_method,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrderRepository:
    """Concrete implementation of OrderRepositoryProtocol using raw SQL."""

    async def insert(self, order: Order, db: AsyncSession) -> Order:
        result = await db.execute(
            _INSERT_ORDER_SQL,
            {
                "id": order.id,
                "listing_id": order.listing_id,
                "buyer_id": order.buyer_id,
                "seller_id": order.seller_id,
                "item_price": order.item_price,
                "commission": order.commission,
                "amount": order.amount,
                "status": order.status,
                "payment_method": order.payment_method,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Order insert returned no rows")
        return _row_to_order(row)

    async def get_by_id(self, order_id: str, db: AsyncSession) -> Order | None:
        result = await db.execute(_GET_ORDER_SQL, {"id": order_id})
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def get_for_update(self, order_id: str, db: AsyncSession) -> Order | None:
        result = await db.execute(_GET_ORDER_FOR_UPDATE_SQL, {"id": order_id})
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def update_status(
        self,
        order_id: str,
        status: str,
        db: AsyncSession,
        payment_method: str | None = None,
    ) -> Order:
        result = await db.execute(
            _UPDATE_STATUS_SQL,
            {"id": order_id, "status": status, "payment_method": payment_method},
        )
        row = result.fetchone()
        if row is None:
            raise OrderNotFoundError(order_id)
        return _row_to_order(row)

    async def list_by_party(
        self,
        user_id: str,
        role: str,
        status: str | None,
        cursor: tuple[datetime, str] | None,
        limit: int,
        db: AsyncSession,
    ) -> list[Order]:
        sql = _LIST_SELLING_SQL if role == "selling" else _LIST_BUYING_SQL
        cursor_ts, cursor_id = cursor if cursor else (None, None)
        result = await db.execute(
            sql,
            {
                "user_id": user_id,
                "status": status,
                "cursor_ts": cursor_ts,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_order(row) for row in result.fetchall()]

    async def list_all(
        self,
        status: str | None,
        search: str | None,
        cursor: tuple[datetime, str] | None,
        limit: int,
        db: AsyncSession,
    ) -> list[Order]:
        cursor_ts, cursor_id = cursor if cursor else (None, None)
        pattern = f"%{_escape_like(search)}%" if search else None
        result = await db.execute(
            _LIST_ALL_SQL,
            {
                "status": status,
                "pattern": pattern,
                "cursor_ts": cursor_ts,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_order(row) for row in result.fetchall()]
