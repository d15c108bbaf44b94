"""ListingRepository — raw SQL persistence implementation."""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_listing.domain.models import Listing, ListingReservation

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_SELECT_COLUMNS = """
    id, seller_id, category_id, title, price, stock_type, quantity,
    active, hidden, delivery_type, delivery_content, created_at, updated_at
"""

_GET_LISTING_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM listings WHERE id = :id
""")

# Single conditional statement: the row lock taken by UPDATE serializes
# concurrent buyers, and READ COMMITTED re-evaluates the WHERE clause against
# the committed row, so the last unit can only be reserved once.
_RESERVE_UNIT_SQL = text("""
    UPDATE listings l
    SET quantity = CASE WHEN l.stock_type = 'limited'
                        THEN l.quantity - 1 ELSE l.quantity END,
        active = CASE WHEN l.stock_type = 'limited' AND l.quantity - 1 = 0
                      THEN FALSE ELSE l.active END,
        updated_at = NOW()
    FROM categories c
    WHERE l.id = :listing_id
      AND c.id = l.category_id
      AND l.active
      AND NOT l.hidden
      AND l.seller_id <> :buyer_id
      AND (l.stock_type = 'unlimited' OR l.quantity > 0)
    RETURNING l.id, l.seller_id, l.category_id, l.title, l.price, l.stock_type,
              l.quantity, l.active, l.hidden, l.delivery_type, l.delivery_content,
              l.created_at, l.updated_at, c.commission_rate_bps
""")

_SET_DELIVERY_SQL = text(f"""
    UPDATE listings
    SET delivery_type = :delivery_type,
        delivery_content = :delivery_content,
        updated_at = NOW()
    WHERE id = :id
    RETURNING {_SELECT_COLUMNS}
""")


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_listing(row: Any) -> Listing:
    return Listing(
        id=str(row.id),
        seller_id=str(row.seller_id),
        category_id=str(row.category_id),
        title=row.title,
        price=row.price,
        stock_type=row.stock_type,
        quantity=row.quantity,
        active=row.active,
        hidden=row.hidden,
        delivery_type=row.delivery_type,
        delivery_content=row.delivery_content,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ListingRepository:
    """Concrete implementation of ListingRepositoryProtocol using raw SQL."""

    async def get_by_id(self, listing_id: str, db: AsyncSession) -> Listing | None:
        result = await db.execute(_GET_LISTING_SQL, {"id": listing_id})
        row = result.fetchone()
        return _row_to_listing(row) if row else None

    async def reserve_unit(
        self, listing_id: str, buyer_id: str, db: AsyncSession
    ) -> ListingReservation | None:
        """Atomically take one unit. None means not purchasable right now."""
        result = await db.execute(
            _RESERVE_UNIT_SQL, {"listing_id": listing_id, "buyer_id": buyer_id}
        )
        row = result.fetchone()
        if row is None:
            return None
        return ListingReservation(
            listing=_row_to_listing(row),
            commission_rate_bps=row.commission_rate_bps,
        )

    async def set_delivery(
        self,
        listing_id: str,
        delivery_type: str,
        delivery_content: str | None,
        db: AsyncSession,
    ) -> Listing | None:
        result = await db.execute(
            _SET_DELIVERY_SQL,
            {
                "id": listing_id,
                "delivery_type": delivery_type,
                "delivery_content": delivery_content,
            },
        )
        row = result.fetchone()
        return _row_to_listing(row) if row else None
