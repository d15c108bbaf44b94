"""Escrow-wide invariant checks. Each query returns only violating rows."""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_account.application.service import LedgerApplicationService

logger = logging.getLogger(__name__)

_AMOUNT_MISMATCH_SQL = text("""
    SELECT id, item_price, commission, amount
    FROM orders
    WHERE amount <> item_price + commission
""")

_STOCK_VIOLATION_SQL = text("""
    SELECT id, quantity, active
    FROM listings
    WHERE stock_type = 'limited'
      AND (quantity IS NULL OR quantity < 0 OR (quantity = 0 AND active))
""")

# A completed order carries exactly one credit; nothing else carries any.
_CREDIT_COUNT_SQL = text("""
    SELECT o.id, o.status, COUNT(le.id) AS credits
    FROM orders o
    LEFT JOIN ledger_entries le
           ON le.order_id = o.id AND le.kind = 'CREDIT'
    GROUP BY o.id, o.status
    HAVING (o.status = 'COMPLETED' AND COUNT(le.id) <> 1)
        OR (o.status <> 'COMPLETED' AND COUNT(le.id) > 0)
""")


async def verify_escrow_invariants(
    db: AsyncSession, ledger: LedgerApplicationService | None = None
) -> list[str]:
    """Return human-readable violation strings; empty means healthy."""
    violations: list[str] = []

    for row in (await db.execute(_AMOUNT_MISMATCH_SQL)).fetchall():
        violations.append(
            f"order {row.id}: amount {row.amount} != item_price {row.item_price}"
            f" + commission {row.commission}"
        )

    for row in (await db.execute(_STOCK_VIOLATION_SQL)).fetchall():
        violations.append(f"listing {row.id}: quantity={row.quantity} active={row.active}")

    for row in (await db.execute(_CREDIT_COUNT_SQL)).fetchall():
        violations.append(f"order {row.id}: status {row.status} with {row.credits} ledger credits")

    mismatches = await (ledger or LedgerApplicationService()).verify_balance_projection(db)
    for m in mismatches:
        violations.append(
            f"user {m.user_id}: cached balance {m.cached_balance} != ledger {m.ledger_balance}"
        )

    for v in violations:
        logger.error("Invariant violated: %s", v)
    return violations
