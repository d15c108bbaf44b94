"""LedgerRepository — concrete implementation of LedgerRepositoryProtocol.

The balance increment and the ledger insert are two statements in the
caller's transaction; they commit or roll back together with the order
status change that triggered them.

Transaction ownership: The CALLER (application service) commits or rolls back.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_account.domain.models import BalanceMismatch, BalanceSnapshot, LedgerEntry
from src.em_common.enums import LedgerEntryKind, LedgerEntryStatus
from src.em_common.errors import InternalError, UserNotFoundError

_LEDGER_COLUMNS = """
    id, user_id, order_id, kind, amount, status, method,
    hold_until, balance_after, description, created_at
"""

_INCREMENT_BALANCE_SQL = text("""
    UPDATE users
    SET balance = balance + :amount,
        updated_at = NOW()
    WHERE id = :user_id
    RETURNING balance
""")

_INSERT_LEDGER_SQL = text(f"""
    INSERT INTO ledger_entries
        (user_id, order_id, kind, amount, status, method,
         hold_until, balance_after, description)
    VALUES
        (:user_id, :order_id, :kind, :amount, :status, :method,
         :hold_until, :balance_after, :description)
    RETURNING {_LEDGER_COLUMNS}
""")

_GET_BALANCE_SQL = text("""
    SELECT u.id AS user_id,
           u.balance,
           COALESCE((
               SELECT SUM(le.amount)
               FROM ledger_entries le
               WHERE le.user_id = u.id
                 AND le.kind = 'CREDIT'
                 AND le.status = 'COMPLETED'
                 AND le.hold_until > :now
           ), 0) AS held
    FROM users u
    WHERE u.id = :user_id
""")

_LIST_LEDGER_SQL = text(f"""
    SELECT {_LEDGER_COLUMNS}
    FROM ledger_entries
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < :cursor_id)
      AND (CAST(:kind AS TEXT) IS NULL OR kind = :kind)
    ORDER BY id DESC
    LIMIT :limit
""")

_BALANCE_MISMATCH_SQL = text("""
    SELECT u.id AS user_id,
           u.balance AS cached_balance,
           COALESCE(SUM(
               CASE WHEN le.kind = 'CREDIT' THEN le.amount ELSE -le.amount END
           ), 0) AS ledger_balance
    FROM users u
    LEFT JOIN ledger_entries le
           ON le.user_id = u.id AND le.status = 'COMPLETED'
    GROUP BY u.id, u.balance
    HAVING u.balance <> COALESCE(SUM(
               CASE WHEN le.kind = 'CREDIT' THEN le.amount ELSE -le.amount END
           ), 0)
""")


def _row_to_ledger(row: object) -> LedgerEntry:
    return LedgerEntry(
        id=row.id,  # type: ignore[attr-defined]
        user_id=str(row.user_id),  # type: ignore[attr-defined]
        order_id=str(row.order_id) if row.order_id else None,  # type: ignore[attr-defined]
        kind=row.kind,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        method=row.method,  # type: ignore[attr-defined]
        hold_until=row.hold_until,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class LedgerRepository:
    """Concrete repository — every balance change is paired with one entry."""

    async def credit(
        self,
        db: AsyncSession,
        user_id: str,
        order_id: str,
        amount: int,
        method: str,
        hold_until: datetime | None,
        description: str,
    ) -> LedgerEntry:
        result = await db.execute(
            _INCREMENT_BALANCE_SQL, {"user_id": user_id, "amount": amount}
        )
        row = result.fetchone()
        if row is None:
            raise UserNotFoundError(user_id)

        ledger_result = await db.execute(
            _INSERT_LEDGER_SQL,
            {
                "user_id": user_id,
                "order_id": order_id,
                "kind": LedgerEntryKind.CREDIT.value,
                "amount": amount,
                "status": LedgerEntryStatus.COMPLETED.value,
                "method": method,
                "hold_until": hold_until,
                "balance_after": row.balance,
                "description": description,
            },
        )
        ledger_row = ledger_result.fetchone()
        if ledger_row is None:
            raise InternalError("Ledger insert returned no rows")
        return _row_to_ledger(ledger_row)

    async def get_balance(
        self, db: AsyncSession, user_id: str, now: datetime
    ) -> BalanceSnapshot | None:
        result = await db.execute(_GET_BALANCE_SQL, {"user_id": user_id, "now": now})
        row = result.fetchone()
        if row is None:
            return None
        return BalanceSnapshot(
            user_id=str(row.user_id),
            balance=int(row.balance),
            held=int(row.held),
        )

    async def list_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        kind: str | None,
    ) -> list[LedgerEntry]:
        result = await db.execute(
            _LIST_LEDGER_SQL,
            {
                "user_id": user_id,
                "cursor_id": cursor_id,
                "kind": kind,
                "limit": limit,
            },
        )
        return [_row_to_ledger(row) for row in result.fetchall()]

    async def find_balance_mismatches(self, db: AsyncSession) -> list[BalanceMismatch]:
        result = await db.execute(_BALANCE_MISMATCH_SQL)
        return [
            BalanceMismatch(
                user_id=str(row.user_id),
                cached_balance=int(row.cached_balance),
                ledger_balance=int(row.ledger_balance),
            )
            for row in result.fetchall()
        ]
