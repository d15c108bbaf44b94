"""LedgerApplicationService — read side of the ledger.

Writes happen only through LedgerRepository.credit, called by the order
state machine inside its own transaction. Everything here is read-only and
runs without an explicit transaction.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.em_account.application.schemas import (
    BalanceResponse,
    LedgerEntryItem,
    LedgerResponse,
    cursor_decode,
    cursor_encode,
)
from src.em_account.domain.models import BalanceMismatch
from src.em_account.domain.repository import LedgerRepositoryProtocol
from src.em_account.infrastructure.persistence import LedgerRepository
from src.em_common.datetime_utils import utc_now
from src.em_common.errors import UserNotFoundError


class LedgerApplicationService:
    def __init__(self, repo: LedgerRepositoryProtocol | None = None) -> None:
        self._repo: LedgerRepositoryProtocol = repo or LedgerRepository()

    async def get_balance(self, db: AsyncSession, user_id: str) -> BalanceResponse:
        snapshot = await self._repo.get_balance(db, user_id, utc_now())
        if snapshot is None:
            raise UserNotFoundError(user_id)
        return BalanceResponse.from_snapshot(snapshot)

    async def list_ledger(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        kind: str | None,
    ) -> LedgerResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._repo.list_entries(db, user_id, cursor_id, limit + 1, kind)
        has_more = len(entries) > limit
        page = entries[:limit]

        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return LedgerResponse(
            items=[LedgerEntryItem.from_domain(e) for e in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def verify_balance_projection(self, db: AsyncSession) -> list[BalanceMismatch]:
        """Users whose cached balance differs from SUM(COMPLETED credits - debits)."""
        return await self._repo.find_balance_mismatches(db)
