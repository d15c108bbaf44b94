"""Repository Protocol — dependency inversion for testability.

Unit tests inject a mock that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.em_account.domain.models import BalanceMismatch, BalanceSnapshot, LedgerEntry


class LedgerRepositoryProtocol(Protocol):
    async def credit(
        self,
        db: AsyncSession,
        user_id: str,
        order_id: str,
        amount: int,
        method: str,
        hold_until: datetime | None,
        description: str,
    ) -> LedgerEntry: ...

    async def get_balance(
        self, db: AsyncSession, user_id: str, now: datetime
    ) -> BalanceSnapshot | None: ...

    async def list_entries(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        kind: str | None,
    ) -> list[LedgerEntry]: ...

    async def find_balance_mismatches(self, db: AsyncSession) -> list[BalanceMismatch]: ...
