"""OrderRepository Protocol — interface contract for persistence layer."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.em_order.domain.models import Order


class OrderRepositoryProtocol(Protocol):
    async def insert(self, order: Order, db: AsyncSession) -> Order: ...

    async def get_by_id(self, order_id: str, db: AsyncSession) -> Order | None: ...

    async def get_for_update(self, order_id: str, db: AsyncSession) -> Order | None: ...

    async def update_status(
        self,
        order_id: str,
        status: str,
        db: AsyncSession,
        payment_method: str | None = None,
    ) -> Order: ...

    async def list_by_party(
        self,
        user_id: str,
        role: str,
        status: str | None,
        cursor: tuple[datetime, str] | None,
        limit: int,
        db: AsyncSession,
    ) -> list[Order]: ...

    async def list_all(
        self,
        status: str | None,
        search: str | None,
        cursor: tuple[datetime, str] | None,
        limit: int,
        db: AsyncSession,
    ) -> list[Order]: ...
