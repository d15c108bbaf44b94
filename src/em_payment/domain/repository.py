"""PaymentTransactionRepository Protocol."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.em_payment.domain.models import PaymentTransaction


class PaymentTransactionRepositoryProtocol(Protocol):
    async def insert(self, txn: PaymentTransaction, db: AsyncSession) -> None: ...

    async def get_for_update(
        self, transaction_id: str, db: AsyncSession
    ) -> PaymentTransaction | None: ...

    async def update_status(
        self,
        transaction_id: str,
        status: str,
        provider_code: str | None,
        db: AsyncSession,
    ) -> None: ...
