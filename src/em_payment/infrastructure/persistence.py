"""PaymentTransactionRepository — raw SQL over payment_transactions.

One row per initiated gateway transaction. The row keeps the signed
request fields so the callback hash can be recomputed server-side, and its
status makes duplicate callbacks recognizable.
"""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_payment.domain.models import PaymentTransaction

_SELECT_COLUMNS = """
    transaction_id, order_id, gateway, amount, status, request_context,
    provider_code, expires_at, created_at, updated_at
"""

_INSERT_SQL = text("""
    INSERT INTO payment_transactions
        (transaction_id, order_id, gateway, amount, status, request_context, expires_at)
    VALUES
        (:transaction_id, :order_id, :gateway, :amount, :status,
         CAST(:request_context AS JSONB), :expires_at)
""")

_GET_FOR_UPDATE_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM payment_transactions
    WHERE transaction_id = :transaction_id
    FOR UPDATE
""")

_UPDATE_STATUS_SQL = text("""
    UPDATE payment_transactions
    SET status = :status,
        provider_code = COALESCE(:provider_code, provider_code),
        updated_at = NOW()
    WHERE transaction_id = :transaction_id
""")


def _row_to_txn(row: Any) -> PaymentTransaction:
    context = row.request_context
    if isinstance(context, str):
        context = json.loads(context)
    return PaymentTransaction(
        transaction_id=row.transaction_id,
        order_id=str(row.order_id),
        gateway=row.gateway,
        amount=row.amount,
        status=row.status,
        request_context=dict(context or {}),
        provider_code=row.provider_code,
        expires_at=row.expires_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class PaymentTransactionRepository:
    async def insert(self, txn: PaymentTransaction, db: AsyncSession) -> None:
        await db.execute(
            _INSERT_SQL,
            {
                "transaction_id": txn.transaction_id,
                "order_id": txn.order_id,
                "gateway": txn.gateway,
                "amount": txn.amount,
                "status": txn.status,
                "request_context": json.dumps(txn.request_context),
                "expires_at": txn.expires_at,
            },
        )

    async def get_for_update(
        self, transaction_id: str, db: AsyncSession
    ) -> PaymentTransaction | None:
        result = await db.execute(_GET_FOR_UPDATE_SQL, {"transaction_id": transaction_id})
        row = result.fetchone()
        return _row_to_txn(row) if row else None

    async def update_status(
        self,
        transaction_id: str,
        status: str,
        provider_code: str | None,
        db: AsyncSession,
    ) -> None:
        await db.execute(
            _UPDATE_STATUS_SQL,
            {"transaction_id": transaction_id, "status": status, "provider_code": provider_code},
        )
