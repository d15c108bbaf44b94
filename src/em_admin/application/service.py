"""Admin application service — overrides and moderation.

Force-complete and refund go through the same OrderService transitions as
user actions, so locking, ledger effects and events are identical.
"""

import logging
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_account.application.service import LedgerApplicationService
from src.em_admin.application.invariants import verify_escrow_invariants
from src.em_common.errors import ForbiddenError, InternalError, InvalidInputError, UserNotFoundError
from src.em_gateway.user.repository import UserRepository, UserRepositoryProtocol
from src.em_order.application.schemas import (
    CompleteOrderResponse,
    OrderListResponse,
    OrderResponse,
)
from src.em_order.application.service import OrderService

logger = logging.getLogger(__name__)

MIN_BAN_REASON_LENGTH = 5


class AdminNoteRequest(BaseModel):
    note: str | None = Field(None, max_length=500)


class BanUserRequest(BaseModel):
    reason: str = Field(..., max_length=500)


class AdminService:
    def __init__(
        self,
        order_service: OrderService | None = None,
        users: UserRepositoryProtocol | None = None,
        ledger: LedgerApplicationService | None = None,
    ) -> None:
        self._orders = order_service or OrderService()
        self._users: UserRepositoryProtocol = users or UserRepository()
        self._ledger = ledger or LedgerApplicationService()

    async def force_complete(
        self, order_id: str, admin_id: str, note: str | None, db: AsyncSession
    ) -> CompleteOrderResponse:
        return await self._orders.force_complete(order_id, admin_id, note, db)

    async def refund(
        self, order_id: str, admin_id: str, note: str | None, db: AsyncSession
    ) -> OrderResponse:
        return await self._orders.refund_order(order_id, admin_id, note, db)

    async def list_orders(
        self,
        status: str | None,
        search: str | None,
        cursor: str | None,
        limit: int,
        db: AsyncSession,
    ) -> OrderListResponse:
        return await self._orders.list_all_orders(status, search, cursor, limit, db)

    async def set_ban(
        self,
        user_id: str,
        admin_id: str,
        banned: bool,
        reason: str | None,
        db: AsyncSession,
    ) -> dict[str, Any]:
        """Ban or unban a user. Role is left untouched; admins cannot be banned."""
        trimmed = (reason or "").strip()
        if banned and len(trimmed) < MIN_BAN_REASON_LENGTH:
            raise InvalidInputError(
                f"Ban reason must be at least {MIN_BAN_REASON_LENGTH} characters", code=1005
            )
        if user_id == admin_id:
            raise ForbiddenError("Admins cannot change their own ban status")

        try:
            target = await self._users.get_profile(user_id, db)
            if target is None:
                raise UserNotFoundError(user_id)
            if target.is_admin:
                raise ForbiddenError("Cannot ban an admin user")
            updated = await self._users.set_banned(user_id, banned, db)
            if updated is None:
                raise InternalError("User update returned no rows")
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.warning(
            "user=%s %s by admin=%s reason=%r",
            user_id, "banned" if banned else "unbanned", admin_id, trimmed,
        )
        return {
            "user_id": updated.id,
            "username": updated.username,
            "role": updated.role,
            "is_banned": updated.is_banned,
            "reason": trimmed or None,
        }

    async def verify_all_invariants(self, db: AsyncSession) -> dict[str, object]:
        violations = await verify_escrow_invariants(db, self._ledger)
        return {"ok": len(violations) == 0, "violations": violations}
