"""Admin REST API — every route requires role=admin."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_admin.application.service import AdminNoteRequest, AdminService, BanUserRequest
from src.em_common.database import get_db_session
from src.em_common.response import ApiResponse, success_response, with_request_id
from src.em_gateway.auth.dependencies import require_admin
from src.em_gateway.user.db_models import UserModel

router = APIRouter(prefix="/admin", tags=["admin"])
_service = AdminService()

Admin = Annotated[UserModel, Depends(require_admin)]
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


@router.get("/orders")
async def list_orders(
    admin: Admin,
    db: DbSession,
    request: Request,
    status: str | None = Query(None, description="Filter by order status"),
    search: str | None = Query(
        None, max_length=100, description="Listing title or party username"
    ),
    cursor: str | None = Query(None, description="Pagination cursor (opaque)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.list_orders(status, search, cursor, limit, db)
    return with_request_id(success_response(data.model_dump(mode="json")), request)


@router.patch("/orders/{order_id}/force-complete")
async def force_complete(
    order_id: uuid.UUID,
    admin: Admin,
    db: DbSession,
    request: Request,
    body: AdminNoteRequest | None = None,
) -> ApiResponse:
    note = body.note if body else None
    data = await _service.force_complete(str(order_id), str(admin.id), note, db)
    return with_request_id(
        success_response(data.model_dump(mode="json"), message="Order force-completed"), request
    )


@router.patch("/orders/{order_id}/refund")
async def refund(
    order_id: uuid.UUID,
    admin: Admin,
    db: DbSession,
    request: Request,
    body: AdminNoteRequest | None = None,
) -> ApiResponse:
    note = body.note if body else None
    data = await _service.refund(str(order_id), str(admin.id), note, db)
    return with_request_id(
        success_response(data.model_dump(mode="json"), message="Order refunded"), request
    )


@router.patch("/users/{user_id}/ban")
async def ban_user(
    user_id: uuid.UUID, body: BanUserRequest, admin: Admin, db: DbSession, request: Request
) -> ApiResponse:
    data = await _service.set_ban(str(user_id), str(admin.id), True, body.reason, db)
    return with_request_id(success_response(data), request)


@router.patch("/users/{user_id}/unban")
async def unban_user(
    user_id: uuid.UUID, admin: Admin, db: DbSession, request: Request
) -> ApiResponse:
    data = await _service.set_ban(str(user_id), str(admin.id), False, None, db)
    return with_request_id(success_response(data), request)


@router.get("/invariants")
async def verify_invariants(admin: Admin, db: DbSession, request: Request) -> ApiResponse:
    data = await _service.verify_all_invariants(db)
    return with_request_id(success_response(data), request)
