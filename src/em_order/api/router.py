"""em_order REST API — order lifecycle, JWT required."""

import uuid
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_common.database import get_db_session
from src.em_common.response import ApiResponse, success_response, with_request_id
from src.em_gateway.auth.dependencies import get_current_user
from src.em_gateway.user.db_models import UserModel
from src.em_order.application.schemas import (
    CompleteOrderRequest,
    CreateOrderRequest,
    DisputeOrderRequest,
    MarkDeliveredRequest,
)
from src.em_order.application.service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])

_service = OrderService()

CurrentUser = Annotated[UserModel, Depends(get_current_user)]
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


@router.post("", status_code=201)
async def create_order(
    body: CreateOrderRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _service.create_order(body, str(current_user.id), db)
    return with_request_id(
        success_response(data.model_dump(mode="json"), message="Order created"), request
    )


@router.patch("/{order_id}/paid")
async def mark_paid(
    order_id: uuid.UUID, current_user: CurrentUser, db: DbSession, request: Request
) -> ApiResponse:
    data = await _service.mark_paid(str(order_id), str(current_user.id), db)
    return with_request_id(success_response(data.model_dump(mode="json")), request)


@router.patch("/{order_id}/delivered")
async def mark_delivered(
    order_id: uuid.UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
    body: MarkDeliveredRequest | None = None,
) -> ApiResponse:
    data = await _service.mark_delivered(
        str(order_id), str(current_user.id), body or MarkDeliveredRequest(), db
    )
    return with_request_id(success_response(data.model_dump(mode="json")), request)


@router.patch("/{order_id}/complete")
async def complete_order(
    order_id: uuid.UUID,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
    body: CompleteOrderRequest | None = None,
) -> ApiResponse:
    data = await _service.complete_order(
        str(order_id), str(current_user.id), body or CompleteOrderRequest(), db
    )
    return with_request_id(success_response(data.model_dump(mode="json")), request)


@router.patch("/{order_id}/dispute")
async def dispute_order(
    order_id: uuid.UUID,
    body: DisputeOrderRequest,
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
) -> ApiResponse:
    data = await _service.dispute_order(str(order_id), str(current_user.id), body, db)
    return with_request_id(success_response(data.model_dump(mode="json")), request)


@router.get("")
async def list_orders(
    current_user: CurrentUser,
    db: DbSession,
    request: Request,
    role: Literal["buying", "selling"] = Query("buying", description="Orders as buyer or seller"),
    status: str | None = Query(None, description="Filter by order status"),
    cursor: str | None = Query(None, description="Pagination cursor (opaque)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.list_orders(str(current_user.id), role, status, cursor, limit, db)
    return with_request_id(success_response(data.model_dump(mode="json")), request)


@router.get("/{order_id}")
async def get_order(
    order_id: uuid.UUID, current_user: CurrentUser, db: DbSession, request: Request
) -> ApiResponse:
    data = await _service.get_order(str(order_id), str(current_user.id), db)
    return with_request_id(success_response(data.model_dump(mode="json")), request)
