"""em_messaging REST API — order chat (parties only) and the per-user inbox."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_common.database import get_db_session
from src.em_common.response import ApiResponse, success_response, with_request_id
from src.em_gateway.auth.dependencies import get_current_user
from src.em_gateway.user.db_models import UserModel
from src.em_messaging.application.schemas import SendMessageRequest
from src.em_messaging.application.service import MessagingService

router = APIRouter(prefix="/orders", tags=["messages"])
inbox_router = APIRouter(prefix="/messages", tags=["messages"])

_service = MessagingService()


@router.post("/{order_id}/messages", status_code=201)
async def send_message(
    order_id: uuid.UUID,
    body: SendMessageRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.send_message(str(order_id), str(current_user.id), body, db)
    return with_request_id(success_response(data.model_dump(mode="json")), request)


@router.get("/{order_id}/messages")
async def list_messages(
    order_id: uuid.UUID,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.list_messages(str(order_id), str(current_user.id), db)
    return with_request_id(success_response(data.model_dump(mode="json")), request)


@inbox_router.get("")
async def inbox(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.inbox(str(current_user.id), cursor, limit, db)
    return with_request_id(success_response(data.model_dump(mode="json")), request)
