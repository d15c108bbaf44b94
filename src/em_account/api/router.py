"""em_account REST API — balance and ledger history, JWT required."""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_account.application.service import LedgerApplicationService
from src.em_common.database import get_db_session
from src.em_common.response import ApiResponse, success_response, with_request_id
from src.em_gateway.auth.dependencies import get_current_user
from src.em_gateway.user.db_models import UserModel

router = APIRouter(prefix="/account", tags=["account"])

_service = LedgerApplicationService()


@router.get("/balance")
async def get_balance(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_balance(db, str(current_user.id))
    return with_request_id(success_response(data.model_dump()), request)


@router.get("/ledger")
async def list_ledger(
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    kind: Literal["CREDIT", "DEBIT"] | None = Query(None, description="Filter by entry kind"),
) -> ApiResponse:
    data = await _service.list_ledger(db, str(current_user.id), cursor, limit, kind)
    return with_request_id(success_response(data.model_dump(mode="json")), request)
