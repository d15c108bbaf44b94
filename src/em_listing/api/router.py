"""em_listing REST API — delivery configuration for a seller's own listing."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_common.database import get_db_session
from src.em_common.response import ApiResponse, success_response, with_request_id
from src.em_gateway.auth.dependencies import get_current_user
from src.em_gateway.user.db_models import UserModel
from src.em_listing.application.schemas import ConfigureDeliveryRequest
from src.em_listing.application.service import ListingDeliveryService

router = APIRouter(prefix="/listings", tags=["listings"])

_service = ListingDeliveryService()


@router.put("/{listing_id}/delivery")
async def configure_delivery(
    listing_id: str,
    body: ConfigureDeliveryRequest,
    current_user: Annotated[UserModel, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.configure_delivery(listing_id, str(current_user.id), body, db)
    return with_request_id(success_response(data.model_dump()), request)
