"""ListingDeliveryService — attach or clear a listing's delivery configuration.

Instant listings must carry validated content; switching a listing back to
manual delivery clears whatever content was stored.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.em_common.enums import DeliveryType
from src.em_common.errors import ForbiddenError, InternalError, ListingNotFoundError
from src.em_delivery.domain.content import validate_delivery_content
from src.em_listing.application.schemas import ConfigureDeliveryRequest, ListingDeliveryResponse
from src.em_listing.domain.repository import ListingRepositoryProtocol
from src.em_listing.infrastructure.persistence import ListingRepository

logger = logging.getLogger(__name__)


class ListingDeliveryService:
    def __init__(self, repo: ListingRepositoryProtocol | None = None) -> None:
        self._repo: ListingRepositoryProtocol = repo or ListingRepository()

    async def configure_delivery(
        self,
        listing_id: str,
        seller_id: str,
        req: ConfigureDeliveryRequest,
        db: AsyncSession,
    ) -> ListingDeliveryResponse:
        if req.delivery_type == DeliveryType.INSTANT:
            content: str | None = validate_delivery_content(req.delivery_content)
        else:
            content = None

        try:
            listing = await self._repo.get_by_id(listing_id, db)
            if listing is None:
                raise ListingNotFoundError(listing_id)
            if listing.seller_id != seller_id:
                raise ForbiddenError("Only the seller can configure delivery")
            updated = await self._repo.set_delivery(
                listing_id, req.delivery_type.value, content, db
            )
            if updated is None:
                raise InternalError("Listing update returned no rows")
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("listing=%s delivery_type=%s", listing_id, updated.delivery_type)
        return ListingDeliveryResponse.from_domain(updated)
