"""ListingRepository Protocol — interface contract for persistence layer."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.em_listing.domain.models import Listing, ListingReservation


class ListingRepositoryProtocol(Protocol):
    async def get_by_id(self, listing_id: str, db: AsyncSession) -> Listing | None: ...

    async def reserve_unit(
        self, listing_id: str, buyer_id: str, db: AsyncSession
    ) -> ListingReservation | None: ...

    async def set_delivery(
        self,
        listing_id: str,
        delivery_type: str,
        delivery_content: str | None,
        db: AsyncSession,
    ) -> Listing | None: ...
