"""Pydantic schemas for the em_listing delivery endpoint."""

from pydantic import BaseModel, Field

from src.em_common.enums import DeliveryType
from src.em_listing.domain.models import Listing


class ConfigureDeliveryRequest(BaseModel):
    delivery_type: DeliveryType
    delivery_content: str | None = Field(None, max_length=10000)


class ListingDeliveryResponse(BaseModel):
    listing_id: str
    delivery_type: str
    has_delivery_content: bool
    stock_type: str
    quantity: int | None
    active: bool

    @classmethod
    def from_domain(cls, listing: Listing) -> "ListingDeliveryResponse":
        return cls(
            listing_id=listing.id,
            delivery_type=listing.delivery_type,
            has_delivery_content=listing.has_instant_content,
            stock_type=listing.stock_type,
            quantity=listing.quantity,
            active=listing.active,
        )
