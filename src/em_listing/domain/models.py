"""Domain models for em_listing — pure dataclasses, no business logic."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Listing:
    id: str
    seller_id: str
    category_id: str
    title: str
    price: int                      # minor units
    stock_type: str                 # StockType value
    quantity: int | None            # present iff stock_type == "limited"
    active: bool
    hidden: bool
    delivery_type: str              # DeliveryType value
    delivery_content: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def has_instant_content(self) -> bool:
        return (
            self.delivery_type == "instant"
            and self.delivery_content is not None
            and self.delivery_content.strip() != ""
        )


@dataclass
class ListingReservation:
    """One unit reserved for a buyer, with the rate to freeze into the order."""

    listing: Listing
    commission_rate_bps: int
