"""Domain models for em_order — pure dataclasses."""

from dataclasses import dataclass
from datetime import datetime

from src.em_common.enums import OrderStatus


@dataclass
class Order:
    id: str
    listing_id: str
    buyer_id: str
    seller_id: str
    item_price: int                 # frozen at creation, minor units
    commission: int                 # frozen at creation
    amount: int                     # item_price + commission, never recomputed
    status: str                     # OrderStatus value
    payment_method: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def seller_earnings(self) -> int:
        return self.amount - self.commission

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatus.COMPLETED, OrderStatus.REFUNDED)

    def party_role(self, user_id: str) -> str | None:
        """'buyer', 'seller' or None for anyone outside the order."""
        if user_id == self.buyer_id:
            return "buyer"
        if user_id == self.seller_id:
            return "seller"
        return None

    def counterparty(self, user_id: str) -> str:
        return self.seller_id if user_id == self.buyer_id else self.buyer_id
