"""PaymentGatewayAdapter — one interface, one implementation per wallet provider.

The orchestration (transaction bookkeeping, order transition) lives in
PaymentService and is shared; adapters only know their provider's wire
format and signature scheme.
"""

from collections.abc import Mapping
from typing import Any, Protocol

from src.em_payment.domain.models import CallbackPayload, PaymentInitiation


class PaymentGatewayAdapter(Protocol):
    name: str               # PaymentMethod value, used in URLs and on the order
    display_name: str       # human label for chat messages

    async def initiate(
        self,
        order_id: str,
        amount: int,
        buyer_contact: str,
        description: str,
    ) -> PaymentInitiation: ...

    async def verify(
        self,
        transaction_id: str,
        supplied_hash: str | None,
        request_context: Mapping[str, str],
    ) -> bool: ...

    def build_redirect(self, transaction_id: str, order_id: str) -> str: ...

    def form_fields(self, request_context: Mapping[str, str]) -> tuple[str, dict[str, str]]:
        """Checkout form target and signed hidden fields for a stored context."""
        ...

    def parse_callback(self, payload: Mapping[str, Any]) -> CallbackPayload: ...
