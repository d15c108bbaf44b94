"""Shared plumbing for wallet gateway adapters.

Outbound calls happen only in production mode, each with its own short-lived
httpx.AsyncClient bounded by GATEWAY_TIMEOUT_SECONDS. Any transport error or
non-2xx answer surfaces as GatewayVerificationFailedError; callers treat it
as "not yet verified".
"""

import hashlib
import hmac
import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from config.settings import settings
from src.em_common.errors import GatewayVerificationFailedError

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 100


def sha256_upper(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest().upper()


def hashes_match(expected: str, supplied: str | None) -> bool:
    """Constant-time, case-insensitive hex comparison."""
    if not supplied:
        return False
    return hmac.compare_digest(expected.upper(), supplied.strip().upper())


class WalletAdapterBase:
    name: str = ""
    display_name: str = ""

    def __init__(
        self,
        production: bool | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._production = settings.PAYMENTS_PRODUCTION if production is None else production
        self._timeout = settings.GATEWAY_TIMEOUT_SECONDS if timeout is None else timeout
        self._transport = transport

    @property
    def production(self) -> bool:
        return self._production

    @staticmethod
    def _redirect_url(api_url: str, transaction_id: str, order_id: str) -> str:
        return f"{api_url}?{urlencode({'transactionId': transaction_id, 'orderId': order_id})}"

    async def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, **kwargs)
                response.raise_for_status()
                return response
        except httpx.HTTPError as exc:
            logger.warning("%s gateway call to %s failed: %s", self.name, url, exc)
            raise GatewayVerificationFailedError(self.display_name, "gateway unreachable") from exc
