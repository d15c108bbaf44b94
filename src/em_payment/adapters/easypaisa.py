"""Easypaisa mobile-wallet adapter.

Amounts travel as decimal strings with two fraction digits ("27.00").
hashValue = SHA256(accountNum + amount + transactionId + description + hashKey),
uppercase hex. Callback status PAID or SUCCESS means success.
"""

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import parse_qsl

import httpx

from config.settings import settings
from src.em_common.datetime_utils import minutes_from_now
from src.em_common.enums import PaymentMethod
from src.em_common.errors import InvalidInputError
from src.em_common.identifiers import gateway_reference
from src.em_common.money import to_decimal_string
from src.em_payment.adapters.base import (
    MAX_DESCRIPTION_LENGTH,
    WalletAdapterBase,
    hashes_match,
    sha256_upper,
)
from src.em_payment.domain.models import CallbackPayload, PaymentInitiation

logger = logging.getLogger(__name__)

SUCCESS_STATUSES = frozenset({"PAID", "SUCCESS"})
DEFAULT_MOBILE = "03000000000"


class EasypaisaAdapter(WalletAdapterBase):
    name = PaymentMethod.EASYPAISA.value
    display_name = "Easypaisa"

    def __init__(
        self,
        store_id: str | None = None,
        account_num: str | None = None,
        hash_key: str | None = None,
        callback_url: str | None = None,
        api_url: str | None = None,
        production: bool | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(production=production, timeout=timeout, transport=transport)
        self._store_id = store_id or settings.EASYPAISA_STORE_ID
        self._account_num = account_num or settings.EASYPAISA_ACCOUNT_NUM
        self._hash_key = hash_key or settings.EASYPAISA_HASH_KEY
        self._callback_url = callback_url or settings.EASYPAISA_CALLBACK_URL
        self._api_url = api_url or settings.EASYPAISA_API_URL

    def sign(self, amount: str, transaction_id: str, description: str) -> str:
        return sha256_upper(
            f"{self._account_num}{amount}{transaction_id}{description}{self._hash_key}"
        )

    async def initiate(
        self,
        order_id: str,
        amount: int,
        buyer_contact: str,
        description: str,
    ) -> PaymentInitiation:
        transaction_id = gateway_reference("EP")
        expires_at = minutes_from_now(settings.PAYMENT_EXPIRY_MINUTES)
        amount_str = to_decimal_string(amount)
        description = description[:MAX_DESCRIPTION_LENGTH]
        fields: dict[str, str] = {
            "storeId": self._store_id,
            "accountNum": self._account_num,
            "transactionAmount": amount_str,
            "transactionType": "MA",
            "tokenExpiry": str(int(expires_at.timestamp())),
            "billReference": order_id,
            "description": description,
            "transactionId": transaction_id,
            "emailAddress": buyer_contact,
            "mobileNum": DEFAULT_MOBILE,
            "postBackURL": self._callback_url,
        }
        signed = {**fields, "hashValue": self.sign(amount_str, transaction_id, description)}

        if self.production:
            await self._post(self._api_url, data=signed)

        return PaymentInitiation(
            transaction_id=transaction_id,
            redirect_url=self.build_redirect(transaction_id, order_id),
            request_context=fields,
            expires_at=expires_at,
        )

    async def verify(
        self,
        transaction_id: str,
        supplied_hash: str | None,
        request_context: Mapping[str, str],
    ) -> bool:
        if not self.production:
            logger.info("[sandbox] Easypaisa verification skipped for %s", transaction_id)
            return True

        expected = self.sign(
            request_context.get("transactionAmount", ""),
            request_context.get("transactionId", transaction_id),
            request_context.get("description", ""),
        )
        if not hashes_match(expected, supplied_hash):
            return False

        response = await self._post(
            f"{self._api_url}/verify",
            data={
                "storeId": self._store_id,
                "accountNum": self._account_num,
                "transactionId": transaction_id,
                "hashValue": expected,
            },
        )
        return _provider_status(response) in SUCCESS_STATUSES

    def build_redirect(self, transaction_id: str, order_id: str) -> str:
        return self._redirect_url(self._api_url, transaction_id, order_id)

    def form_fields(self, request_context: Mapping[str, str]) -> tuple[str, dict[str, str]]:
        signature = self.sign(
            request_context.get("transactionAmount", ""),
            request_context.get("transactionId", ""),
            request_context.get("description", ""),
        )
        return self._api_url, {**request_context, "hashValue": signature}

    def parse_callback(self, payload: Mapping[str, Any]) -> CallbackPayload:
        transaction_id = payload.get("transactionId")
        if not transaction_id:
            raise InvalidInputError("Callback is missing transactionId", code=6002)
        status = str(payload.get("status") or "").upper()
        return CallbackPayload(
            transaction_id=str(transaction_id),
            order_id=payload.get("billReference"),
            provider_code=status,
            provider_message=payload.get("statusMessage"),
            supplied_hash=payload.get("hashValue"),
            succeeded=status in SUCCESS_STATUSES,
            raw=dict(payload),
        )


def _provider_status(response: httpx.Response) -> str:
    """Status of a verify reply: JSON, form-encoded or a bare token. "" when absent."""
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        if "=" not in text:
            return text.upper()
        body = dict(parse_qsl(text))
    if not isinstance(body, dict):
        return ""
    return str(body.get("status") or "").strip().upper()
