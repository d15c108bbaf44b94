"""JazzCash mobile-wallet adapter.

Wire format:
  - pp_Amount is the amount in paisa as an integer string
  - pp_SecureHash = SHA256(salt & v1 & v2 & ...) over every non-null field
    sorted by key (empty strings included, the hash field itself excluded),
    uppercase hex
  - pp_ResponseCode "000" means success
"""

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from config.settings import settings
from src.em_common.datetime_utils import compact_timestamp, minutes_from_now, utc_now
from src.em_common.enums import PaymentMethod
from src.em_common.errors import GatewayVerificationFailedError, InvalidInputError
from src.em_common.identifiers import gateway_reference
from src.em_payment.adapters.base import (
    MAX_DESCRIPTION_LENGTH,
    WalletAdapterBase,
    hashes_match,
    sha256_upper,
)
from src.em_payment.domain.models import CallbackPayload, PaymentInitiation

logger = logging.getLogger(__name__)

HASH_FIELD = "pp_SecureHash"
PASSWORD_FIELD = "pp_Password"
SUCCESS_CODE = "000"


class JazzCashAdapter(WalletAdapterBase):
    name = PaymentMethod.JAZZCASH.value
    display_name = "JazzCash"

    def __init__(
        self,
        merchant_id: str | None = None,
        password: str | None = None,
        integrity_salt: str | None = None,
        return_url: str | None = None,
        api_url: str | None = None,
        production: bool | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(production=production, timeout=timeout, transport=transport)
        self._merchant_id = merchant_id or settings.JAZZCASH_MERCHANT_ID
        self._password = password or settings.JAZZCASH_PASSWORD
        self._salt = integrity_salt or settings.JAZZCASH_INTEGRITY_SALT
        self._return_url = return_url or settings.JAZZCASH_RETURN_URL
        self._api_url = api_url or settings.JAZZCASH_API_URL

    def sign(self, fields: Mapping[str, Any]) -> str:
        values = [
            str(fields[key])
            for key in sorted(fields)
            if key != HASH_FIELD and fields[key] is not None
        ]
        return sha256_upper("&".join([self._salt, *values]))

    async def initiate(
        self,
        order_id: str,
        amount: int,
        buyer_contact: str,
        description: str,
    ) -> PaymentInitiation:
        transaction_id = gateway_reference("JC")
        now = utc_now()
        expires_at = minutes_from_now(settings.PAYMENT_EXPIRY_MINUTES, now)
        fields: dict[str, str] = {
            "pp_Version": "1.1",
            "pp_TxnType": "MWALLET",
            "pp_Language": "EN",
            "pp_MerchantID": self._merchant_id,
            "pp_SubMerchantID": "",
            PASSWORD_FIELD: self._password,
            "pp_BankID": "TBANK",
            "pp_ProductID": "RETL",
            "pp_TxnRefNo": transaction_id,
            "pp_Amount": str(amount),
            "pp_TxnCurrency": "PKR",
            "pp_TxnDateTime": compact_timestamp(now),
            "pp_BillReference": order_id,
            "pp_Description": description[:MAX_DESCRIPTION_LENGTH],
            "pp_TxnExpiryDateTime": compact_timestamp(expires_at),
            "pp_ReturnURL": self._return_url,
            "ppmpf_1": buyer_contact,
        }
        fields[HASH_FIELD] = self.sign(fields)

        redirect_url = self.build_redirect(transaction_id, order_id)
        if self.production:
            response = await self._post(self._api_url, json=fields)
            body = _json_object(response, self.display_name)
            redirect_url = body.get("redirectUrl") or redirect_url

        # The password never leaves the process; verify() re-adds it.
        context = {k: v for k, v in fields.items() if k not in (HASH_FIELD, PASSWORD_FIELD)}
        return PaymentInitiation(
            transaction_id=transaction_id,
            redirect_url=redirect_url,
            request_context=context,
            expires_at=expires_at,
        )

    async def verify(
        self,
        transaction_id: str,
        supplied_hash: str | None,
        request_context: Mapping[str, str],
    ) -> bool:
        if not self.production:
            logger.info("[sandbox] JazzCash verification skipped for %s", transaction_id)
            return True

        expected = self.sign({**request_context, PASSWORD_FIELD: self._password})
        if not hashes_match(expected, supplied_hash):
            return False

        response = await self._post(
            f"{self._api_url}/verify",
            json={
                "transactionId": transaction_id,
                "merchantId": self._merchant_id,
                "password": self._password,
            },
        )
        return _json_object(response, self.display_name).get("status") == "SUCCESS"

    def build_redirect(self, transaction_id: str, order_id: str) -> str:
        return self._redirect_url(self._api_url, transaction_id, order_id)

    def form_fields(self, request_context: Mapping[str, str]) -> tuple[str, dict[str, str]]:
        # Signed with the password, which is never rendered into the page.
        signature = self.sign({**request_context, PASSWORD_FIELD: self._password})
        return self._api_url, {**request_context, HASH_FIELD: signature}

    def parse_callback(self, payload: Mapping[str, Any]) -> CallbackPayload:
        transaction_id = payload.get("pp_TxnRefNo")
        if not transaction_id:
            raise InvalidInputError("Callback is missing pp_TxnRefNo", code=6002)
        code = str(payload.get("pp_ResponseCode") or "")
        return CallbackPayload(
            transaction_id=str(transaction_id),
            order_id=payload.get("pp_BillReference"),
            provider_code=code,
            provider_message=payload.get("pp_ResponseMessage"),
            supplied_hash=payload.get(HASH_FIELD),
            succeeded=code == SUCCESS_CODE,
            raw=dict(payload),
        )


def _json_object(response: httpx.Response, gateway: str) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError as exc:
        raise GatewayVerificationFailedError(gateway, "malformed response") from exc
    if not isinstance(body, dict):
        raise GatewayVerificationFailedError(gateway, "malformed response")
    return body
