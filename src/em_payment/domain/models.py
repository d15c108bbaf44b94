"""Domain models for em_payment — pure dataclasses."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class VerificationFailure(str, Enum):
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    UNKNOWN_TRANSACTION = "UNKNOWN_TRANSACTION"
    EXPIRED_TRANSACTION = "EXPIRED_TRANSACTION"
    PROVIDER_FAILURE = "PROVIDER_FAILURE"
    GATEWAY_UNREACHABLE = "GATEWAY_UNREACHABLE"


@dataclass
class PaymentInitiation:
    transaction_id: str
    redirect_url: str
    request_context: dict[str, str]     # exactly the fields that were signed
    expires_at: datetime


@dataclass
class PaymentForm:
    """Self-submitting checkout form: POST `fields` to `action_url`."""

    gateway: str
    transaction_id: str
    action_url: str
    fields: dict[str, str]


@dataclass
class CallbackPayload:
    """Provider callback normalized across gateways."""

    transaction_id: str
    order_id: str | None
    provider_code: str
    provider_message: str | None
    supplied_hash: str | None
    succeeded: bool
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentTransaction:
    transaction_id: str
    order_id: str
    gateway: str
    amount: int                         # minor units
    status: str                         # PaymentTransactionStatus value
    request_context: dict[str, str]
    expires_at: datetime
    provider_code: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass
class CallbackResult:
    """Outcome of one callback delivery; failures carry a reason, never raise."""

    success: bool
    transaction_id: str | None = None
    order_id: str | None = None
    order_status: str | None = None
    applied: bool = False
    reason: VerificationFailure | None = None
    message: str = ""

    @classmethod
    def failed(
        cls,
        reason: VerificationFailure,
        message: str,
        transaction_id: str | None = None,
        order_id: str | None = None,
    ) -> "CallbackResult":
        return cls(
            success=False,
            transaction_id=transaction_id,
            order_id=order_id,
            reason=reason,
            message=message,
        )
