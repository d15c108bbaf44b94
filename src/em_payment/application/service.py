"""PaymentService — gateway initiation and idempotent callback handling.

Callback handling is the only path where an external party drives an order
transition, so every outcome is decided under a row lock on the payment
transaction:

  unknown id               -> UNKNOWN_TRANSACTION
  already SUCCEEDED        -> success, nothing applied (duplicate delivery)
  already FAILED           -> PROVIDER_FAILURE
  past expiry              -> EXPIRED_TRANSACTION, transaction FAILED
  hash mismatch            -> INVALID_SIGNATURE
  provider unreachable     -> GATEWAY_UNREACHABLE, transaction stays INITIATED
  provider failure code    -> PROVIDER_FAILURE, transaction FAILED
  success                  -> transaction SUCCEEDED + order PENDING -> PAID

Only the last branch touches the order, and it commits together with the
transaction row.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.em_common.datetime_utils import utc_now
from src.em_common.enums import OrderStatus, PaymentMethod, PaymentTransactionStatus
from src.em_common.errors import (
    ForbiddenError,
    GatewayVerificationFailedError,
    InvalidInputError,
    OrderNotFoundError,
    StateConflictError,
)
from src.em_common.money import to_display
from src.em_listing.domain.repository import ListingRepositoryProtocol
from src.em_listing.infrastructure.persistence import ListingRepository
from src.em_notification.events import OrderEvent as NotificationEvent
from src.em_notification.publisher import (
    NotificationPort,
    RedisNotificationPublisher,
    publish_all,
)
from src.em_order.application.service import OrderService
from src.em_order.domain.models import Order
from src.em_order.domain.repository import OrderRepositoryProtocol
from src.em_order.infrastructure.persistence import OrderRepository
from src.em_payment.adapters.easypaisa import EasypaisaAdapter
from src.em_payment.adapters.jazzcash import JazzCashAdapter
from src.em_payment.application.schemas import (
    InitiatePaymentResponse,
    PaymentMethodOption,
    PaymentMethodsResponse,
)
from src.em_payment.domain.adapter import PaymentGatewayAdapter
from src.em_payment.domain.models import (
    CallbackPayload,
    CallbackResult,
    PaymentForm,
    PaymentInitiation,
    PaymentTransaction,
    VerificationFailure,
)
from src.em_payment.domain.repository import PaymentTransactionRepositoryProtocol
from src.em_payment.infrastructure.persistence import PaymentTransactionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MethodLimit:
    id: str
    name: str
    description: str
    min_amount: int             # major units
    max_amount: int | None

    def accepts(self, amount_minor: int) -> bool:
        if amount_minor < self.min_amount * 100:
            return False
        return self.max_amount is None or amount_minor <= self.max_amount * 100


METHOD_LIMITS: tuple[MethodLimit, ...] = (
    MethodLimit(
        PaymentMethod.JAZZCASH.value, "JazzCash", "Pay using JazzCash mobile wallet", 10, 1_000_000
    ),
    MethodLimit(
        PaymentMethod.EASYPAISA.value, "Easypaisa", "Pay using Easypaisa mobile wallet", 10, 500_000
    ),
    MethodLimit(
        PaymentMethod.BANK_TRANSFER.value,
        "Bank Transfer",
        "Direct bank transfer (manual verification)",
        100,
        None,
    ),
)


def default_adapters() -> dict[str, PaymentGatewayAdapter]:
    adapters: list[PaymentGatewayAdapter] = [JazzCashAdapter(), EasypaisaAdapter()]
    return {a.name: a for a in adapters}


class PaymentService:
    def __init__(
        self,
        adapters: Mapping[str, PaymentGatewayAdapter] | None = None,
        transactions: PaymentTransactionRepositoryProtocol | None = None,
        orders: OrderRepositoryProtocol | None = None,
        listings: ListingRepositoryProtocol | None = None,
        order_service: OrderService | None = None,
        publisher: NotificationPort | None = None,
    ) -> None:
        self._adapters = dict(adapters) if adapters is not None else default_adapters()
        self._transactions: PaymentTransactionRepositoryProtocol = (
            transactions or PaymentTransactionRepository()
        )
        self._orders: OrderRepositoryProtocol = orders or OrderRepository()
        self._listings: ListingRepositoryProtocol = listings or ListingRepository()
        self._publisher: NotificationPort = publisher or RedisNotificationPublisher()
        self._order_service = order_service or OrderService(
            orders=self._orders, listings=self._listings, publisher=self._publisher
        )

    def adapter(self, gateway: str) -> PaymentGatewayAdapter:
        try:
            return self._adapters[gateway]
        except KeyError:
            raise InvalidInputError(f"Unsupported payment gateway: {gateway}", code=6003) from None

    # ------------------------------------------------------------------
    # Initiation
    # ------------------------------------------------------------------

    async def _pending_order_for_buyer(
        self, order_id: str, buyer_id: str, db: AsyncSession
    ) -> Order:
        order = await self._orders.get_by_id(order_id, db)
        if order is None:
            raise OrderNotFoundError(order_id)
        if order.buyer_id != buyer_id:
            raise ForbiddenError("Only the buyer can pay for this order")
        if order.status != OrderStatus.PENDING:
            raise StateConflictError(f"Order {order_id} is not pending payment")
        return order

    async def _open_transaction(
        self,
        gateway: str,
        order_id: str,
        buyer_id: str,
        buyer_contact: str,
        db: AsyncSession,
    ) -> tuple[PaymentGatewayAdapter, Order, PaymentInitiation]:
        adapter = self.adapter(gateway)
        order = await self._pending_order_for_buyer(order_id, buyer_id, db)
        limit = next(m for m in METHOD_LIMITS if m.id == adapter.name)
        if not limit.accepts(order.amount):
            raise InvalidInputError(
                f"{adapter.display_name} does not accept an amount of {to_display(order.amount)}",
                code=6004,
            )

        listing = await self._listings.get_by_id(order.listing_id, db)
        title = listing.title if listing else "listing"
        description = f"Payment for {title} - Order #{order.id[-8:]}"

        # External call first: nothing is written if the provider refuses.
        initiation = await adapter.initiate(order.id, order.amount, buyer_contact, description)
        try:
            await self._transactions.insert(
                PaymentTransaction(
                    transaction_id=initiation.transaction_id,
                    order_id=order.id,
                    gateway=adapter.name,
                    amount=order.amount,
                    status=PaymentTransactionStatus.INITIATED.value,
                    request_context=initiation.request_context,
                    expires_at=initiation.expires_at,
                ),
                db,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "order=%s %s transaction %s initiated amount=%d",
            order.id, adapter.name, initiation.transaction_id, order.amount,
        )
        return adapter, order, initiation

    async def initiate(
        self,
        gateway: str,
        order_id: str,
        buyer_id: str,
        buyer_contact: str,
        db: AsyncSession,
    ) -> InitiatePaymentResponse:
        adapter, order, initiation = await self._open_transaction(
            gateway, order_id, buyer_id, buyer_contact, db
        )
        return InitiatePaymentResponse(
            gateway=adapter.name,
            order_id=order.id,
            transaction_id=initiation.transaction_id,
            redirect_url=initiation.redirect_url,
            amount=order.amount,
            amount_display=to_display(order.amount),
            expires_at=initiation.expires_at,
        )

    async def payment_form(
        self,
        gateway: str,
        order_id: str,
        buyer_id: str,
        buyer_contact: str,
        db: AsyncSession,
    ) -> PaymentForm:
        """Open a transaction and return the provider checkout form for it."""
        adapter, _, initiation = await self._open_transaction(
            gateway, order_id, buyer_id, buyer_contact, db
        )
        action_url, fields = adapter.form_fields(initiation.request_context)
        return PaymentForm(
            gateway=adapter.name,
            transaction_id=initiation.transaction_id,
            action_url=action_url,
            fields=fields,
        )

    # ------------------------------------------------------------------
    # Callback
    # ------------------------------------------------------------------

    async def handle_callback(
        self, gateway: str, payload: Mapping[str, Any], db: AsyncSession
    ) -> CallbackResult:
        adapter = self.adapter(gateway)
        callback = adapter.parse_callback(payload)
        try:
            result, events = await self._process_callback(adapter, callback, db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        if result.success:
            logger.info(
                "%s callback %s: order=%s applied=%s",
                adapter.name, callback.transaction_id, result.order_id, result.applied,
            )
        else:
            logger.warning(
                "%s callback %s rejected: %s (%s)",
                adapter.name, callback.transaction_id, result.reason, result.message,
            )
        await publish_all(self._publisher, events)
        return result

    async def _process_callback(
        self,
        adapter: PaymentGatewayAdapter,
        callback: CallbackPayload,
        db: AsyncSession,
    ) -> tuple[CallbackResult, list[NotificationEvent]]:
        txn_id = callback.transaction_id
        txn = await self._transactions.get_for_update(txn_id, db)
        if txn is None or txn.gateway != adapter.name:
            return CallbackResult.failed(
                VerificationFailure.UNKNOWN_TRANSACTION, "Unknown transaction", txn_id
            ), []

        if txn.status == PaymentTransactionStatus.SUCCEEDED:
            order = await self._orders.get_by_id(txn.order_id, db)
            return CallbackResult(
                success=True,
                transaction_id=txn_id,
                order_id=txn.order_id,
                order_status=order.status if order else None,
                applied=False,
                message="Payment already processed",
            ), []

        if txn.status == PaymentTransactionStatus.FAILED:
            return CallbackResult.failed(
                VerificationFailure.PROVIDER_FAILURE,
                "Transaction already failed",
                txn_id,
                txn.order_id,
            ), []

        if callback.order_id and callback.order_id != txn.order_id:
            return CallbackResult.failed(
                VerificationFailure.INVALID_SIGNATURE,
                "Bill reference does not match transaction",
                txn_id,
                txn.order_id,
            ), []

        if txn.is_expired(utc_now()):
            await self._transactions.update_status(
                txn_id, PaymentTransactionStatus.FAILED.value, callback.provider_code, db
            )
            return CallbackResult.failed(
                VerificationFailure.EXPIRED_TRANSACTION,
                "Transaction expired",
                txn_id,
                txn.order_id,
            ), []

        try:
            valid = await adapter.verify(txn_id, callback.supplied_hash, txn.request_context)
        except GatewayVerificationFailedError as exc:
            return CallbackResult.failed(
                VerificationFailure.GATEWAY_UNREACHABLE, exc.message, txn_id, txn.order_id
            ), []
        if not valid:
            return CallbackResult.failed(
                VerificationFailure.INVALID_SIGNATURE,
                "Invalid transaction verification",
                txn_id,
                txn.order_id,
            ), []

        if not callback.succeeded:
            await self._transactions.update_status(
                txn_id, PaymentTransactionStatus.FAILED.value, callback.provider_code, db
            )
            return CallbackResult.failed(
                VerificationFailure.PROVIDER_FAILURE,
                f"Payment failed: {callback.provider_message or callback.provider_code}",
                txn_id,
                txn.order_id,
            ), []

        await self._transactions.update_status(
            txn_id, PaymentTransactionStatus.SUCCEEDED.value, callback.provider_code, db
        )
        application = await self._order_service.apply_gateway_payment(
            txn.order_id, adapter.name, adapter.display_name, txn_id, db
        )
        return CallbackResult(
            success=True,
            transaction_id=txn_id,
            order_id=txn.order_id,
            order_status=application.order.status,
            applied=application.applied,
            message="Payment verified and order updated"
            if application.applied
            else "Payment recorded; order no longer pending",
        ), application.events

    # ------------------------------------------------------------------
    # Method listing
    # ------------------------------------------------------------------

    async def available_methods(
        self, order_id: str, buyer_id: str, db: AsyncSession
    ) -> PaymentMethodsResponse:
        order = await self._pending_order_for_buyer(order_id, buyer_id, db)
        return PaymentMethodsResponse(
            order_id=order.id,
            order_amount=order.amount,
            order_amount_display=to_display(order.amount),
            available_methods=[
                PaymentMethodOption(
                    id=m.id,
                    name=m.name,
                    description=m.description,
                    min_amount=m.min_amount,
                    max_amount=m.max_amount,
                    processing_fee=0,
                    available=m.accepts(order.amount),
                )
                for m in METHOD_LIMITS
            ],
        )
