"""Escrow lifecycle scenarios for OrderService (in-memory orders and listings)."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from escrow_fakes import Harness

from src.em_common.datetime_utils import utc_now
from src.em_common.enums import PaymentMethod
from src.em_common.errors import (
    ForbiddenError,
    InvalidInputError,
    InvalidTransitionError,
    ListingNotFoundError,
    ListingUnavailableError,
    OrderNotFoundError,
    SelfPurchaseError,
)
from src.em_delivery.application.service import AUTOMATED_DELIVERY_NOTICE
from src.em_notification.events import NewMessageEvent, OrderStatusUpdatedEvent
from src.em_order.application.schemas import (
    CompleteOrderRequest,
    CreateOrderRequest,
    DisputeOrderRequest,
    MarkDeliveredRequest,
)
from src.em_order.application.service import MARK_PAID_NOTICE


def _create_req(h: Harness, method: PaymentMethod | None = None) -> CreateOrderRequest:
    return CreateOrderRequest(listing_id=h.listing_id, payment_method=method)


class TestCreateOrder:
    async def test_freezes_price_and_commission(self, harness: Harness) -> None:
        result = await harness.service.create_order(
            _create_req(harness), harness.buyer_id, harness.db
        )

        assert result.order.item_price == 250000
        assert result.order.commission == 20000
        assert result.order.amount == 270000
        assert result.order.status == "PENDING"
        assert result.breakdown.commission_rate_bps == 800
        assert result.breakdown.amount_display == "PKR 2,700.00"
        assert harness.listings.rows[harness.listing_id].quantity == 4
        harness.db.commit.assert_awaited_once()

    async def test_ceiling_commission(self, harness: Harness) -> None:
        harness.seed_listing(price=101)
        result = await harness.service.create_order(
            _create_req(harness), harness.buyer_id, harness.db
        )
        assert result.order.commission == 9
        assert result.order.amount == 110

    async def test_later_rate_change_leaves_order_untouched(self, harness: Harness) -> None:
        created = await harness.service.create_order(
            _create_req(harness), harness.buyer_id, harness.db
        )
        harness.listings.rate_bps = 1500

        order = await harness.service.get_order(created.order.id, harness.buyer_id, harness.db)

        assert (order.item_price, order.commission, order.amount) == (250000, 20000, 270000)
        assert order.amount == order.item_price + order.commission

    async def test_payment_method_intent_recorded(self, harness: Harness) -> None:
        result = await harness.service.create_order(
            _create_req(harness, PaymentMethod.EASYPAISA), harness.buyer_id, harness.db
        )
        assert result.order.payment_method == "easypaisa"

    async def test_self_purchase_rejected(self, harness: Harness) -> None:
        with pytest.raises(SelfPurchaseError):
            await harness.service.create_order(
                _create_req(harness), harness.seller_id, harness.db
            )
        assert harness.listings.rows[harness.listing_id].quantity == 5
        harness.db.rollback.assert_awaited_once()

    async def test_unknown_listing(self, harness: Harness) -> None:
        harness.listings.rows.clear()
        with pytest.raises(ListingNotFoundError):
            await harness.service.create_order(
                _create_req(harness), harness.buyer_id, harness.db
            )

    async def test_sold_out(self, harness: Harness) -> None:
        harness.seed_listing(quantity=0, active=False)
        with pytest.raises(ListingUnavailableError):
            await harness.service.create_order(
                _create_req(harness), harness.buyer_id, harness.db
            )
        assert harness.orders.rows == {}

    async def test_hidden_listing_unavailable(self, harness: Harness) -> None:
        harness.seed_listing(hidden=True)
        with pytest.raises(ListingUnavailableError):
            await harness.service.create_order(
                _create_req(harness), harness.buyer_id, harness.db
            )

    async def test_last_unit_goes_to_one_buyer(self, harness: Harness) -> None:
        harness.seed_listing(quantity=1)
        other_buyer = "66666666-6666-4666-8666-666666666666"

        results = await asyncio.gather(
            harness.service.create_order(_create_req(harness), harness.buyer_id, harness.db),
            harness.service.create_order(_create_req(harness), other_buyer, harness.db),
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, ListingUnavailableError)]
        assert len(successes) == 1
        assert len(failures) == 1
        listing = harness.listings.rows[harness.listing_id]
        assert listing.quantity == 0
        assert listing.active is False

    async def test_unlimited_stock_untouched(self, harness: Harness) -> None:
        harness.seed_listing(stock_type="unlimited", quantity=None)
        await harness.service.create_order(_create_req(harness), harness.buyer_id, harness.db)
        await harness.service.create_order(_create_req(harness), harness.buyer_id, harness.db)
        assert len(harness.orders.rows) == 2
        assert harness.listings.rows[harness.listing_id].quantity is None


class TestMarkPaid:
    async def test_seller_marks_manual_listing_paid(self, harness: Harness) -> None:
        harness.seed_order("PENDING")

        result = await harness.service.mark_paid(harness.order_id, harness.seller_id, harness.db)

        assert result.status == "PAID"
        assert result.payment_method == "manual"
        sent = harness.sent()
        assert [m.content for m in sent] == [MARK_PAID_NOTICE]
        assert sent[0].type == "system"
        events = harness.published()
        assert isinstance(events[0], NewMessageEvent)
        assert isinstance(events[-1], OrderStatusUpdatedEvent)
        assert events[-1].status == "PAID"

    async def test_buyer_cannot_mark_paid(self, harness: Harness) -> None:
        harness.seed_order("PENDING")
        with pytest.raises(ForbiddenError):
            await harness.service.mark_paid(harness.order_id, harness.buyer_id, harness.db)
        assert harness.orders.rows[harness.order_id].status == "PENDING"
        harness.db.rollback.assert_awaited_once()
        harness.publisher.publish.assert_not_awaited()

    async def test_already_paid_conflicts(self, harness: Harness) -> None:
        harness.seed_order("PAID")
        with pytest.raises(InvalidTransitionError):
            await harness.service.mark_paid(harness.order_id, harness.seller_id, harness.db)

    async def test_unknown_order(self, harness: Harness) -> None:
        with pytest.raises(OrderNotFoundError):
            await harness.service.mark_paid(harness.order_id, harness.seller_id, harness.db)

    async def test_instant_listing_delivers_on_payment(self, harness: Harness) -> None:
        harness.seed_listing(delivery_type="instant", delivery_content="CODE-XYZ-789")
        harness.seed_order("PENDING")

        result = await harness.service.mark_paid(harness.order_id, harness.seller_id, harness.db)

        assert result.status == "DELIVERED"
        sent = harness.sent()
        assert [m.type for m in sent] == ["system", "delivery", "system"]
        assert sent[1].content == "CODE-XYZ-789"
        assert sent[1].is_automated_delivery
        assert sent[2].content == AUTOMATED_DELIVERY_NOTICE
        statuses = [e for e in harness.published() if isinstance(e, OrderStatusUpdatedEvent)]
        assert [(e.status, e.automated) for e in statuses] == [
            ("PAID", False),
            ("DELIVERED", True),
        ]

    async def test_publish_failure_does_not_undo_transition(self, harness: Harness) -> None:
        harness.seed_order("PENDING")
        harness.publisher.publish.side_effect = ConnectionError("redis down")

        result = await harness.service.mark_paid(harness.order_id, harness.seller_id, harness.db)

        assert result.status == "PAID"
        harness.db.commit.assert_awaited_once()


class TestApplyGatewayPayment:
    async def test_applies_once(self, harness: Harness) -> None:
        harness.seed_order("PENDING")

        first = await harness.service.apply_gateway_payment(
            harness.order_id, "jazzcash", "JazzCash", "JC1", harness.db
        )
        second = await harness.service.apply_gateway_payment(
            harness.order_id, "jazzcash", "JazzCash", "JC1", harness.db
        )

        assert first.applied and first.order.status == "PAID"
        assert first.order.payment_method == "jazzcash"
        assert "JazzCash" in harness.sent()[0].content
        assert not second.applied
        assert second.events == []
        assert len(harness.sent()) == 1

    async def test_caller_owns_commit(self, harness: Harness) -> None:
        harness.seed_order("PENDING")
        await harness.service.apply_gateway_payment(
            harness.order_id, "easypaisa", "Easypaisa", "EP1", harness.db
        )
        harness.db.commit.assert_not_awaited()
        harness.publisher.publish.assert_not_awaited()


class TestMarkDelivered:
    async def test_pending_order_conflicts(self, harness: Harness) -> None:
        harness.seed_order("PENDING")
        with pytest.raises(InvalidTransitionError) as exc_info:
            await harness.service.mark_delivered(
                harness.order_id, harness.seller_id, MarkDeliveredRequest(), harness.db
            )
        assert exc_info.value.http_status == 409
        assert harness.orders.rows[harness.order_id].status == "PENDING"

    async def test_default_message(self, harness: Harness) -> None:
        harness.seed_order("PAID")
        result = await harness.service.mark_delivered(
            harness.order_id, harness.seller_id, MarkDeliveredRequest(), harness.db
        )
        assert result.status == "DELIVERED"
        message = harness.sent()[0]
        assert message.type == "delivery"
        assert message.content.startswith("Order has been delivered!")
        assert not message.is_automated_delivery

    async def test_custom_message(self, harness: Harness) -> None:
        harness.seed_order("PAID")
        await harness.service.mark_delivered(
            harness.order_id,
            harness.seller_id,
            MarkDeliveredRequest(delivery_message="Sent to your inbox"),
            harness.db,
        )
        assert harness.sent()[0].content == "Sent to your inbox"

    async def test_buyer_cannot_deliver(self, harness: Harness) -> None:
        harness.seed_order("PAID")
        with pytest.raises(ForbiddenError):
            await harness.service.mark_delivered(
                harness.order_id, harness.buyer_id, MarkDeliveredRequest(), harness.db
            )


class TestCompleteOrder:
    async def test_unverified_seller_gets_hold(self, harness: Harness) -> None:
        harness.seed_order("DELIVERED")
        before = utc_now()

        result = await harness.service.complete_order(
            harness.order_id, harness.buyer_id, CompleteOrderRequest(), harness.db
        )

        assert result.order.status == "COMPLETED"
        assert result.seller_earnings == 250000
        assert result.hold_until is not None
        assert result.hold_until - before >= timedelta(hours=48) - timedelta(seconds=5)
        assert result.hold_notice is not None
        credit = harness.ledger.credit.await_args
        assert credit.args[1:5] == (harness.seller_id, harness.order_id, 250000, "escrow_release")
        assert harness.sent()[0].content == (
            "Order completed! Payment of PKR 2,500.00 has been released to seller"
            " (48-hour hold applies)."
        )
        assert harness.sent()[0].type == "completion"

    async def test_verified_seller_no_hold(self, harness: Harness) -> None:
        harness.seed_order("DELIVERED")
        harness.set_seller_verified(True)

        result = await harness.service.complete_order(
            harness.order_id, harness.buyer_id, CompleteOrderRequest(), harness.db
        )

        assert result.hold_until is None
        assert result.hold_notice is None
        assert harness.ledger.credit.await_args.args[5] is None
        assert "hold" not in harness.sent()[0].content

    async def test_confirmation_message_used(self, harness: Harness) -> None:
        harness.seed_order("DELIVERED")
        await harness.service.complete_order(
            harness.order_id,
            harness.buyer_id,
            CompleteOrderRequest(confirmation_message="Works, thanks!"),
            harness.db,
        )
        assert harness.sent()[0].content == "Works, thanks!"

    async def test_seller_cannot_complete(self, harness: Harness) -> None:
        harness.seed_order("DELIVERED")
        with pytest.raises(ForbiddenError):
            await harness.service.complete_order(
                harness.order_id, harness.seller_id, CompleteOrderRequest(), harness.db
            )
        harness.ledger.credit.assert_not_awaited()

    async def test_paid_order_cannot_complete(self, harness: Harness) -> None:
        harness.seed_order("PAID")
        with pytest.raises(InvalidTransitionError):
            await harness.service.complete_order(
                harness.order_id, harness.buyer_id, CompleteOrderRequest(), harness.db
            )
        harness.ledger.credit.assert_not_awaited()

    async def test_ledger_failure_rolls_back(self, harness: Harness) -> None:
        harness.seed_order("DELIVERED")
        harness.ledger.credit.side_effect = RuntimeError("db gone")

        with pytest.raises(RuntimeError):
            await harness.service.complete_order(
                harness.order_id, harness.buyer_id, CompleteOrderRequest(), harness.db
            )

        harness.db.rollback.assert_awaited_once()
        harness.db.commit.assert_not_awaited()
        harness.publisher.publish.assert_not_awaited()


class TestCompletionReplay:
    async def test_second_confirmation_does_not_credit_again(self, harness: Harness) -> None:
        harness.seed_order("DELIVERED")
        await harness.service.complete_order(
            harness.order_id, harness.buyer_id, CompleteOrderRequest(), harness.db
        )

        with pytest.raises(InvalidTransitionError):
            await harness.service.complete_order(
                harness.order_id, harness.buyer_id, CompleteOrderRequest(), harness.db
            )

        assert harness.ledger.credit.await_count == 1
        assert len(harness.sent()) == 1

    async def test_force_complete_after_confirmation_does_not_credit_again(
        self, harness: Harness
    ) -> None:
        harness.seed_order("DELIVERED")
        await harness.service.complete_order(
            harness.order_id, harness.buyer_id, CompleteOrderRequest(), harness.db
        )

        with pytest.raises(InvalidTransitionError):
            await harness.service.force_complete(
                harness.order_id, harness.admin_id, "double check", harness.db
            )

        assert harness.ledger.credit.await_count == 1

    async def test_confirmation_after_force_complete_does_not_credit_again(
        self, harness: Harness
    ) -> None:
        harness.seed_order("DISPUTED")
        await harness.service.force_complete(harness.order_id, harness.admin_id, None, harness.db)

        with pytest.raises(InvalidTransitionError):
            await harness.service.complete_order(
                harness.order_id, harness.buyer_id, CompleteOrderRequest(), harness.db
            )

        assert harness.ledger.credit.await_count == 1

class TestDispute:
    async def test_short_reason_rejected_before_locking(self, harness: Harness) -> None:
        harness.seed_order("PAID")
        with pytest.raises(InvalidInputError) as exc_info:
            await harness.service.dispute_order(
                harness.order_id,
                harness.buyer_id,
                DisputeOrderRequest(reason="   too short   "),
                harness.db,
            )
        assert exc_info.value.code == 4005
        assert harness.orders.rows[harness.order_id].status == "PAID"

    async def test_buyer_disputes(self, harness: Harness) -> None:
        harness.seed_order("DELIVERED")
        result = await harness.service.dispute_order(
            harness.order_id,
            harness.buyer_id,
            DisputeOrderRequest(reason="  Code was already redeemed  "),
            harness.db,
        )
        assert result.status == "DISPUTED"
        message = harness.sent()[0]
        assert message.content == "DISPUTE INITIATED by buyer: Code was already redeemed"
        assert message.type == "dispute"
        assert message.receiver_id == harness.seller_id

    async def test_seller_disputes(self, harness: Harness) -> None:
        harness.seed_order("PENDING")
        await harness.service.dispute_order(
            harness.order_id,
            harness.seller_id,
            DisputeOrderRequest(reason="Buyer never paid me"),
            harness.db,
        )
        assert harness.sent()[0].content.startswith("DISPUTE INITIATED by seller:")

    async def test_stranger_forbidden(self, harness: Harness) -> None:
        harness.seed_order("PAID")
        with pytest.raises(ForbiddenError):
            await harness.service.dispute_order(
                harness.order_id,
                harness.admin_id,
                DisputeOrderRequest(reason="Not my order at all"),
                harness.db,
            )

    async def test_completed_order_cannot_be_disputed(self, harness: Harness) -> None:
        harness.seed_order("COMPLETED")
        with pytest.raises(InvalidTransitionError):
            await harness.service.dispute_order(
                harness.order_id,
                harness.buyer_id,
                DisputeOrderRequest(reason="Changed my mind later"),
                harness.db,
            )


class TestAdminOverrides:
    async def test_force_complete_disputed(self, harness: Harness) -> None:
        harness.seed_order("DISPUTED")

        result = await harness.service.force_complete(
            harness.order_id, harness.admin_id, " checked logs ", harness.db
        )

        assert result.order.status == "COMPLETED"
        assert harness.ledger.credit.await_args.args[4] == "admin_override"
        message = harness.sent()[0]
        assert message.sender_id == harness.admin_id
        assert message.content == (
            "ORDER FORCE-COMPLETED BY ADMIN: checked logs. Payment released to seller."
        )

    async def test_force_complete_reports_hold_for_unverified_seller(
        self, harness: Harness
    ) -> None:
        harness.seed_order("DELIVERED")

        result = await harness.service.force_complete(
            harness.order_id, harness.admin_id, None, harness.db
        )

        assert result.hold_until is not None
        assert result.hold_notice == "48-hour fund hold applies for unverified sellers"

    async def test_force_complete_verified_seller_no_notice(self, harness: Harness) -> None:
        harness.seed_order("DISPUTED")
        harness.set_seller_verified(True)

        result = await harness.service.force_complete(
            harness.order_id, harness.admin_id, None, harness.db
        )

        assert result.hold_until is None
        assert result.hold_notice is None

    async def test_force_complete_without_note(self, harness: Harness) -> None:
        harness.seed_order("PAID")
        await harness.service.force_complete(harness.order_id, harness.admin_id, None, harness.db)
        assert harness.sent()[0].content == (
            "ORDER FORCE-COMPLETED BY ADMIN. Payment released to seller."
        )

    @pytest.mark.parametrize("status", ["COMPLETED", "REFUNDED"])
    async def test_force_complete_terminal_rejected(self, harness: Harness, status: str) -> None:
        harness.seed_order(status)
        with pytest.raises(InvalidTransitionError):
            await harness.service.force_complete(
                harness.order_id, harness.admin_id, None, harness.db
            )
        harness.ledger.credit.assert_not_awaited()

    async def test_refund_disputed(self, harness: Harness) -> None:
        harness.seed_order("DISPUTED")
        result = await harness.service.refund_order(
            harness.order_id, harness.admin_id, None, harness.db
        )
        assert result.status == "REFUNDED"
        harness.ledger.credit.assert_not_awaited()
        assert harness.sent()[0].content == (
            "ORDER REFUNDED BY ADMIN. Dispute resolved in favour of buyer."
        )

    async def test_refund_requires_dispute(self, harness: Harness) -> None:
        harness.seed_order("DELIVERED")
        with pytest.raises(InvalidTransitionError):
            await harness.service.refund_order(
                harness.order_id, harness.admin_id, None, harness.db
            )


class TestFullLifecycle:
    async def test_create_pay_deliver_complete(self, harness: Harness) -> None:
        created = await harness.service.create_order(
            _create_req(harness), harness.buyer_id, harness.db
        )
        order_id = created.order.id

        await harness.service.mark_paid(order_id, harness.seller_id, harness.db)
        await harness.service.mark_delivered(
            order_id, harness.seller_id, MarkDeliveredRequest(), harness.db
        )
        completed = await harness.service.complete_order(
            order_id, harness.buyer_id, CompleteOrderRequest(), harness.db
        )

        assert completed.order.status == "COMPLETED"
        assert completed.seller_earnings == created.order.amount - created.order.commission
        harness.ledger.credit.assert_awaited_once()


class TestQueries:
    async def test_get_order_party_only(self, harness: Harness) -> None:
        harness.seed_order("PAID")
        assert (
            await harness.service.get_order(harness.order_id, harness.buyer_id, harness.db)
        ).id == harness.order_id
        with pytest.raises(ForbiddenError):
            await harness.service.get_order(harness.order_id, harness.admin_id, harness.db)

    async def test_get_order_missing(self, harness: Harness) -> None:
        with pytest.raises(OrderNotFoundError):
            await harness.service.get_order(harness.order_id, harness.buyer_id, harness.db)

    async def test_admin_listing_filters_and_pages(self, harness: Harness) -> None:
        start = datetime(2026, 10, 1, tzinfo=UTC)
        for i, status in enumerate(["PAID", "COMPLETED", "PAID", "PAID"]):
            harness.seed_order(
                status,
                id=f"55555555-5555-4555-8555-00000000000{i}",
                created_at=start + timedelta(hours=i),
            )

        first = await harness.service.list_all_orders("paid", None, None, 2, harness.db)

        assert [o.id[-1] for o in first.items] == ["3", "2"]
        assert first.has_more is True

        rest = await harness.service.list_all_orders(
            "PAID", None, first.next_cursor, 2, harness.db
        )
        assert [o.id[-1] for o in rest.items] == ["0"]
        assert rest.has_more is False
        assert rest.next_cursor is None

    async def test_admin_listing_blank_search_ignored(self, harness: Harness) -> None:
        await harness.service.list_all_orders(None, "   ", None, 20, harness.db)
        assert harness.orders.last_search is None

        await harness.service.list_all_orders(None, " gift card ", None, 20, harness.db)
        assert harness.orders.last_search == "gift card"
