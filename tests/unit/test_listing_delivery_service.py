"""Unit tests for ListingDeliveryService."""

from unittest.mock import AsyncMock

import pytest
from escrow_fakes import Harness

from src.em_common.enums import DeliveryType
from src.em_common.errors import ForbiddenError, InvalidInputError, ListingNotFoundError
from src.em_listing.application.schemas import ConfigureDeliveryRequest
from src.em_listing.application.service import ListingDeliveryService


def _req(delivery_type: DeliveryType, content: str | None = None) -> ConfigureDeliveryRequest:
    return ConfigureDeliveryRequest(delivery_type=delivery_type, delivery_content=content)


class TestConfigureDelivery:
    async def test_instant_stores_trimmed_content(self, harness: Harness) -> None:
        svc = ListingDeliveryService(repo=harness.listings)

        result = await svc.configure_delivery(
            harness.listing_id,
            harness.seller_id,
            _req(DeliveryType.INSTANT, "  KEY-1234  "),
            harness.db,
        )

        assert result.delivery_type == "instant"
        assert result.has_delivery_content
        assert harness.listings.rows[harness.listing_id].delivery_content == "KEY-1234"
        harness.db.commit.assert_awaited_once()

    async def test_manual_clears_content(self, harness: Harness) -> None:
        harness.seed_listing(delivery_type="instant", delivery_content="OLD-KEY")
        svc = ListingDeliveryService(repo=harness.listings)

        result = await svc.configure_delivery(
            harness.listing_id, harness.seller_id, _req(DeliveryType.MANUAL, "ignored"), harness.db
        )

        assert result.delivery_type == "manual"
        assert not result.has_delivery_content
        assert harness.listings.rows[harness.listing_id].delivery_content is None

    async def test_unsafe_content_rejected_before_db(self) -> None:
        repo = AsyncMock()
        db = AsyncMock()
        with pytest.raises(InvalidInputError) as exc_info:
            await ListingDeliveryService(repo=repo).configure_delivery(
                "l-1", "s-1", _req(DeliveryType.INSTANT, "<script>x</script>"), db
            )
        assert exc_info.value.code == 5003
        repo.get_by_id.assert_not_awaited()

    async def test_instant_requires_content(self, harness: Harness) -> None:
        with pytest.raises(InvalidInputError) as exc_info:
            await ListingDeliveryService(repo=harness.listings).configure_delivery(
                harness.listing_id, harness.seller_id, _req(DeliveryType.INSTANT), harness.db
            )
        assert exc_info.value.code == 5001

    async def test_only_seller(self, harness: Harness) -> None:
        with pytest.raises(ForbiddenError):
            await ListingDeliveryService(repo=harness.listings).configure_delivery(
                harness.listing_id, harness.buyer_id, _req(DeliveryType.MANUAL), harness.db
            )
        harness.db.rollback.assert_awaited_once()

    async def test_unknown_listing(self, harness: Harness) -> None:
        harness.listings.rows.clear()
        with pytest.raises(ListingNotFoundError):
            await ListingDeliveryService(repo=harness.listings).configure_delivery(
                harness.listing_id, harness.seller_id, _req(DeliveryType.MANUAL), harness.db
            )
