"""HTTP-level tests: envelope, error mapping, auth guards, callback parsing.

Services are replaced with AsyncMocks; no database or Redis is touched.
"""

import uuid
from datetime import datetime, timezone
from collections.abc import AsyncIterator
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from src.em_common.database import get_db_session
from src.em_common.errors import OrderNotFoundError
from src.em_gateway.auth.dependencies import get_current_user
from src.em_gateway.user.db_models import UserModel
from src.em_messaging.application.schemas import InboxResponse
from src.em_order.application.schemas import OrderListResponse
from src.em_payment.domain.models import CallbackResult, PaymentForm, VerificationFailure
from src.main import app

ORDER_ID = "55555555-5555-4555-8555-555555555555"


def _user(role: str = "user") -> UserModel:
    user = UserModel()
    user.id = uuid.uuid4()
    user.username = "alice"
    user.email = "alice@example.com"
    user.role = role
    user.is_banned = False
    user.verified = False
    return user


async def _fake_db() -> AsyncIterator[AsyncMock]:
    yield AsyncMock()


@pytest.fixture
def as_user() -> UserModel:
    user = _user()
    app.dependency_overrides[get_db_session] = _fake_db
    app.dependency_overrides[get_current_user] = lambda: user
    return user


@pytest.fixture
def as_admin() -> UserModel:
    admin = _user(role="admin")
    app.dependency_overrides[get_db_session] = _fake_db
    app.dependency_overrides[get_current_user] = lambda: admin
    return admin


async def test_health(client: AsyncClient) -> None:
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


async def test_app_error_rendered_as_envelope(
    client: AsyncClient, as_user: UserModel, monkeypatch: pytest.MonkeyPatch
) -> None:
    service = AsyncMock()
    service.get_order.side_effect = OrderNotFoundError(ORDER_ID)
    monkeypatch.setattr("src.em_order.api.router._service", service)

    resp = await client.get(f"/api/v1/orders/{ORDER_ID}")

    assert resp.status_code == 404
    body = resp.json()
    assert body["code"] == 4004
    assert body["data"] is None
    assert body["request_id"].startswith("req_")


async def test_malformed_order_id_rejected(client: AsyncClient, as_user: UserModel) -> None:
    resp = await client.get("/api/v1/orders/not-a-uuid")
    assert resp.status_code == 422


async def test_missing_token_is_401(client: AsyncClient) -> None:
    resp = await client.get(f"/api/v1/orders/{ORDER_ID}")
    assert resp.status_code == 401


async def test_admin_route_requires_admin(client: AsyncClient, as_user: UserModel) -> None:
    resp = await client.get("/api/v1/admin/invariants")
    assert resp.status_code == 403
    assert resp.json()["code"] == 1102


async def test_admin_invariants(
    client: AsyncClient, as_admin: UserModel, monkeypatch: pytest.MonkeyPatch
) -> None:
    service = AsyncMock()
    service.verify_all_invariants.return_value = {"ok": True, "violations": []}
    monkeypatch.setattr("src.em_admin.api.router._service", service)

    resp = await client.get("/api/v1/admin/invariants")

    assert resp.status_code == 200
    assert resp.json()["data"] == {"ok": True, "violations": []}


class TestPaymentCallback:
    async def test_success_json(self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
        app.dependency_overrides[get_db_session] = _fake_db
        service = AsyncMock()
        service.handle_callback.return_value = CallbackResult(
            success=True, transaction_id="JC1", order_id=ORDER_ID, order_status="PAID", applied=True
        )
        monkeypatch.setattr("src.em_payment.api.router._service", service)

        resp = await client.post(
            "/api/v1/payments/jazzcash/callback",
            json={"pp_TxnRefNo": "JC1", "pp_ResponseCode": "000"},
        )

        assert resp.status_code == 200
        assert resp.json()["data"]["applied"] is True
        gateway, payload, _ = service.handle_callback.await_args.args
        assert gateway == "jazzcash"
        assert payload["pp_TxnRefNo"] == "JC1"

    async def test_form_body_and_failure_reason(
        self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        app.dependency_overrides[get_db_session] = _fake_db
        service = AsyncMock()
        service.handle_callback.return_value = CallbackResult.failed(
            VerificationFailure.INVALID_SIGNATURE, "Invalid transaction verification", "EP1"
        )
        monkeypatch.setattr("src.em_payment.api.router._service", service)

        resp = await client.post(
            "/api/v1/payments/easypaisa/callback",
            data={"transactionId": "EP1", "status": "PAID"},
        )

        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == 6001
        assert body["data"]["reason"] == "INVALID_SIGNATURE"
        assert service.handle_callback.await_args.args[1] == {
            "transactionId": "EP1",
            "status": "PAID",
        }


class TestRequestId:
    async def test_inbound_id_echoed(self, client: AsyncClient) -> None:
        resp = await client.get("/health", headers={"X-Request-ID": "gw-retry-000123"})
        assert resp.headers["X-Request-ID"] == "gw-retry-000123"

    async def test_malformed_inbound_id_replaced(self, client: AsyncClient) -> None:
        resp = await client.get("/health", headers={"X-Request-ID": "bad id!"})
        assert resp.headers["X-Request-ID"].startswith("req_")


async def test_payment_form_rendered_escaped(
    client: AsyncClient, as_user: UserModel, monkeypatch: pytest.MonkeyPatch
) -> None:
    service = AsyncMock()
    service.payment_form.return_value = PaymentForm(
        gateway="easypaisa",
        transaction_id="EP1",
        action_url="https://ep.test/pay",
        fields={"transactionId": "EP1", "description": 'Payment for "Gift" <card>'},
    )
    monkeypatch.setattr("src.em_payment.api.router._service", service)

    resp = await client.get(f"/api/v1/payments/easypaisa/{ORDER_ID}/form")

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/html")
    assert '<form id="easypaisa-form" method="post" action="https://ep.test/pay">' in resp.text
    assert 'value="Payment for &quot;Gift&quot; &lt;card&gt;"' in resp.text
    gateway, order_id, buyer_id, contact, _ = service.payment_form.await_args.args
    assert (gateway, order_id, buyer_id, contact) == (
        "easypaisa", ORDER_ID, str(as_user.id), "alice@example.com"
    )


async def test_me_returns_profile_and_balance(client: AsyncClient, as_user: UserModel) -> None:
    as_user.balance = 9000
    as_user.created_at = datetime(2026, 1, 2, tzinfo=timezone.utc)

    resp = await client.get("/api/v1/auth/me")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["user_id"] == str(as_user.id)
    assert data["balance"] == 9000
    assert data["verified"] is False
    assert data["created_at"].startswith("2026-01-02")


async def test_me_requires_token(client: AsyncClient) -> None:
    resp = await client.get("/api/v1/auth/me")
    assert resp.status_code == 401


async def test_admin_order_listing_passes_filters(
    client: AsyncClient, as_admin: UserModel, monkeypatch: pytest.MonkeyPatch
) -> None:
    service = AsyncMock()
    service.list_orders.return_value = OrderListResponse(items=[], next_cursor=None, has_more=False)
    monkeypatch.setattr("src.em_admin.api.router._service", service)

    resp = await client.get("/api/v1/admin/orders", params={"status": "disputed", "search": "steam"})

    assert resp.status_code == 200
    assert resp.json()["data"] == {"items": [], "next_cursor": None, "has_more": False}
    status, search, cursor, limit, _ = service.list_orders.await_args.args
    assert (status, search, cursor, limit) == ("disputed", "steam", None, 20)


async def test_admin_order_listing_requires_admin(client: AsyncClient, as_user: UserModel) -> None:
    resp = await client.get("/api/v1/admin/orders")
    assert resp.status_code == 403


async def test_inbox_scoped_to_current_user(
    client: AsyncClient, as_user: UserModel, monkeypatch: pytest.MonkeyPatch
) -> None:
    service = AsyncMock()
    service.inbox.return_value = InboxResponse(items=[], next_cursor=None, has_more=False)
    monkeypatch.setattr("src.em_messaging.api.router._service", service)

    resp = await client.get("/api/v1/messages", params={"limit": 5})

    assert resp.status_code == 200
    user_id, cursor, limit, _ = service.inbox.await_args.args
    assert (user_id, cursor, limit) == (str(as_user.id), None, 5)
