"""
Callback receiver API tests.

ASGITransport does not run the lifespan, so the test service is attached
to app.state directly.
"""

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from checkout_flow.main import create_application
from checkout_flow.models.session import PaymentKind, PaymentMethodType

from .conftest import GATEWAY_URL, FakeBrowserHost


@pytest.fixture
def application(settings, checkout_service) -> FastAPI:
    app = create_application(settings, service=checkout_service)
    app.state.checkout_service = checkout_service
    return app


@pytest_asyncio.fixture
async def api(application):
    transport = httpx.ASGITransport(app=application)
    async with httpx.AsyncClient(transport=transport, base_url="http://callbacks.test") as client:
        yield client


@pytest_asyncio.fixture
async def pending_session(checkout_service, session_config, items, backend_stub):
    backend_stub.respond(
        "/payments/purchase",
        body={"success": True, "transactionId": "T1", "gatewayUrl": GATEWAY_URL},
    )
    backend_stub.respond("/payments/verify", body={"success": True})
    session = checkout_service.start_session(session_config, items, PaymentKind.BOOK)
    await checkout_service.select_method(session.session_id, PaymentMethodType.SSLCOMMERZ, host=FakeBrowserHost())
    return session


class TestHealth:
    @pytest.mark.asyncio
    async def test_ready(self, api):
        response = await api.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_not_ready_without_service(self, settings):
        app = create_application(settings)
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://callbacks.test") as client:
            health = await client.get("/health")
            session = await client.get("/payments/sessions/anything")

        assert health.json() == {"status": "starting"}
        assert session.status_code == 503


class TestProviderCallback:
    @pytest.mark.asyncio
    async def test_success_redirect_verifies(self, api, pending_session, backend_stub):
        response = await api.get(
            "/payments/callback/SSLCOMMERZ/success",
            params={"tran_id": "T1", "val_id": "V1", "amount": "100.00"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["sessionId"] == pending_session.session_id
        assert body["status"] == "succeeded"
        assert body["terminal"] is True
        assert backend_stub.body("/payments/verify")["proof"]["val_id"] == "V1"

    @pytest.mark.asyncio
    async def test_repeated_redirect_returns_same_outcome(self, api, pending_session, backend_stub):
        params = {"tran_id": "T1", "val_id": "V1"}

        first = await api.get("/payments/callback/SSLCOMMERZ/success", params=params)
        second = await api.get("/payments/callback/SSLCOMMERZ/success", params=params)

        assert first.json()["status"] == second.json()["status"] == "succeeded"
        assert len(backend_stub.calls("/payments/verify")) == 1

    @pytest.mark.asyncio
    async def test_cancel_redirect(self, api, pending_session):
        response = await api.get("/payments/callback/SSLCOMMERZ/cancel", params={"tran_id": "T1"})

        assert response.json()["status"] == "cancelled"
        assert response.json()["failureKind"] == "cancelled"

    @pytest.mark.asyncio
    async def test_missing_transaction_id(self, api):
        response = await api.get("/payments/callback/SSLCOMMERZ/success", params={"val_id": "V1"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_transaction(self, api):
        response = await api.get("/payments/callback/SSLCOMMERZ/success", params={"tran_id": "nope"})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_wrong_method(self, api, pending_session):
        response = await api.get("/payments/callback/PAYPAL/success", params={"transactionId": "T1"})

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_unknown_method_or_outcome(self, api):
        assert (await api.get("/payments/callback/BITCOIN/success", params={"tran_id": "T1"})).status_code == 422
        assert (await api.get("/payments/callback/SSLCOMMERZ/maybe", params={"tran_id": "T1"})).status_code == 422


class TestSessionRoutes:
    @pytest.mark.asyncio
    async def test_session_view_uses_camel_case(self, api, pending_session):
        response = await api.get(f"/payments/sessions/{pending_session.session_id}")

        body = response.json()
        assert response.status_code == 200
        assert body["transactionId"] == "T1"
        assert body["method"] == "SSLCOMMERZ"
        assert body["status"] == "method_in_progress"
        assert body["history"] == ["idle", "awaiting_selection", "initiating", "method_in_progress"]

    @pytest.mark.asyncio
    async def test_unknown_session(self, api):
        response = await api.get("/payments/sessions/missing")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_fallback_link(self, api, checkout_service, session_config, items, backend_stub):
        backend_stub.respond(
            "/payments/purchase",
            body={"success": True, "transactionId": "T1", "gatewayUrl": GATEWAY_URL},
        )
        backend_stub.respond("/payments/verify", body={"success": True})
        session = checkout_service.start_session(session_config, items, PaymentKind.BOOK)
        await checkout_service.select_method(
            session.session_id, PaymentMethodType.SSLCOMMERZ, host=FakeBrowserHost(block_popups=True)
        )

        blocked = await api.get("/payments/callback/SSLCOMMERZ/success", params={"tran_id": "T1", "val_id": "V1"})
        link = await api.post(f"/payments/sessions/{session.session_id}/fallback")
        finished = await api.get("/payments/callback/SSLCOMMERZ/success", params={"tran_id": "T1", "val_id": "V1"})

        assert blocked.status_code == 409
        assert link.json() == {"transactionId": "T1", "url": GATEWAY_URL}
        assert finished.json()["status"] == "succeeded"
        assert finished.json()["fallbackFollowed"] is True

    @pytest.mark.asyncio
    async def test_fallback_without_blocked_popup(self, api, pending_session):
        response = await api.post(f"/payments/sessions/{pending_session.session_id}/fallback")

        assert response.status_code == 409
