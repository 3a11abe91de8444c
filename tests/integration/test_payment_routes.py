"""
============================================================================
Paycore v1.0.0
Integration Test: Payment API Routes
============================================================================

Input Constraints: FastAPI TestClient, dependency overrides
Side Effects: None (in-memory stores, mocked processor transport)

Covers:
- Ozow initiate, notify, forward and status lookup
- PayGate initiate (verified, exhausted, unreachable), create, notify
- Notify endpoints acknowledge every outcome with 200 "OK"
- System health and metrics endpoints

============================================================================
"""

from datetime import datetime
from unittest.mock import Mock, patch
from urllib.parse import urlencode

import pytest
from fastapi import FastAPI

from paycore.api.dependencies import (
    get_config,
    get_dispatcher_provider,
    get_ozow_transport,
    get_paygate_transport,
)
from paycore.api.ozow import router as ozow_router
from paycore.api.paygate import router as paygate_router
from paycore.config import OzowConfig, PayGateConfig, PaymentConfig
from paycore.errors import TransportError
from paycore.gateways.ozow import build_hash, verify_hash
from paycore.gateways.paygate import build_initiate_reply_checksum
from paycore.logic.dispatcher import (
    CallbackDispatcher,
    InMemoryOrderStatusStore,
    InMemoryWebhookFailureLog,
)


OZOW_KEY = "215114531AFF7134A94C88CEEA48E"
PAYGATE_KEY = "secret"


# ============================================================================
# Test App Setup
# ============================================================================

def create_test_app() -> FastAPI:
    """Create FastAPI test application with both gateway routers."""
    app = FastAPI(title="Paycore API Test")
    app.include_router(ozow_router, prefix="/ozow")
    app.include_router(paygate_router, prefix="/paygate")
    return app


def signed_paygate_reply(reference: str = "INV-1001") -> str:
    reply = {"PAYGATE_ID": "10011072130", "PAY_REQUEST_ID": "PR-1", "REFERENCE": reference}
    return urlencode(dict(reply, CHECKSUM=build_initiate_reply_checksum(reply, PAYGATE_KEY)))


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def payment_config() -> PaymentConfig:
    return PaymentConfig(
        ozow=OzowConfig(
            site_code="TSTSTE0001",
            private_key=OZOW_KEY,
            cancel_url="http://demo.ozow.com/cancel.aspx",
            error_url="http://demo.ozow.com/error.aspx",
            success_url="http://demo.ozow.com/success.aspx",
            notify_url="http://demo.ozow.com/notify.aspx",
            api_key="ozow-api-key",
        ),
        paygate=PayGateConfig(
            paygate_id="10011072130",
            encryption_key=PAYGATE_KEY,
            return_url="https://shop.example.com/return",
            notify_url="https://shop.example.com/notify",
            signature_type="md5",
        ),
        database_url="sqlite://",
    )


@pytest.fixture
def order_store() -> InMemoryOrderStatusStore:
    return InMemoryOrderStatusStore(["INV-1001"])


@pytest.fixture
def failure_log() -> InMemoryWebhookFailureLog:
    return InMemoryWebhookFailureLog()


@pytest.fixture
def paygate_transport() -> Mock:
    return Mock()


@pytest.fixture
def ozow_transport() -> Mock:
    return Mock()


@pytest.fixture
def client(payment_config, order_store, failure_log, paygate_transport, ozow_transport):
    """HTTP client with every collaborator replaced."""
    from fastapi.testclient import TestClient

    app = create_test_app()
    dispatcher = CallbackDispatcher(order_store, failure_log, clock=lambda: datetime(2024, 3, 5, 12, 0))
    app.dependency_overrides[get_config] = lambda: payment_config
    app.dependency_overrides[get_dispatcher_provider] = lambda: (lambda: dispatcher)
    app.dependency_overrides[get_paygate_transport] = lambda: paygate_transport
    app.dependency_overrides[get_ozow_transport] = lambda: ozow_transport

    with TestClient(app) as test_client:
        yield test_client


# ============================================================================
# Ozow
# ============================================================================

class TestOzowInitiate:

    def test_signed_request(self, client, payment_config) -> None:
        response = client.post("/ozow/initiate", json={
            "orderId": "INV-1001",
            "amountRands": "249.9",
            "customer": "Jane <b>Doe</b>",
            "Optional1": "web",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["action"] == "https://pay.ozow.com"
        assert body["method"] == "POST"
        fields = body["fields"]
        assert fields["Amount"] == "249.90"
        assert fields["BankReference"] == "INV-1001"
        assert fields["Customer"] == "Jane bDoe/b"
        assert fields["Optional1"] == "web"
        assert fields["NotifyUrl"] == "https://demo.ozow.com/notify.aspx"
        received = fields.pop("HashCheck")
        assert verify_hash(fields, received, OZOW_KEY) is True

    def test_missing_order_id(self, client) -> None:
        response = client.post("/ozow/initiate", json={"amountRands": "10"})

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error_code"] == "PAY-FLD-001"
        assert detail["message"] == "orderId & amountRands required"
        assert "timestamp" in detail

    def test_invalid_amount(self, client) -> None:
        response = client.post("/ozow/initiate", json={"orderId": "INV-1001", "amountRands": "ten"})

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "PAY-FMT-001"

    def test_oversized_amount(self, client) -> None:
        response = client.post("/ozow/initiate", json={"orderId": "INV-1001", "amountRands": "1e30"})

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "PAY-FMT-001"

    def test_unconfigured(self, client, payment_config) -> None:
        client.app.dependency_overrides[get_config] = lambda: PaymentConfig()

        response = client.post("/ozow/initiate", json={"orderId": "INV-1001", "amountRands": "10"})

        assert response.status_code == 503
        assert response.json()["detail"]["error_code"] == "PAY-CFG-001"


class TestOzowNotify:

    def notify_form(self, key: str = OZOW_KEY, status: str = "Complete Success") -> dict:
        fields = {
            "SiteCode": "TSTSTE0001",
            "TransactionReference": "INV-1001",
            "Amount": "249.90",
            "Status": status,
            "IsTest": "false",
        }
        fields["Hash"] = build_hash(fields, key)
        return fields

    def test_verified_notify_completes_order(self, client, order_store) -> None:
        response = client.post("/ozow/notify", data=self.notify_form())

        assert response.status_code == 200
        assert response.text == "OK"
        assert order_store.orders["INV-1001"]["status"] == "completed"

    def test_forged_notify_still_acknowledged(self, client, order_store, failure_log) -> None:
        response = client.post("/ozow/notify", data=self.notify_form(key="forged"))

        assert response.status_code == 200
        assert response.text == "OK"
        assert order_store.orders["INV-1001"] == {}
        assert failure_log.failures[0]["reason"] == "hash_mismatch"

    def test_dispatcher_crash_still_acknowledged(self, client) -> None:
        broken = Mock()
        broken.handle_ozow_notify.side_effect = RuntimeError("boom")
        client.app.dependency_overrides[get_dispatcher_provider] = lambda: (lambda: broken)

        response = client.post("/ozow/notify", data=self.notify_form())

        assert response.status_code == 200
        assert response.text == "OK"


class TestOzowForward:

    def test_get_renders_form(self, client) -> None:
        response = client.get("/ozow/forward", params={"SiteCode": "TSTSTE0001", "Customer": "a\"b"})

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert 'action="https://pay.ozow.com"' in response.text
        assert 'name="SiteCode" value="TSTSTE0001"' in response.text
        assert 'value="a&quot;b"' in response.text

    def test_post_renders_form(self, client) -> None:
        response = client.post("/ozow/forward", data={"HashCheck": "abc"})

        assert response.status_code == 200
        assert 'name="HashCheck" value="abc"' in response.text


class TestOzowStatus:

    def test_lookup(self, client, ozow_transport) -> None:
        ozow_transport.get_json.return_value = [{"transactionReference": "INV-1001", "status": "Complete"}]

        response = client.get("/ozow/status/by-ref/INV-1001")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "data": [{"transactionReference": "INV-1001", "status": "Complete"}],
        }
        kwargs = ozow_transport.get_json.call_args[1]
        assert kwargs["params"] == {"siteCode": "TSTSTE0001", "transactionReference": "INV-1001"}
        assert kwargs["headers"]["ApiKey"] == "ozow-api-key"

    def test_upstream_failure(self, client, ozow_transport) -> None:
        ozow_transport.get_json.side_effect = TransportError("ozow returned HTTP 500", status_code=500)

        response = client.get("/ozow/status/by-ref/INV-1001")

        assert response.status_code == 504
        assert response.json()["detail"]["error_code"] == "PAY-NET-001"


class TestNotifyStorageOutage:
    """Notify routes build the real SQL dispatcher against an unreachable database."""

    @pytest.fixture
    def unreachable_client(self, client, tmp_path):
        from paycore.api.dependencies import reset_dispatcher
        from paycore.database.session import create_engine_from_url

        del client.app.dependency_overrides[get_dispatcher_provider]
        broken_engine = create_engine_from_url(f"sqlite:///{tmp_path / 'missing' / 'paycore.db'}")
        reset_dispatcher()
        with patch("paycore.api.dependencies.get_engine", return_value=broken_engine):
            yield client
        reset_dispatcher()
        broken_engine.dispose()

    def test_ozow_notify_acknowledged(self, unreachable_client) -> None:
        response = unreachable_client.post("/ozow/notify", data={"TransactionReference": "INV-1001", "Hash": "abc"})

        assert response.status_code == 200
        assert response.text == "OK"

    def test_paygate_notify_acknowledged(self, unreachable_client) -> None:
        response = unreachable_client.post("/paygate/notify", data={"TRANSACTION_STATUS": "1", "ORDER_ID": "INV-1001"})

        assert response.status_code == 200
        assert response.text == "OK"

    def test_provider_failure_acknowledged(self, client) -> None:
        def failing_provider():
            raise RuntimeError("unable to open database file")

        client.app.dependency_overrides[get_dispatcher_provider] = lambda: failing_provider

        response = client.post("/paygate/notify", data={"TRANSACTION_STATUS": "1", "ORDER_ID": "INV-1001"})

        assert response.status_code == 200
        assert response.text == "OK"


# ============================================================================
# PayGate
# ============================================================================

class TestPayGateInitiate:

    def test_verified(self, client, paygate_transport) -> None:
        paygate_transport.post_form.return_value = signed_paygate_reply()

        response = client.post("/paygate/initiate", json={
            "orderId": "INV-1001",
            "amountRands": "32.99",
            "email": "customer@example.com",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "VERIFIED"
        assert body["variant"] == "standard"
        assert body["pay_request_id"] == "PR-1"
        assert body["fields"]["AMOUNT"] == "3299"
        assert body["process_url"] == "https://secure.paygate.co.za/payweb3/process.trans"
        assert set(body["process_fields"]) == {"PAY_REQUEST_ID", "CHECKSUM"}
        assert len(body["attempts"]) == 1

    def test_every_variant_rejected(self, client, paygate_transport) -> None:
        paygate_transport.post_form.return_value = "PAYGATE_ID=10011072130&PAY_REQUEST_ID=PR-1&REFERENCE=INV-1001&CHECKSUM=bad"

        response = client.post("/paygate/initiate", json={
            "orderId": "INV-1001",
            "amountRands": "32.99",
            "email": "customer@example.com",
        })

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["error_code"] == "PAY-AMB-001"
        attempts = detail["details"]["attempts"]
        assert [a["variant"] for a in attempts] == [
            "standard", "without_notify_url", "alternate_locale", "truncated_date", "return_url_unsigned",
        ]
        assert all(a["state"] == "REJECTED" for a in attempts)

    def test_unreachable_stops_after_first_attempt(self, client, paygate_transport) -> None:
        paygate_transport.post_form.side_effect = TransportError("paygate unreachable")

        response = client.post("/paygate/initiate", json={
            "orderId": "INV-1001",
            "amountRands": "32.99",
            "email": "customer@example.com",
        })

        assert response.status_code == 504
        assert paygate_transport.post_form.call_count == 1

    def test_unreachable_after_rejection_keeps_attempts(self, client, paygate_transport) -> None:
        paygate_transport.post_form.side_effect = ["ERROR=DATA_CHK", TransportError("paygate unreachable")]

        response = client.post("/paygate/initiate", json={
            "orderId": "INV-1001",
            "amountRands": "32.99",
            "email": "customer@example.com",
        })

        assert response.status_code == 504
        attempts = response.json()["detail"]["details"]["attempts"]
        assert [a["variant"] for a in attempts] == ["standard"]
        assert attempts[0]["state"] == "REJECTED"

    def test_missing_email(self, client, paygate_transport) -> None:
        response = client.post("/paygate/initiate", json={"orderId": "INV-1001", "amountRands": "32.99"})

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "PAY-FLD-001"
        paygate_transport.post_form.assert_not_called()

    def test_unconfigured(self, client) -> None:
        client.app.dependency_overrides[get_config] = lambda: PaymentConfig()

        response = client.post("/paygate/initiate", json={
            "orderId": "INV-1001",
            "amountRands": "32.99",
            "email": "customer@example.com",
        })

        assert response.status_code == 503


class TestPayGateCreate:

    def test_signed_paypage(self, client) -> None:
        response = client.post("/paygate/create", json={
            "orderId": "INV-1001",
            "amountRands": "32.99",
            "description": "Order 1001",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["endpoint"] == "https://secure.paygate.co.za/paypage"
        assert body["signature_method"] == "MD5"
        assert body["fields"]["AMOUNT"] == "3299"
        assert body["fields"]["DESCRIPTION"] == "Order 1001"
        assert len(body["signature"]) == 32

    def test_missing_amount(self, client) -> None:
        response = client.post("/paygate/create", json={"orderId": "INV-1001"})

        assert response.status_code == 400
        assert response.json()["detail"]["message"] == "orderId and amountRands are required"


class TestPayGateNotify:

    def test_paid_notify(self, client, order_store) -> None:
        response = client.post("/paygate/notify", data={
            "TRANSACTION_STATUS": "1",
            "ORDER_ID": "INV-1001",
            "AMOUNT": "32.99",
        })

        assert response.status_code == 200
        assert response.text == "OK"
        assert order_store.orders["INV-1001"]["status"] == "completed"

    def test_unknown_order_acknowledged(self, client, failure_log) -> None:
        response = client.post("/paygate/notify", data={"TRANSACTION_STATUS": "1", "ORDER_ID": "INV-404"})

        assert response.status_code == 200
        assert failure_log.failures[0]["reason"] == "invoice_not_found"


class TestPayGateMisc:

    def test_health(self, client) -> None:
        assert client.get("/paygate/health").json() == {"success": True, "message": "PayGate route healthy"}

    def test_return(self, client) -> None:
        response = client.get("/paygate/return", params={"PAY_REQUEST_ID": "PR-1", "TRANSACTION_STATUS": "1"})

        assert response.json() == {
            "success": True,
            "message": "Payment return received",
            "query": {"PAY_REQUEST_ID": "PR-1", "TRANSACTION_STATUS": "1"},
        }


# ============================================================================
# System endpoints
# ============================================================================

class TestSystemEndpoints:

    def test_metrics_exposed(self) -> None:
        from fastapi.testclient import TestClient
        from paycore.main import app

        response = TestClient(app).get("/metrics")

        assert response.status_code == 200
        assert "paycore_signatures_built_total" in response.text

    def test_health_reports_database(self) -> None:
        from fastapi.testclient import TestClient
        from paycore.main import app

        with patch("paycore.main.check_database_connection", return_value=True):
            assert TestClient(app).get("/health").json()["status"] == "healthy"
        with patch("paycore.main.check_database_connection", return_value=False):
            response = TestClient(app).get("/health")
        assert response.status_code == 503
        assert response.json()["database"] == "disconnected"
