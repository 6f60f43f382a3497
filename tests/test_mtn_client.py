"""MTN MoMo request-to-pay initiation and status polling."""

import asyncio
import json

import httpx
import pytest
from prometheus_client import REGISTRY

from fakes import FakeProvider, make_mtn_credentials
from mobipay.payments.providers.mtn import MtnMomoClient, map_collection_status
from mobipay.payments.schemas import PaymentRequest, PaymentStatus
from mobipay.payments.tokens import MtnTokenManager

TOKEN = ("POST", "/collection/token/")
REQUEST_TO_PAY = ("POST", "/collection/v1_0/requesttopay")

token_ok = httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})


def _client(provider, simulator, **credential_overrides):
    credentials = make_mtn_credentials(**credential_overrides)
    tokens = MtnTokenManager(credentials, transport=provider.transport)
    return MtnMomoClient(credentials, tokens, simulator, transport=provider.transport)


def _request(**overrides):
    values = {
        "amount": 5000,
        "currency": "XAF",
        "method": "MTN_MOMO",
        "customer_phone": "+237670123456",
        "reference": "R1",
        "description": "Dinner for two",
    }
    values.update(overrides)
    return PaymentRequest(**values)


def _fallbacks(kind):
    return REGISTRY.get_sample_value("simulation_fallbacks_total", {"provider": "mtn", "kind": kind}) or 0.0


def test_missing_phone_fails_without_network(lucky_simulator):
    """A request without a phone number fails before any carrier call."""

    provider = FakeProvider()
    resp = asyncio.run(_client(provider, lucky_simulator).initiate(_request(customer_phone=None)))

    assert resp.status is PaymentStatus.FAILED
    assert resp.success is False
    assert "required" in resp.message
    assert provider.calls == []


def test_invalid_phone_fails_without_network(lucky_simulator):
    """A non-MTN number fails with the MTN format hint."""

    provider = FakeProvider()
    resp = asyncio.run(_client(provider, lucky_simulator).initiate(_request(customer_phone="+237690000000")))

    assert resp.status is PaymentStatus.FAILED
    assert "67X" in resp.message
    assert provider.calls == []


def test_unconfigured_credentials_use_simulation(lucky_simulator, caplog):
    """Missing credentials route to the simulator and log the fallback."""

    provider = FakeProvider()
    before = _fallbacks("unconfigured")

    resp = asyncio.run(_client(provider, lucky_simulator, api_key=None).initiate(_request()))

    assert resp.simulated is True
    assert resp.status is PaymentStatus.PENDING
    assert provider.calls == []
    assert _fallbacks("unconfigured") == before + 1
    assert "fallback_to_simulation" in caplog.text


def test_accepted_request_to_pay_is_pending(lucky_simulator):
    """A 202 from request-to-pay is PENDING under the generated reference id."""

    provider = FakeProvider({TOKEN: token_ok, REQUEST_TO_PAY: httpx.Response(202)})

    resp = asyncio.run(_client(provider, lucky_simulator).initiate(_request(amount="5000.00")))

    call = provider.calls[-1]
    body = json.loads(call.content)
    assert resp.success is True
    assert resp.status is PaymentStatus.PENDING
    assert resp.simulated is False
    assert resp.transaction_id == resp.payment_reference == call.headers["X-Reference-Id"]
    assert resp.additional_info == {
        "instructions": "Check your phone for a USSD prompt to complete the payment",
        "timeout": "5 minutes",
    }
    assert call.headers["Authorization"] == "Bearer tok"
    assert call.headers["Ocp-Apim-Subscription-Key"] == "primary-key"
    assert body["payer"] == {"partyIdType": "MSISDN", "partyId": "237670123456"}
    assert body["amount"] == "5000"
    assert body["currency"] == "EUR"
    assert body["externalId"] == "R1"


def test_callback_url_header_when_configured(lucky_simulator):
    """The callback URL header is sent only when configured."""

    provider = FakeProvider({TOKEN: token_ok, REQUEST_TO_PAY: httpx.Response(202)})

    asyncio.run(
        _client(provider, lucky_simulator, callback_url="https://shop.test/api/payment/mtn/webhook").initiate(
            _request()
        )
    )

    assert provider.calls[-1].headers["X-Callback-Url"] == "https://shop.test/api/payment/mtn/webhook"


def test_non_202_success_status_fails(lucky_simulator):
    """Any 2xx other than 202 is treated as not accepted."""

    provider = FakeProvider({TOKEN: token_ok, REQUEST_TO_PAY: httpx.Response(200, json={})})

    resp = asyncio.run(_client(provider, lucky_simulator).initiate(_request()))

    assert resp.status is PaymentStatus.FAILED
    assert resp.message == "Failed to initiate payment. Please try again."
    assert resp.simulated is False


@pytest.mark.parametrize(
    ("status_code", "fragment"),
    [(400, "Invalid payment request"), (401, "Authentication failed"), (409, "Duplicate transaction")],
)
def test_known_rejections_map_to_specific_messages(status_code, fragment, lucky_simulator):
    """400, 401 and 409 map to user messages without fallback."""

    provider = FakeProvider({TOKEN: token_ok, REQUEST_TO_PAY: httpx.Response(status_code, json={})})

    resp = asyncio.run(_client(provider, lucky_simulator).initiate(_request()))

    assert resp.status is PaymentStatus.FAILED
    assert fragment in resp.message
    assert resp.simulated is False


def test_rejected_token_is_dropped_after_401(lucky_simulator):
    """A 401 on request-to-pay clears the cached token."""

    provider = FakeProvider({TOKEN: token_ok, REQUEST_TO_PAY: httpx.Response(401, json={})})
    client = _client(provider, lucky_simulator)

    async def twice():
        await client.initiate(_request(reference="R1"))
        await client.initiate(_request(reference="R2"))

    asyncio.run(twice())

    assert provider.count(*TOKEN) == 2


def test_unexpected_status_falls_back_to_simulation(lucky_simulator):
    """Unmapped carrier errors degrade to simulation."""

    provider = FakeProvider({TOKEN: token_ok, REQUEST_TO_PAY: httpx.Response(503, text="busy")})
    before = _fallbacks("transport")

    resp = asyncio.run(_client(provider, lucky_simulator).initiate(_request()))

    assert resp.simulated is True
    assert resp.payment_reference.startswith("MTN_")
    assert _fallbacks("transport") == before + 1


def test_network_error_falls_back_to_simulation(unlucky_simulator):
    """Transport failures degrade to simulation."""

    def drop(request):
        raise httpx.ReadTimeout("timed out", request=request)

    provider = FakeProvider({TOKEN: token_ok, REQUEST_TO_PAY: drop})

    resp = asyncio.run(_client(provider, unlucky_simulator).initiate(_request()))

    assert resp.simulated is True
    assert resp.status is PaymentStatus.FAILED


def test_token_failure_falls_back_to_simulation(lucky_simulator, caplog):
    """A failed token exchange degrades to simulation with kind authentication."""

    provider = FakeProvider({TOKEN: httpx.Response(401, json={"error": "denied"})})
    before = _fallbacks("authentication")

    resp = asyncio.run(_client(provider, lucky_simulator).initiate(_request()))

    assert resp.simulated is True
    assert provider.count(*REQUEST_TO_PAY) == 0
    assert _fallbacks("authentication") == before + 1
    assert any(record.levelname == "WARNING" and "authentication" in record.getMessage() for record in caplog.records)


@pytest.mark.parametrize(
    ("body", "status", "success"),
    [
        ({"status": "SUCCESSFUL", "financialTransactionId": "123"}, PaymentStatus.COMPLETED, True),
        ({"status": "PENDING"}, PaymentStatus.PENDING, True),
        ({"status": "FAILED", "reason": "APPROVAL_REJECTED"}, PaymentStatus.FAILED, False),
        ({"status": "EXPIRED"}, PaymentStatus.FAILED, False),
        ({}, PaymentStatus.FAILED, False),
    ],
)
def test_collection_status_mapping(body, status, success):
    """Carrier status strings map onto gateway statuses."""

    resp = map_collection_status(body, "txn-1")

    assert resp.status is status
    assert resp.success is success
    assert resp.transaction_id == "txn-1"


def test_failed_status_surfaces_provider_reason():
    """The carrier reason, string or object, becomes the message."""

    assert map_collection_status({"status": "FAILED", "reason": "APPROVAL_REJECTED"}, "t").message == "APPROVAL_REJECTED"
    assert map_collection_status({"status": "FAILED", "reason": {"code": "X", "message": "Declined"}}, "t").message == "Declined"
    assert map_collection_status({"status": "FAILED"}, "t").message == "Payment failed"
    assert map_collection_status({"status": "WHATEVER"}, "t").message == "Unknown payment status"


def test_poll_queries_the_status_endpoint(lucky_simulator):
    """Polling GETs the request-to-pay resource with carrier headers."""

    provider = FakeProvider(
        {
            TOKEN: token_ok,
            ("GET", "/collection/v1_0/requesttopay/txn-9"): httpx.Response(200, json={"status": "SUCCESSFUL"}),
        }
    )

    resp = asyncio.run(_client(provider, lucky_simulator).poll("txn-9"))

    assert resp.status is PaymentStatus.COMPLETED
    assert resp.simulated is False
    assert provider.calls[-1].headers["X-Target-Environment"] == "sandbox"


def test_poll_errors_fail_without_simulation(lucky_simulator):
    """Status check errors are FAILED and never simulated."""

    provider = FakeProvider(
        {TOKEN: token_ok, ("GET", "/collection/v1_0/requesttopay/txn-9"): httpx.Response(500, text="oops")}
    )

    resp = asyncio.run(_client(provider, lucky_simulator).poll("txn-9"))

    assert resp.status is PaymentStatus.FAILED
    assert resp.message == "Failed to check payment status"
    assert resp.simulated is False


def test_poll_token_failure_fails_without_simulation(lucky_simulator):
    """A token failure during polling is FAILED, not simulated."""

    provider = FakeProvider({TOKEN: httpx.Response(500)})

    resp = asyncio.run(_client(provider, lucky_simulator).poll("txn-9"))

    assert resp.status is PaymentStatus.FAILED
    assert resp.message == "Failed to check payment status"


def test_poll_unconfigured_is_simulated(lucky_simulator):
    """Unconfigured polling answers from the simulator."""

    provider = FakeProvider()

    resp = asyncio.run(_client(provider, lucky_simulator, primary_key=None).poll("txn-9"))

    assert resp.simulated is True
    assert resp.status is PaymentStatus.COMPLETED
    assert resp.transaction_id == "txn-9"
    assert provider.calls == []


def test_poll_mistyped_status_body_fails_without_simulation(lucky_simulator):
    """A status body the mapping cannot represent becomes a FAILED status check."""

    provider = FakeProvider(
        {
            TOKEN: token_ok,
            ("GET", "/collection/v1_0/requesttopay/txn-9"): httpx.Response(
                200, json={"status": "SUCCESSFUL", "financialTransactionId": 987654}
            ),
        }
    )

    resp = asyncio.run(_client(provider, lucky_simulator).poll("txn-9"))

    assert resp.status is PaymentStatus.FAILED
    assert resp.message == "Failed to check payment status"
    assert resp.transaction_id == "txn-9"
    assert resp.simulated is False
