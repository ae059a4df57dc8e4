import base64
import hashlib
import hmac
import json
from datetime import datetime
from decimal import Decimal

import pytest
import requests

from app.config import Settings
from app.schemas.payment_schemas import CardDetails, ChargeRequest, ChargeResult
from app.services.cybersource import CyberSourceClient
from app.services.mastercard import MastercardGatewayClient
from app.services.payment_service import (
    PaymentGatewayAdapter,
    SimulatedGateway,
    build_gateway,
)
from app.utils.card import expiry_valid, luhn_valid
from conftest import FakeGateway

SECRET = base64.b64encode(b"not-a-real-secret").decode()


class FakeResponse:
    def __init__(self, status_code=201, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.content = (text if text is not None else json.dumps(payload or {})).encode()

    def json(self):
        return json.loads(self.content)


class FakeHTTP:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def _send(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response

    def post(self, url, **kwargs):
        return self._send("POST", url, **kwargs)

    def put(self, url, **kwargs):
        return self._send("PUT", url, **kwargs)


def _request(method="visa", card=True, amount="25.00"):
    return ChargeRequest(
        amount=Decimal(amount),
        currency="USD",
        email="reader@example.com",
        payment_method=method,
        order_ref="order-1",
        card=CardDetails(number="4111111111111111", expiry_month=3, expiry_year=30, security_code="999")
        if card else None,
    )


def _cybersource(http):
    return CyberSourceClient(
        merchant_id="merchant", key_id="key-1", shared_secret=SECRET, host="apitest.example.com", http=http
    )


# -------- card checks --------

@pytest.mark.parametrize("number, valid", [
    ("4111 1111 1111 1111", True),
    ("5555-5555-5555-4444", True),
    ("4111111111111112", False),
    ("4111", False),
    ("4111abcd11111111", False),
])
def test_luhn(number, valid):
    assert luhn_valid(number) is valid


def test_expiry_is_inclusive_of_current_month():
    now = datetime(2026, 5, 20)
    assert expiry_valid(5, 26, now=now)
    assert expiry_valid(1, 2027, now=now)
    assert not expiry_valid(4, 2026, now=now)
    assert not expiry_valid(0, 2030, now=now)
    assert not expiry_valid("xx", 2030, now=now)


# -------- adapter --------

def test_unknown_method_fails_without_calling_a_gateway():
    fake = FakeGateway()
    adapter = PaymentGatewayAdapter({})

    result = adapter.charge(_request(method="bitcoin"))

    assert result.success is False
    assert result.error == "Invalid payment method"
    assert fake.requests == []


def test_unrouted_method_is_unsupported():
    adapter = PaymentGatewayAdapter({})
    result = adapter.charge(_request(method="prepaid"))
    assert result.error == "The selected payment method is not supported."


def test_invalid_card_never_reaches_the_gateway():
    fake = FakeGateway()
    adapter = PaymentGatewayAdapter({"visa": fake})
    request = _request()
    request.card.number = "4111111111111112"

    result = adapter.charge(request)

    assert result.error == "Invalid card number"
    assert fake.requests == []


def test_gateway_exceptions_become_failures():
    class Exploding:
        def charge(self, request):
            raise RuntimeError("boom")

    adapter = PaymentGatewayAdapter({"visa": Exploding()})
    result = adapter.charge(_request())

    assert result == ChargeResult(success=False, error="boom")


def test_simulated_mode_approves_everything():
    adapter = build_gateway(Settings(payment_gateway="simulated", _env_file=None))

    result = adapter.charge(_request(method="google_pay", card=False))

    assert result.success
    assert result.transaction_id.startswith("sim_")


def test_live_mode_routing():
    settings = Settings(
        payment_gateway="live",
        cybersource_shared_secret=SECRET,
        mastercard_merchant_id="mc-merchant",
        _env_file=None,
    )
    adapter = build_gateway(settings)

    assert isinstance(adapter.routes["visa"], CyberSourceClient)
    assert isinstance(adapter.routes["apple_pay"], CyberSourceClient)
    assert isinstance(adapter.routes["mastercard"], MastercardGatewayClient)


def test_mastercard_falls_back_to_cybersource():
    adapter = build_gateway(Settings(payment_gateway="live", _env_file=None))
    assert isinstance(adapter.routes["mastercard"], CyberSourceClient)


def test_simulated_gateway_is_plain():
    assert SimulatedGateway().charge(_request()).success


# -------- CyberSource --------

def test_cybersource_authorized():
    http = FakeHTTP(FakeResponse(201, {"id": "cs_789", "status": "AUTHORIZED"}))

    result = _cybersource(http).charge(_request())

    assert result == ChargeResult(success=True, transaction_id="cs_789")
    method, url, kwargs = http.calls[0]
    assert url == "https://apitest.example.com/pts/v2/payments"
    assert kwargs["timeout"] == 30.0

    body = json.loads(kwargs["data"])
    assert body["orderInformation"]["amountDetails"]["totalAmount"] == "25.00"
    assert body["paymentInformation"]["card"]["expirationYear"] == "2030"
    assert body["paymentInformation"]["card"]["type"] == "001"


def test_cybersource_wallet_payload():
    client = _cybersource(FakeHTTP())
    body = client.build_payload(_request(method="google_pay", card=False))

    assert body["processingInformation"]["paymentSolution"] == "012"
    assert "card" not in body["paymentInformation"]


def test_cybersource_signature():
    client = _cybersource(FakeHTTP())
    date = "Thu, 01 Jan 2026 00:00:00 GMT"

    headers = client.signature_headers('{"a": 1}', date=date)

    digest = "SHA-256=" + base64.b64encode(hashlib.sha256(b'{"a": 1}').digest()).decode()
    signing = (
        f"host: apitest.example.com\ndate: {date}\n(request-target): post /pts/v2/payments\n"
        f"digest: {digest}\nv-c-merchant-id: merchant"
    )
    expected = base64.b64encode(
        hmac.new(b"not-a-real-secret", signing.encode(), hashlib.sha256).digest()
    ).decode()

    assert headers["digest"] == digest
    assert f'signature="{expected}"' in headers["signature"]
    assert 'keyid="key-1"' in headers["signature"]


def test_cybersource_decline_message():
    http = FakeHTTP(FakeResponse(400, {"status": "INVALID_REQUEST", "errorInformation": {"message": "Declined - expired card"}}))

    result = _cybersource(http).charge(_request())

    assert result.success is False
    assert result.error == "Declined - expired card"


def test_cybersource_non_json_body():
    http = FakeHTTP(FakeResponse(502, text="<html>Bad gateway</html>"))
    result = _cybersource(http).charge(_request())
    assert result.error == "Payment system error"


def test_cybersource_network_error(monkeypatch):
    def refuse(self, *args, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(requests.Session, "post", refuse)
    client = CyberSourceClient(merchant_id="m", key_id="k", shared_secret=SECRET)

    result = client.charge(_request())

    assert result.success is False
    assert "connection refused" in result.error


# -------- Mastercard --------

def test_mastercard_approved():
    http = FakeHTTP(FakeResponse(200, {
        "result": "SUCCESS",
        "response": {"gatewayCode": "APPROVED"},
        "transaction": {"id": "mc_1"},
    }))
    client = MastercardGatewayClient(merchant_id="TEST01", api_password="pw", http=http)

    result = client.charge(_request(method="mastercard"))

    assert result == ChargeResult(success=True, transaction_id="mc_1")
    method, url, kwargs = http.calls[0]
    assert method == "PUT"
    assert "/merchant/TEST01/order/order-1/transaction/" in url
    assert kwargs["auth"] == ("merchant.TEST01", "pw")
    assert kwargs["json"]["sourceOfFunds"]["provided"]["card"]["expiry"] == {"month": "03", "year": "30"}


def test_mastercard_declined():
    http = FakeHTTP(FakeResponse(200, {"result": "FAILURE", "response": {"gatewayCode": "DECLINED"}}))
    client = MastercardGatewayClient(merchant_id="TEST01", api_password="pw", http=http)

    result = client.charge(_request(method="mastercard"))

    assert result.success is False
    assert result.error == "Payment declined (DECLINED)"


def test_mastercard_hosted_session_payload():
    client = MastercardGatewayClient(merchant_id="TEST01", api_password="pw", http=FakeHTTP())
    body = client.build_payload(_request(method="mastercard", card=False))
    assert body["session"] == {"id": "order-1"}
    assert "sourceOfFunds" not in body
