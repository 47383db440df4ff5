import base64
import hashlib
import json

import pytest
import requests

from eventpay.core.errors import GatewayUnavailable, InvalidSignature, ValidationError
from eventpay.models.payment_attempt import CONFIRMED, DECLINED
from eventpay.services import phonepe_client
from eventpay.services.gateway import RawCallback
from eventpay.services.phonepe_client import PhonePeConfig, PhonePeGateway, outcome_for_code, x_verify


SALT = "test-salt-key"


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload if payload is not None else {}
        self.text = json.dumps(self._payload)

    def json(self):
        return self._payload


@pytest.fixture
def phonepe():
    return PhonePeGateway(PhonePeConfig(
        host_url="https://phonepe.test/apis/pg-sandbox", merchant_id="MERCHANTUAT", salt_key=SALT, salt_index=1,
    ))


def _callback(payload: dict, salt: str = SALT) -> RawCallback:
    encoded = base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")
    body = json.dumps({"response": encoded}).encode("utf-8")
    return RawCallback(body=body, headers={"X-VERIFY": x_verify(encoded, salt, 1)})


def test_x_verify_format():
    expected = hashlib.sha256(("payload/pg/v1/pay" + SALT).encode("utf-8")).hexdigest() + "###1"
    assert x_verify("payload/pg/v1/pay", SALT, 1) == expected


@pytest.mark.parametrize("code,outcome", [
    ("PAYMENT_SUCCESS", CONFIRMED),
    ("PAYMENT_ERROR", DECLINED),
    ("PAYMENT_DECLINED", DECLINED),
    ("PAYMENT_PENDING", None),
    ("INTERNAL_SERVER_ERROR", None),
    ("", None),
    (None, None),
])
def test_outcome_for_code(code, outcome):
    assert outcome_for_code(code) == outcome


def test_create_intent_posts_signed_payload(phonepe, monkeypatch):
    calls = []

    def fake_request(method, url, json=None, headers=None, timeout=None):
        calls.append({"method": method, "url": url, "json": json, "headers": headers, "timeout": timeout})
        return FakeResponse(200, {
            "success": True,
            "code": "PAYMENT_INITIATED",
            "data": {"instrumentResponse": {"redirectInfo": {"url": "https://mercury.test/pay/abc"}}},
        })

    monkeypatch.setattr(phonepe_client.requests, "request", fake_request)

    intent = phonepe.create_intent("4f1c-22", 49900, "9876543210")

    assert intent.redirect_url == "https://mercury.test/pay/abc"
    assert intent.gateway_ref.startswith("TXN_")
    call = calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://phonepe.test/apis/pg-sandbox/pg/v1/pay"
    encoded = call["json"]["request"]
    assert call["headers"]["X-VERIFY"] == x_verify(encoded + "/pg/v1/pay", SALT, 1)
    sent = json.loads(base64.b64decode(encoded))
    assert sent["merchantId"] == "MERCHANTUAT"
    assert sent["merchantTransactionId"] == intent.gateway_ref
    assert sent["amount"] == 49900
    assert sent["redirectUrl"].endswith(f"/api/v1/payments/return/{intent.gateway_ref}")
    assert sent["callbackUrl"].endswith("/api/v1/webhooks/payments/phonepe")


def test_create_intent_unreachable(phonepe, monkeypatch):
    def fake_request(*args, **kwargs):
        raise requests.ConnectionError("no route to host")

    monkeypatch.setattr(phonepe_client.requests, "request", fake_request)
    with pytest.raises(GatewayUnavailable):
        phonepe.create_intent("t1", 100, "9876543210")


def test_create_intent_server_error(phonepe, monkeypatch):
    monkeypatch.setattr(phonepe_client.requests, "request",
                        lambda *a, **kw: FakeResponse(500, {"code": "INTERNAL_SERVER_ERROR"}))
    with pytest.raises(GatewayUnavailable):
        phonepe.create_intent("t1", 100, "9876543210")


def test_create_intent_without_redirect(phonepe, monkeypatch):
    monkeypatch.setattr(phonepe_client.requests, "request", lambda *a, **kw: FakeResponse(200, {"data": {}}))
    with pytest.raises(GatewayUnavailable):
        phonepe.create_intent("t1", 100, "9876543210")


def test_parse_callback_success(phonepe):
    raw = _callback({
        "code": "PAYMENT_SUCCESS",
        "data": {"merchantTransactionId": "TXN_ABC", "transactionId": "T2401"},
    })
    result = phonepe.parse_callback(raw)
    assert result.signature_valid is True
    assert result.gateway_ref == "TXN_ABC"
    assert result.outcome == CONFIRMED
    assert result.provider_txn_id == "T2401"


def test_parse_callback_wrong_salt(phonepe):
    raw = _callback({"code": "PAYMENT_SUCCESS", "data": {"merchantTransactionId": "TXN_ABC"}}, salt="other")
    with pytest.raises(InvalidSignature):
        phonepe.parse_callback(raw)


def test_parse_callback_missing_header_or_body(phonepe):
    with pytest.raises(InvalidSignature):
        phonepe.parse_callback(RawCallback(body=b'{"response": "e30="}', headers={}))
    with pytest.raises(InvalidSignature):
        phonepe.parse_callback(RawCallback(body=b"not json", headers={"X-VERIFY": "x###1"}))


def test_fetch_status_queries_by_reference(phonepe, monkeypatch):
    calls = []

    def fake_request(method, url, json=None, headers=None, timeout=None):
        calls.append({"method": method, "url": url, "headers": headers})
        return FakeResponse(200, {"code": "PAYMENT_ERROR", "data": {"transactionId": "T9"}})

    monkeypatch.setattr(phonepe_client.requests, "request", fake_request)

    result = phonepe.fetch_status("TXN_XYZ")

    assert result.gateway_ref == "TXN_XYZ"
    assert result.outcome == DECLINED
    assert calls[0]["method"] == "GET"
    assert calls[0]["url"].endswith("/pg/v1/status/MERCHANTUAT/TXN_XYZ")
    assert calls[0]["headers"]["X-VERIFY"] == x_verify("/pg/v1/status/MERCHANTUAT/TXN_XYZ", SALT, 1)
    assert calls[0]["headers"]["X-MERCHANT-ID"] == "MERCHANTUAT"


def test_config_from_settings_requires_credentials(monkeypatch):
    monkeypatch.setattr(phonepe_client.settings, "PHONEPE_MERCHANT_ID", "")
    with pytest.raises(GatewayUnavailable):
        phonepe_client.phonepe_config_from_settings()


@pytest.mark.parametrize("body", [b"[]", b'"response"', b"42", b"null"])
def test_parse_callback_non_object_body_is_unverifiable(phonepe, body):
    with pytest.raises(InvalidSignature):
        phonepe.parse_callback(RawCallback(body=body, headers={"X-VERIFY": "abc###1"}))


def test_parse_callback_non_ascii_signature_header(phonepe):
    raw = _callback({"code": "PAYMENT_SUCCESS", "data": {"merchantTransactionId": "TXN_ABC"}})
    with pytest.raises(InvalidSignature):
        phonepe.parse_callback(RawCallback(body=raw.body, headers={"X-VERIFY": "é###1"}))


@pytest.mark.parametrize("payload", [
    ["PAYMENT_SUCCESS"],
    {"code": "PAYMENT_SUCCESS", "data": ["TXN_ABC"]},
])
def test_parse_callback_signed_payload_must_be_object(phonepe, payload):
    with pytest.raises(ValidationError):
        phonepe.parse_callback(_callback(payload))


def test_fetch_status_non_object_response(phonepe, monkeypatch):
    monkeypatch.setattr(phonepe_client.requests, "request", lambda *a, **kw: FakeResponse(200, ["PAYMENT_SUCCESS"]))
    with pytest.raises(GatewayUnavailable):
        phonepe.fetch_status("TXN_XYZ")
