import base64
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass

import requests

from eventpay.core.config import settings
from eventpay.core.errors import GatewayUnavailable, InvalidSignature, ValidationError
from eventpay.models.payment_attempt import CONFIRMED, DECLINED
from eventpay.services.gateway import (
    CallbackResult, PaymentGateway, PaymentIntent, RawCallback, callback_url, new_gateway_ref, return_url,
)

log = logging.getLogger(__name__)

PAY_PATH = "/pg/v1/pay"

@dataclass
class PhonePeConfig:
    host_url: str           # https://api-preprod.phonepe.com/apis/pg-sandbox OR https://api.phonepe.com/apis/hermes
    merchant_id: str
    salt_key: str
    salt_index: int = 1
    timeout: int = 10


def phonepe_config_from_settings() -> PhonePeConfig:
    if not (settings.PHONEPE_MERCHANT_ID and settings.PHONEPE_SALT_KEY):
        raise GatewayUnavailable("PhonePe is not configured (missing env vars)")
    return PhonePeConfig(
        host_url=settings.PHONEPE_HOST_URL.rstrip("/"),
        merchant_id=settings.PHONEPE_MERCHANT_ID,
        salt_key=settings.PHONEPE_SALT_KEY,
        salt_index=settings.PHONEPE_SALT_INDEX,
        timeout=settings.GATEWAY_TIMEOUT_SECONDS,
    )


def _sha256_hex(msg: str) -> str:
    return hashlib.sha256(msg.encode("utf-8")).hexdigest()


def x_verify(signed: str, salt_key: str, salt_index: int) -> str:
    # X-VERIFY: sha256(<signed> + saltKey) + "###" + saltIndex
    return f"{_sha256_hex(signed + salt_key)}###{salt_index}"


def outcome_for_code(code: str) -> str | None:
    code = (code or "").upper()
    if code == "PAYMENT_SUCCESS":
        return CONFIRMED
    if code in ("PAYMENT_PENDING", "INTERNAL_SERVER_ERROR", ""):
        return None
    return DECLINED


class PhonePeGateway(PaymentGateway):
    name = "phonepe"

    def __init__(self, cfg: PhonePeConfig):
        self.cfg = cfg

    def _request(self, method: str, path: str, headers: dict, payload: dict | None = None) -> dict:
        url = f"{self.cfg.host_url}{path}"
        try:
            r = requests.request(method=method, url=url, json=payload, headers=headers, timeout=self.cfg.timeout)
        except requests.RequestException as e:
            raise GatewayUnavailable(f"PhonePe unreachable: {e}") from e
        try:
            data = r.json() if r.text else {}
        except ValueError:
            data = {"raw": r.text}
        if r.status_code >= 400:
            log.warning("phonepe request failed", extra={"path": path, "status": r.status_code})
            raise GatewayUnavailable(f"PhonePe {r.status_code}: {data}")
        return data

    def create_intent(self, ticket_id: str, amount: int, purchaser_contact: str) -> PaymentIntent:
        ref = new_gateway_ref("TXN")
        data = {
            "merchantId": self.cfg.merchant_id,
            "merchantTransactionId": ref,
            "merchantUserId": f"TICKET_{ticket_id.replace('-', '')[:24]}",
            "amount": int(amount),  # paise
            "redirectUrl": return_url(ref),
            "redirectMode": "POST",
            "callbackUrl": callback_url(self.name),
            "mobileNumber": purchaser_contact,
            "paymentInstrument": {"type": "PAY_PAGE"},
        }
        encoded = base64.b64encode(json.dumps(data).encode("utf-8")).decode("ascii")
        headers = {
            "Content-Type": "application/json",
            "accept": "application/json",
            "X-VERIFY": x_verify(encoded + PAY_PATH, self.cfg.salt_key, self.cfg.salt_index),
        }
        resp = self._request("POST", PAY_PATH, headers, {"request": encoded})
        try:
            url = resp["data"]["instrumentResponse"]["redirectInfo"]["url"]
        except (KeyError, TypeError):
            raise GatewayUnavailable(f"PhonePe pay response missing redirect: {resp}")
        return PaymentIntent(redirect_url=url, gateway_ref=ref)

    def parse_callback(self, raw: RawCallback) -> CallbackResult:
        try:
            body = json.loads(raw.body.decode("utf-8") or "{}")
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise InvalidSignature("Malformed PhonePe callback")
        if not isinstance(body, dict):
            raise InvalidSignature("Malformed PhonePe callback")
        encoded = str(body.get("response") or "")
        received = raw.header("x-verify")
        expected = x_verify(encoded, self.cfg.salt_key, self.cfg.salt_index)
        if not encoded or not received or not hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8")):
            raise InvalidSignature("Invalid PhonePe X-VERIFY")
        try:
            decoded = json.loads(base64.b64decode(encoded).decode("utf-8"))
        except (ValueError, UnicodeDecodeError):
            raise ValidationError("Undecodable PhonePe callback payload")
        return self._result(decoded)

    def fetch_status(self, gateway_ref: str) -> CallbackResult:
        path = f"/pg/v1/status/{self.cfg.merchant_id}/{gateway_ref}"
        headers = {
            "Content-Type": "application/json",
            "X-VERIFY": x_verify(path, self.cfg.salt_key, self.cfg.salt_index),
            "X-MERCHANT-ID": self.cfg.merchant_id,
        }
        resp = self._request("GET", path, headers)
        if not isinstance(resp, dict):
            raise GatewayUnavailable(f"PhonePe status response is not an object: {resp}")
        result = self._result(resp)
        if not result.gateway_ref:
            result = CallbackResult(gateway_ref=gateway_ref, outcome=result.outcome,
                                    signature_valid=True, provider_txn_id=result.provider_txn_id)
        return result

    def _result(self, payload: dict) -> CallbackResult:
        if not isinstance(payload, dict):
            raise ValidationError("PhonePe payload is not an object")
        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise ValidationError("PhonePe payload data is not an object")
        return CallbackResult(
            gateway_ref=str(data.get("merchantTransactionId") or ""),
            outcome=outcome_for_code(payload.get("code")),
            signature_valid=True,
            provider_txn_id=str(data.get("transactionId") or ""),
        )
