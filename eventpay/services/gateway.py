"""Payment gateway boundary.

The reconciliation engine only talks to `PaymentGateway`. Concrete adapters
turn provider specifics (payload encoding, checksums, status codes) into
`PaymentIntent` and `CallbackResult`.
"""
import hashlib
import hmac
import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from eventpay.core.config import settings
from eventpay.core.errors import InvalidSignature, ValidationError
from eventpay.models.payment_attempt import CONFIRMED, DECLINED


@dataclass(frozen=True)
class PaymentIntent:
    redirect_url: str
    gateway_ref: str


@dataclass(frozen=True)
class CallbackResult:
    gateway_ref: str
    outcome: str | None  # CONFIRMED, DECLINED, or None while the gateway is still processing
    signature_valid: bool
    provider_txn_id: str = ""


@dataclass(frozen=True)
class RawCallback:
    body: bytes
    headers: dict = field(default_factory=dict)

    def header(self, name: str) -> str:
        wanted = name.lower()
        for k, v in self.headers.items():
            if k.lower() == wanted:
                return v
        return ""


class PaymentGateway(ABC):
    name = "gateway"

    @abstractmethod
    def create_intent(self, ticket_id: str, amount: int, purchaser_contact: str) -> PaymentIntent:
        """Ask the provider for a pay page. Raises GatewayUnavailable."""

    @abstractmethod
    def parse_callback(self, raw: RawCallback) -> CallbackResult:
        """Verify and decode a provider callback. Raises InvalidSignature."""

    @abstractmethod
    def fetch_status(self, gateway_ref: str) -> CallbackResult:
        """Authoritative status query for a payer returning from the pay page."""


def new_gateway_ref(prefix: str = "TXN") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:20].upper()}"


def return_url(gateway_ref: str) -> str:
    return f"{settings.API_PUBLIC_URL.rstrip('/')}/api/v1/payments/return/{gateway_ref}"


def callback_url(gateway_name: str) -> str:
    return f"{settings.API_PUBLIC_URL.rstrip('/')}/api/v1/webhooks/payments/{gateway_name}"


class SandboxGateway(PaymentGateway):
    """Local stand-in for a provider.

    Callbacks are JSON `{"gatewayRef", "outcome", "transactionId"}` signed with
    hex HMAC-SHA256 of the raw body in `X-Signature`. Status queries answer
    from `outcomes`, which tests and the dev pay page fill in.
    """

    name = "sandbox"

    def __init__(self, secret: str | None = None):
        self.secret = (secret if secret is not None else settings.SANDBOX_WEBHOOK_SECRET).encode("utf-8")
        self.outcomes: dict[str, str] = {}

    def create_intent(self, ticket_id: str, amount: int, purchaser_contact: str) -> PaymentIntent:
        ref = new_gateway_ref("SBX")
        url = f"{settings.API_PUBLIC_URL.rstrip('/')}/sandbox/pay/{ref}?amount={int(amount)}"
        return PaymentIntent(redirect_url=url, gateway_ref=ref)

    def sign(self, body: bytes) -> str:
        return hmac.new(self.secret, body, hashlib.sha256).hexdigest()

    def build_callback(self, gateway_ref: str, outcome: str, transaction_id: str = "") -> RawCallback:
        body = json.dumps({"gatewayRef": gateway_ref, "outcome": outcome, "transactionId": transaction_id}).encode("utf-8")
        return RawCallback(body=body, headers={"X-Signature": self.sign(body)})

    def parse_callback(self, raw: RawCallback) -> CallbackResult:
        received = raw.header("x-signature")
        if not received or not hmac.compare_digest(self.sign(raw.body).encode("utf-8"), received.encode("utf-8")):
            raise InvalidSignature("Invalid sandbox callback signature")
        try:
            payload = json.loads(raw.body.decode("utf-8") or "{}")
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise ValidationError("Malformed callback body")
        if not isinstance(payload, dict):
            raise ValidationError("Malformed callback body")
        outcome = str(payload.get("outcome") or "").upper()
        if outcome not in (CONFIRMED, DECLINED):
            outcome = None
        return CallbackResult(
            gateway_ref=str(payload.get("gatewayRef") or ""),
            outcome=outcome,
            signature_valid=True,
            provider_txn_id=str(payload.get("transactionId") or ""),
        )

    def fetch_status(self, gateway_ref: str) -> CallbackResult:
        return CallbackResult(gateway_ref=gateway_ref, outcome=self.outcomes.get(gateway_ref), signature_valid=True)


_gateways: dict[str, PaymentGateway] = {}


def get_gateway(name: str | None = None) -> PaymentGateway:
    name = (name or settings.PAYMENT_GATEWAY or "sandbox").strip().lower()
    gw = _gateways.get(name)
    if gw is not None:
        return gw
    if name == "sandbox":
        gw = SandboxGateway()
    elif name == "phonepe":
        from eventpay.services.phonepe_client import PhonePeGateway, phonepe_config_from_settings
        gw = PhonePeGateway(phonepe_config_from_settings())
    else:
        raise ValidationError(f"Unknown payment gateway '{name}'")
    _gateways[name] = gw
    return gw


def register_gateway(gw: PaymentGateway) -> None:
    """Install an adapter instance under its name (tests, alternate providers)."""
    _gateways[gw.name] = gw


def reset_gateways() -> None:
    _gateways.clear()
