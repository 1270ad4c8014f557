"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement.
This enables swapping between FakeGateway (dev/test) and RazorpayGateway
(production) without changing any domain or application code.
"""

import hashlib
import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class IntentResult:
    """A payment intent (gateway-side order) opened for a storefront order."""

    gateway_order_id: str
    amount: int
    currency: str
    receipt: str
    key_id: str | None = None
    gateway_status: str | None = None


def sign(gateway_order_id: str, payment_id: str, secret: str) -> str:
    """HMAC-SHA256 hex digest of ``"{gateway_order_id}|{payment_id}"`` keyed by ``secret``."""
    message = f"{gateway_order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def signature_matches(gateway_order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    if not (gateway_order_id and payment_id and signature and secret):
        return False
    return hmac.compare_digest(sign(gateway_order_id, payment_id, secret), signature)


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @property
    @abstractmethod
    def key_id(self) -> str | None:
        """Public key id handed to the checkout client alongside the gateway order id."""
        ...

    @abstractmethod
    def open_intent(self, amount_minor: int, currency: str, receipt: str) -> IntentResult:
        """Open a payment intent for ``amount_minor`` (paise). Raises PaymentGatewayError on failure."""
        ...

    @abstractmethod
    def verify_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool:
        """Verify the signature returned to the client after a successful payment."""
        ...
