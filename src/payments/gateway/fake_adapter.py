"""Configurable fake payment gateway for development and testing.

This adapter simulates the payment gateway without any external calls.
It can be configured at runtime to succeed or fail, making it useful for:
- Automated tests with predictable outcomes
- Development without real gateway credentials

Signatures are verified exactly like the real gateway does, with a
configurable secret, so tests can produce valid signatures with
``payments.gateway.port.sign``.
"""

from uuid import uuid4

from ordering.errors import PaymentGatewayError
from payments.gateway.port import IntentResult, PaymentGateway, signature_matches

FAKE_KEY_ID = "rzp_test_fake"
FAKE_KEY_SECRET = "fake_secret"


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, key_secret: str = FAKE_KEY_SECRET) -> None:
        self.key_secret = key_secret
        self.should_succeed: bool = True
        self.failure_reason: str = "Payment gateway error"
        self.calls: list[dict] = []

    @property
    def key_id(self) -> str:
        return FAKE_KEY_ID

    def configure(self, should_succeed: bool, failure_reason: str = "Payment gateway error") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def open_intent(self, amount_minor: int, currency: str, receipt: str) -> IntentResult:
        call = {
            "method": "open_intent",
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
        }
        self.calls.append(call)

        if not self.should_succeed:
            raise PaymentGatewayError(self.failure_reason)

        return IntentResult(
            gateway_order_id=f"order_fake_{uuid4().hex[:14]}",
            amount=amount_minor,
            currency=currency,
            receipt=receipt,
            key_id=self.key_id,
            gateway_status="created",
        )

    def verify_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool:
        self.calls.append(
            {
                "method": "verify_signature",
                "gateway_order_id": gateway_order_id,
                "payment_id": payment_id,
            }
        )
        return signature_matches(gateway_order_id, payment_id, signature, self.key_secret)
