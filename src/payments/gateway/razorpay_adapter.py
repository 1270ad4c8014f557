"""Razorpay payment gateway adapter.

Opens Razorpay orders (payment intents) over the REST API with HTTP basic
auth and verifies checkout signatures locally. Intent creation is never
retried: a failure aborts the order being placed.
"""

import os
from dataclasses import dataclass

import httpx
import structlog

from ordering.errors import PaymentGatewayError
from payments.gateway.port import IntentResult, PaymentGateway, signature_matches

logger = structlog.get_logger(__name__)

DEFAULT_API_URL = "https://api.razorpay.com/v1"
# Intent creation runs inside the synchronous PlaceOrder command and blocks the
# worker while it waits, so keep this short.
REQUEST_TIMEOUT = 5.0  # seconds


def _seconds(raw):
    try:
        value = float(raw) if raw else 0.0
    except ValueError:
        value = 0.0
    return value if value > 0 else REQUEST_TIMEOUT


@dataclass(frozen=True)
class RazorpayConfig:
    key_id: str
    key_secret: str
    api_url: str = DEFAULT_API_URL
    timeout: float = REQUEST_TIMEOUT

    @classmethod
    def from_env(cls) -> "RazorpayConfig":
        return cls(
            key_id=os.environ.get("RAZORPAY_KEY_ID", ""),
            key_secret=os.environ.get("RAZORPAY_KEY_SECRET", ""),
            api_url=os.environ.get("RAZORPAY_API_URL") or DEFAULT_API_URL,
            timeout=_seconds(os.environ.get("RAZORPAY_TIMEOUT_SECONDS")),
        )


class RazorpayGateway(PaymentGateway):
    """Production Razorpay gateway adapter."""

    def __init__(self, config: RazorpayConfig, transport: httpx.BaseTransport | None = None) -> None:
        self.config = config
        self._client = httpx.Client(
            base_url=config.api_url,
            auth=(config.key_id, config.key_secret),
            timeout=httpx.Timeout(config.timeout),
            transport=transport,
        )

    @property
    def key_id(self) -> str:
        return self.config.key_id

    def open_intent(self, amount_minor: int, currency: str, receipt: str) -> IntentResult:
        try:
            response = self._client.post(
                "/orders",
                json={"amount": amount_minor, "currency": currency, "receipt": receipt},
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("razorpay_order_failed", receipt=receipt, error=str(exc))
            raise PaymentGatewayError(f"Payment gateway error: {exc}") from exc

        gateway_order_id = body.get("id") if isinstance(body, dict) else None
        if not gateway_order_id:
            raise PaymentGatewayError("Payment gateway returned no order id")

        logger.info("razorpay_order_created", receipt=receipt, gateway_order_id=gateway_order_id)
        return IntentResult(
            gateway_order_id=gateway_order_id,
            amount=int(body.get("amount", amount_minor)),
            currency=body.get("currency", currency),
            receipt=body.get("receipt", receipt),
            key_id=self.key_id,
            gateway_status=body.get("status"),
        )

    def verify_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool:
        return signature_matches(gateway_order_id, payment_id, signature, self.config.key_secret)

    def close(self) -> None:
        self._client.close()
