"""Payment verification: command and handler.

The checkout client returns the gateway's payment id and signature after a
successful payment. A matching signature completes the payment; a mismatch
marks it failed and that outcome is committed, so the handler returns the
verdict instead of raising.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import AccessDenied
from ordering.order.order import Order, PaymentStatus
from payments.gateway import get_gateway

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class VerifyPayment:
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    gateway_payment_id = String(required=True, max_length=100)
    signature = String(required=True, max_length=255)


@ordering.command_handler(part_of=Order)
class VerifyPaymentHandler:
    @handle(VerifyPayment)
    def verify_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if not order.is_owned_by(command.user_id):
            raise AccessDenied("Access denied")
        if not order.gateway_order_id:
            raise ValidationError({"gateway_order_id": ["Order has no online payment to verify"]})
        if order.payment_status != PaymentStatus.PENDING.value:
            raise ValidationError({"payment_status": [f"Payment is already {order.payment_status}"]})

        verified = get_gateway().verify_signature(
            order.gateway_order_id,
            command.gateway_payment_id,
            command.signature,
        )
        order.record_payment_verification(
            gateway_payment_id=command.gateway_payment_id,
            signature=command.signature,
            verified=verified,
        )
        repo.add(order)

        logger.info("payment_verification_recorded", order_number=order.order_number, verified=verified)
        return verified
