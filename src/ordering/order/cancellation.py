"""Order cancellation: command and handler."""

from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import AccessDenied
from ordering.order.order import Order


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    is_admin = Boolean(default=False)
    reason = String(max_length=500)
    shipment_cancelled = Boolean(default=False)


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if not command.is_admin and not order.is_owned_by(command.user_id):
            raise AccessDenied("Access denied")

        order.cancel(
            reason=command.reason,
            by_admin=bool(command.is_admin),
            shipment_cancelled=bool(command.shipment_cancelled),
        )
        repo.add(order)
