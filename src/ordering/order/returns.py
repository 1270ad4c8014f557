"""Order returns: command and handler.

The reverse-pickup shipment (when the shipping provider is enabled) is booked
before this command runs; its identifiers arrive on the command.
"""

from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import AccessDenied
from ordering.order.order import Order


@ordering.command(part_of="Order")
class InitiateReturn:
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    is_admin = Boolean(default=False)
    reason = String(max_length=500)
    return_shipment_id = String(max_length=100)
    return_awb = String(max_length=100)
    return_tracking_url = String(max_length=1000)


@ordering.command_handler(part_of=Order)
class InitiateReturnHandler:
    @handle(InitiateReturn)
    def initiate_return(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if not command.is_admin and not order.is_owned_by(command.user_id):
            raise AccessDenied("Access denied")

        order.initiate_return(
            reason=command.reason,
            return_shipment_id=command.return_shipment_id,
            return_awb=command.return_awb,
            return_tracking_url=command.return_tracking_url,
        )
        repo.add(order)
