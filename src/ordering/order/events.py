"""Domain events for the Order aggregate.

Events are immutable facts raised alongside each state change and persisted
with the aggregate in the same Unit of Work.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """Stock was reserved, the order priced, and (for online payments) a payment intent opened."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item snapshots
    payment_method = String(required=True)
    gateway_order_id = String()
    subtotal = Float(required=True)
    tax = Float(required=True)
    shipping = Float(required=True)
    total = Float(required=True)
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentVerified:
    __version__ = 1

    order_id = Identifier(required=True)
    gateway_order_id = String(required=True)
    gateway_payment_id = String(required=True)
    verified_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentVerificationFailed:
    """The signature supplied by the payment callback did not match."""

    __version__ = 1

    order_id = Identifier(required=True)
    gateway_order_id = String()
    gateway_payment_id = String()
    failed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String(required=True)
    cancelled_by_user = Boolean(required=True)
    payment_refunded = Boolean(default=False)
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class ReturnInitiated:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    return_shipment_id = String()
    return_awb = String()
    initiated_at = DateTime(required=True)


@ordering.event(part_of="Order")
class ShippingChargeReconciled:
    """The provisional shipping charge was replaced by a carrier quote."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_shipping = Float(required=True)
    shipping = Float(required=True)
    total = Float(required=True)
    courier_name = String()
    reconciled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class ShipmentCreated:
    __version__ = 1

    order_id = Identifier(required=True)
    shipment_id = String()
    awb = String()
    courier_name = String()
    order_status = String(required=True)
    created_at = DateTime(required=True)


@ordering.event(part_of="Order")
class TrackingSynced:
    """Carrier tracking was pulled; the order status changes only when the carrier status is recognized."""

    __version__ = 1

    order_id = Identifier(required=True)
    provider_status = String()
    previous_status = String(required=True)
    order_status = String(required=True)
    new_events = Integer(default=0)
    synced_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusSet:
    """An administrator edited the status by hand (shipping provider disabled)."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    order_status = String(required=True)
    set_at = DateTime(required=True)
