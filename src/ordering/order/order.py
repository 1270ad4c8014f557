"""Order aggregate: the core of the ordering domain.

An order is created only by the order-placement transaction, after stock has
been reserved, the items priced and (for online payment methods) a payment
intent opened. From then on it is mutated by payment verification,
cancellation, return initiation and the synchronization of carrier shipment
status; it is never deleted.

Status vocabulary (forward pipeline, then side branches):
    pending → processing → confirmed → pickup_scheduled → shipped →
    in_transit → out_for_delivery → delivered
    cancelled, rto_initiated, rto_delivered,
    return_initiated, return_in_transit, returned

Carrier-driven statuses are applied as reported by the provider; the
aggregate only guards the transitions a customer or administrator can ask for
(cancel, return, manual edit).
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.order.events import (
    OrderCancelled,
    OrderPlaced,
    OrderStatusSet,
    PaymentVerificationFailed,
    PaymentVerified,
    ReturnInitiated,
    ShipmentCreated,
    ShippingChargeReconciled,
    TrackingSynced,
)
from ordering.order.pricing import order_total


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    CONFIRMED = "confirmed"
    PICKUP_SCHEDULED = "pickup_scheduled"
    SHIPPED = "shipped"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RTO_INITIATED = "rto_initiated"
    RTO_DELIVERED = "rto_delivered"
    RETURN_INITIATED = "return_initiated"
    RETURN_IN_TRANSIT = "return_in_transit"
    RETURNED = "returned"


class PaymentMethod(Enum):
    UPI = "upi"
    CARD = "card"
    NETBANKING = "netbanking"
    COD = "cod"
    RAZORPAY = "razorpay"


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class ReturnStatus(Enum):
    NONE = "none"
    RETURN_INITIATED = "return_initiated"
    RETURN_IN_TRANSIT = "return_in_transit"
    RETURN_COMPLETED = "return_completed"
    RETURN_CANCELLED = "return_cancelled"


# Payment methods settled through the payment gateway
ONLINE_PAYMENT_METHODS = {
    PaymentMethod.RAZORPAY,
    PaymentMethod.UPI,
    PaymentMethod.CARD,
    PaymentMethod.NETBANKING,
}

# States from which a customer may no longer cancel (administrators may)
NON_CANCELLABLE_STATES = {
    OrderStatus.IN_TRANSIT,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
    OrderStatus.RETURN_IN_TRANSIT,
    OrderStatus.RETURNED,
    OrderStatus.CANCELLED,
    OrderStatus.RTO_DELIVERED,
}

# States in which a carrier shipment must not be cancelled
SHIPMENT_LOCKED_STATES = {
    OrderStatus.DELIVERED,
    OrderStatus.RETURN_IN_TRANSIT,
    OrderStatus.RETURNED,
}

# No further carrier movement is expected in these states
TERMINAL_STATES = {
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.RETURNED,
    OrderStatus.RTO_DELIVERED,
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class ShippingAddress:
    """Delivery address captured at checkout; never follows later address-book edits."""

    name = String(max_length=255)
    phone = String(max_length=20)
    address_line1 = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    pincode = String(required=True, max_length=10)


@ordering.value_object(part_of="Order")
class ShipmentDetails:
    """Everything the shipping provider told us about this order's shipments."""

    provider = String(max_length=50)
    external_order_id = String(max_length=100)
    shipment_id = String(max_length=100)
    courier_company_id = Integer()
    courier_name = String(max_length=255)
    awb = String(max_length=100)
    tracking_url = String(max_length=1000)
    label_url = String(max_length=1000)
    invoice_url = String(max_length=1000)
    manifest_url = String(max_length=1000)
    status = String(max_length=100)
    pickup_scheduled_at = DateTime()
    delivered_at = DateTime()
    last_synced_at = DateTime()
    etd = DateTime()
    charge = Float()
    freight_charge = Float()
    cod_charge = Float()
    fuel_surcharge = Float()
    total_charge = Float()
    weight = Float()
    length = Float()
    breadth = Float()
    height = Float()
    rate_response = Text()  # JSON: raw carrier record the quote was built from
    return_shipment_id = String(max_length=100)
    return_awb = String(max_length=100)
    return_tracking_url = String(max_length=1000)


_SHIPMENT_FIELDS = (
    "provider",
    "external_order_id",
    "shipment_id",
    "courier_company_id",
    "courier_name",
    "awb",
    "tracking_url",
    "label_url",
    "invoice_url",
    "manifest_url",
    "status",
    "pickup_scheduled_at",
    "delivered_at",
    "last_synced_at",
    "etd",
    "charge",
    "freight_charge",
    "cod_charge",
    "fuel_surcharge",
    "total_charge",
    "weight",
    "length",
    "breadth",
    "height",
    "rate_response",
    "return_shipment_id",
    "return_awb",
    "return_tracking_url",
)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """Point-in-time snapshot of a purchased product; never re-derived from the catalogue."""

    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    size = String(max_length=20)
    color = String(max_length=50)
    quantity = Integer(required=True, min_value=1)
    price = Float(required=True, min_value=0.0)
    image = String(max_length=1000)


@ordering.entity(part_of="Order")
class TrackingEvent:
    status = String(max_length=255)
    message = String(max_length=1000)
    location = String(max_length=255)
    event_at = DateTime()


def _event_key(status, message, location, event_at):
    stamp = None
    if event_at:
        moment = event_at.replace(tzinfo=UTC) if event_at.tzinfo is None else event_at.astimezone(UTC)
        stamp = moment.replace(microsecond=0).isoformat()
    return (status or "", message or "", location or "", stamp)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=50, unique=True)
    customer_id = Identifier(required=True)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(ShippingAddress)
    payment_method = String(required=True, choices=PaymentMethod)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    order_status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    gateway_order_id = String(max_length=100)
    gateway_payment_id = String(max_length=100)
    gateway_signature = String(max_length=255)
    subtotal = Float(required=True, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    shipping = Float(default=0.0, min_value=0.0)
    total = Float(required=True, min_value=0.0)
    shipping_reconciled = Boolean(default=False)
    estimated_delivery_at = DateTime()
    shipment = ValueObject(ShipmentDetails)
    tracking_events = HasMany(TrackingEvent)
    return_status = String(choices=ReturnStatus, default=ReturnStatus.NONE.value)
    return_requested_at = DateTime()
    return_reason = String(max_length=500)
    cancelled_by_user = Boolean(default=False)
    cancelled_at = DateTime()
    cancel_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def total_must_reconcile(self):
        expected = order_total(self.subtotal or 0.0, self.tax or 0.0, self.shipping or 0.0)
        if abs((self.total or 0.0) - expected) > 0.01:
            raise ValidationError({"total": [f"Total {self.total} does not equal subtotal + tax + shipping ({expected})"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, order_number, customer_id, items_data, shipping_address, payment_method, pricing):
        """Create a pending order from reserved, priced line items.

        Args:
            order_number: Unique human-facing order number, assigned once.
            customer_id: The user placing the order.
            items_data: List of dicts with product_id, name, size, color,
                        quantity, price, image.
            shipping_address: Dict with name, phone, address_line1,
                              address_line2, city, state, pincode.
            payment_method: One of the PaymentMethod values.
            pricing: Pricing with subtotal, tax, shipping and total.
        """
        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            customer_id=str(customer_id),
            shipping_address=ShippingAddress(**shipping_address),
            payment_method=payment_method,
            payment_status=PaymentStatus.PENDING.value,
            order_status=OrderStatus.PENDING.value,
            subtotal=pricing.subtotal,
            tax=pricing.tax,
            shipping=pricing.shipping,
            total=pricing.total,
            return_status=ReturnStatus.NONE.value,
            created_at=now,
            updated_at=now,
        )
        for item in items_data:
            order.add_items(OrderItem(**item))
        return order

    def mark_placed(self):
        """Raise the placement fact once the payment intent (if any) is attached."""
        self.raise_(
            OrderPlaced(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                items=json.dumps(
                    [
                        {
                            "product_id": str(item.product_id),
                            "name": item.name,
                            "size": item.size,
                            "color": item.color,
                            "quantity": item.quantity,
                            "price": item.price,
                        }
                        for item in self.items
                    ]
                ),
                payment_method=self.payment_method,
                gateway_order_id=self.gateway_order_id,
                subtotal=self.subtotal,
                tax=self.tax,
                shipping=self.shipping,
                total=self.total,
                placed_at=self.created_at,
            )
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_owned_by(self, user_id):
        return str(self.customer_id) == str(user_id)

    @property
    def status(self):
        return OrderStatus(self.order_status)

    @property
    def uses_online_payment(self):
        return PaymentMethod(self.payment_method) in ONLINE_PAYMENT_METHODS

    @property
    def is_cash_on_delivery(self):
        return PaymentMethod(self.payment_method) == PaymentMethod.COD

    def can_be_cancelled_by_customer(self):
        return self.status not in NON_CANCELLABLE_STATES

    def has_cancellable_shipment(self):
        return bool(self.shipment and self.shipment.awb) and self.status not in SHIPMENT_LOCKED_STATES

    def assert_returnable(self):
        if self.status != OrderStatus.DELIVERED:
            raise ValidationError({"order_status": ["Only delivered orders can be returned"]})
        if (self.return_status or ReturnStatus.NONE.value) != ReturnStatus.NONE.value:
            raise ValidationError({"return_status": [f"A return is already {self.return_status}"]})

    def _with_shipment(self, **changes):
        """Replace the shipment value object, keeping fields the change does not mention."""
        values = {name: getattr(self.shipment, name) for name in _SHIPMENT_FIELDS} if self.shipment else {}
        values.update({name: value for name, value in changes.items() if value is not None})
        self.shipment = ShipmentDetails(**values)

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def attach_payment_intent(self, gateway_order_id):
        self.gateway_order_id = gateway_order_id

    def record_payment_verification(self, gateway_payment_id, signature, verified):
        """Record the outcome of a signed payment callback. Failure is final."""
        now = datetime.now(UTC)
        if verified:
            self.payment_status = PaymentStatus.COMPLETED.value
            self.payment_method = PaymentMethod.RAZORPAY.value
            self.gateway_payment_id = gateway_payment_id
            self.gateway_signature = signature
            self.updated_at = now
            self.raise_(
                PaymentVerified(
                    order_id=str(self.id),
                    gateway_order_id=self.gateway_order_id,
                    gateway_payment_id=gateway_payment_id,
                    verified_at=now,
                )
            )
        else:
            self.payment_status = PaymentStatus.FAILED.value
            self.updated_at = now
            self.raise_(
                PaymentVerificationFailed(
                    order_id=str(self.id),
                    gateway_order_id=self.gateway_order_id,
                    gateway_payment_id=gateway_payment_id,
                    failed_at=now,
                )
            )

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, reason=None, by_admin=False, shipment_cancelled=False):
        """Cancel the order.

        Customers cannot cancel once the parcel is moving or the order has
        reached a terminal state; administrators can cancel in any state.
        A completed online payment is flagged as refunded (bookkeeping only).
        """
        previous = self.status
        if not by_admin and previous in NON_CANCELLABLE_STATES:
            raise ValidationError({"order_status": [f"Order cannot be cancelled (status: {previous.value})"]})

        now = datetime.now(UTC)
        self.order_status = OrderStatus.CANCELLED.value
        self.cancelled_at = now
        self.cancelled_by_user = not by_admin
        self.cancel_reason = reason or ("Cancelled by admin" if by_admin else "Cancelled by customer")
        self.updated_at = now

        if shipment_cancelled:
            self._with_shipment(status="cancelled", last_synced_at=now)

        refunded = self.payment_status == PaymentStatus.COMPLETED.value and not self.is_cash_on_delivery
        if refunded:
            self.payment_status = PaymentStatus.REFUNDED.value

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                previous_status=previous.value,
                reason=self.cancel_reason,
                cancelled_by_user=self.cancelled_by_user,
                payment_refunded=refunded,
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Returns
    # -------------------------------------------------------------------
    def initiate_return(self, reason=None, return_shipment_id=None, return_awb=None, return_tracking_url=None):
        """Start a return of a delivered order, with or without a reverse-pickup shipment."""
        self.assert_returnable()

        now = datetime.now(UTC)
        self.return_status = ReturnStatus.RETURN_INITIATED.value
        self.return_requested_at = now
        self.return_reason = reason
        self.updated_at = now

        if return_shipment_id or return_awb:
            self._with_shipment(
                return_shipment_id=return_shipment_id,
                return_awb=return_awb,
                return_tracking_url=return_tracking_url,
                last_synced_at=now,
            )

        self.raise_(
            ReturnInitiated(
                order_id=str(self.id),
                reason=reason,
                return_shipment_id=return_shipment_id,
                return_awb=return_awb,
                initiated_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Shipping
    # -------------------------------------------------------------------
    def reconcile_shipping(self, quote, package=None):
        """Replace the provisional shipping charge with a carrier quote. Applies at most once."""
        if self.shipping_reconciled:
            return False

        previous = self.shipping
        now = datetime.now(UTC)
        with atomic_change(self):
            self.shipping = round(quote.charge, 2)
            self.total = order_total(self.subtotal, self.tax, self.shipping)
            self.shipping_reconciled = True
            self.updated_at = now

        if quote.etd:
            self.estimated_delivery_at = quote.etd

        self._with_shipment(
            provider=quote.provider,
            courier_company_id=quote.courier_company_id,
            courier_name=quote.courier_name,
            etd=quote.etd,
            charge=quote.charge,
            freight_charge=quote.freight_charge,
            cod_charge=quote.cod_charge,
            fuel_surcharge=quote.fuel_surcharge,
            total_charge=quote.total_charge,
            rate_response=json.dumps(quote.raw) if quote.raw else None,
            weight=package.weight if package else None,
            length=package.length if package else None,
            breadth=package.breadth if package else None,
            height=package.height if package else None,
        )

        self.raise_(
            ShippingChargeReconciled(
                order_id=str(self.id),
                previous_shipping=previous,
                shipping=self.shipping,
                total=self.total,
                courier_name=quote.courier_name,
                reconciled_at=now,
            )
        )
        return True

    def attach_shipment(self, shipment, mapped_status=None):
        """Write back the carrier's identifiers for a newly created shipment.

        An order that reached a terminal state while the carrier was booking
        (typically a cancellation) keeps its status; only the shipment
        identifiers are recorded so the booking can still be withdrawn.
        """
        now = datetime.now(UTC)
        self._with_shipment(
            provider=shipment.provider,
            external_order_id=shipment.external_order_id,
            shipment_id=shipment.shipment_id,
            courier_company_id=shipment.courier_company_id,
            courier_name=shipment.courier_name,
            awb=shipment.awb,
            tracking_url=shipment.tracking_url,
            label_url=shipment.label_url,
            invoice_url=shipment.invoice_url,
            manifest_url=shipment.manifest_url,
            pickup_scheduled_at=shipment.pickup_scheduled_at,
            status=shipment.status,
            last_synced_at=now,
        )
        if mapped_status and self.status not in TERMINAL_STATES:
            self.order_status = OrderStatus(mapped_status).value
        self.updated_at = now

        self.raise_(
            ShipmentCreated(
                order_id=str(self.id),
                shipment_id=shipment.shipment_id,
                awb=shipment.awb,
                courier_name=shipment.courier_name,
                order_status=self.order_status,
                created_at=now,
            )
        )

    def record_shipment_cancelled(self):
        """Mark the carrier shipment as withdrawn. The order status is left as is."""
        now = datetime.now(UTC)
        self._with_shipment(status="cancelled", last_synced_at=now)
        self.updated_at = now

    def record_tracking(self, provider_status, mapped_status, events, tracking_url=None, etd=None):
        """Apply a tracking pull.

        The order status is overwritten only when the provider status maps
        onto the canonical vocabulary. Events already in the history are not
        appended again. Returns the number of newly recorded events.
        """
        previous = self.status
        now = datetime.now(UTC)

        known = {_event_key(e.status, e.message, e.location, e.event_at) for e in self.tracking_events or []}
        added = 0
        for event in events:
            key = _event_key(event.status, event.message, event.location, event.event_at)
            if key in known:
                continue
            known.add(key)
            self.add_tracking_events(
                TrackingEvent(
                    status=event.status,
                    message=event.message,
                    location=event.location,
                    event_at=event.event_at,
                )
            )
            added += 1

        if mapped_status:
            self.order_status = OrderStatus(mapped_status).value

        delivered_now = (
            mapped_status == OrderStatus.DELIVERED.value and not (self.shipment and self.shipment.delivered_at)
        )
        self._with_shipment(
            status=provider_status,
            tracking_url=tracking_url,
            etd=etd,
            delivered_at=now if delivered_now else None,
            last_synced_at=now,
        )
        self.updated_at = now

        self.raise_(
            TrackingSynced(
                order_id=str(self.id),
                provider_status=provider_status,
                previous_status=previous.value,
                order_status=self.order_status,
                new_events=added,
                synced_at=now,
            )
        )
        return added

    def set_status(self, status):
        """Manually set the status (only while no shipping provider drives it)."""
        try:
            target = OrderStatus(status)
        except ValueError:
            raise ValidationError({"order_status": [f"Unknown order status {status}"]}) from None

        previous = self.status
        now = datetime.now(UTC)
        self.order_status = target.value
        self.updated_at = now
        self.raise_(
            OrderStatusSet(
                order_id=str(self.id),
                previous_status=previous.value,
                order_status=target.value,
                set_at=now,
            )
        )
