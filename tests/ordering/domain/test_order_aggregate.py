"""Tests for the Order aggregate: payment, cancellation, returns and shipping."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from fulfillment.carrier.port import Package, RateQuote, ShipmentResult, TrackingUpdate
from ordering.order.events import (
    OrderCancelled,
    OrderPlaced,
    PaymentVerificationFailed,
    PaymentVerified,
    ReturnInitiated,
    ShippingChargeReconciled,
    TrackingSynced,
)
from ordering.order.order import Order, OrderStatus, PaymentStatus, ReturnStatus
from ordering.order.pricing import price_items
from protean import atomic_change
from protean.exceptions import ValidationError

ADDRESS = {
    "name": "Asha Rao",
    "phone": "9876543210",
    "address_line1": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
}


def _make_order(payment_method="cod", unit_price=500.0, quantity=2):
    return Order.create(
        order_number="MT17000000000000001",
        customer_id="cust-001",
        items_data=[
            {
                "product_id": "prod-001",
                "name": "Linen Shirt",
                "size": "M",
                "color": "Blue",
                "quantity": quantity,
                "price": unit_price,
                "image": "blue-1.jpg",
            }
        ],
        shipping_address=ADDRESS,
        payment_method=payment_method,
        pricing=price_items([(unit_price, quantity)]),
    )


def _quote(charge=72.5, etd=None):
    return RateQuote(
        provider="shiprocket",
        courier_company_id=10,
        courier_name="Delhivery Surface",
        charge=charge,
        freight_charge=60.0,
        cod_charge=10.0,
        fuel_surcharge=2.5,
        total_charge=charge,
        estimated_days=3,
        etd=etd,
        raw={"courier_company_id": 10, "courier_name": "Delhivery Surface"},
    )


def _shipped_order():
    order = _make_order()
    order.attach_shipment(
        ShipmentResult(provider="shiprocket", external_order_id="ext-1", shipment_id="shp-1", awb="AWB123"),
        mapped_status="processing",
    )
    order._events.clear()
    return order


class TestOrderCreation:
    def test_starts_pending(self):
        order = _make_order()
        assert order.order_status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PENDING.value
        assert order.return_status == ReturnStatus.NONE.value
        assert order.shipping_reconciled is False

    def test_totals_from_pricing(self):
        order = _make_order()
        assert order.subtotal == 1000.0
        assert order.tax == 180.0
        assert order.shipping == 50
        assert order.total == 1230.0

    def test_items_are_snapshots(self):
        order = _make_order()
        item = order.items[0]
        assert item.name == "Linen Shirt"
        assert item.price == 500.0
        assert item.image == "blue-1.jpg"

    def test_total_must_reconcile(self):
        order = _make_order()
        with pytest.raises(ValidationError) as exc:
            with atomic_change(order):
                order.total = 10.0
        assert "total" in exc.value.messages

    def test_mark_placed_raises_order_placed(self):
        order = _make_order(payment_method="razorpay")
        order.attach_payment_intent("order_abc")
        order.mark_placed()
        event = order._events[-1]
        assert isinstance(event, OrderPlaced)
        assert event.gateway_order_id == "order_abc"
        assert json.loads(event.items)[0]["quantity"] == 2

    def test_ownership(self):
        order = _make_order()
        assert order.is_owned_by("cust-001")
        assert not order.is_owned_by("cust-002")

    def test_online_payment_methods(self):
        assert _make_order(payment_method="upi").uses_online_payment
        assert not _make_order(payment_method="cod").uses_online_payment


class TestPaymentVerification:
    def test_verified_payment_completes(self):
        order = _make_order(payment_method="upi")
        order.attach_payment_intent("order_abc")
        order.record_payment_verification("pay_1", "sig", verified=True)
        assert order.payment_status == PaymentStatus.COMPLETED.value
        assert order.payment_method == "razorpay"
        assert order.gateway_payment_id == "pay_1"
        assert isinstance(order._events[-1], PaymentVerified)

    def test_failed_verification(self):
        order = _make_order(payment_method="card")
        order.attach_payment_intent("order_abc")
        order.record_payment_verification("pay_1", "bad", verified=False)
        assert order.payment_status == PaymentStatus.FAILED.value
        assert order.gateway_payment_id is None
        assert isinstance(order._events[-1], PaymentVerificationFailed)


class TestCancellation:
    def test_customer_cancels_pending_order(self):
        order = _make_order()
        order.cancel()
        assert order.order_status == OrderStatus.CANCELLED.value
        assert order.cancelled_by_user is True
        assert order.cancel_reason == "Cancelled by customer"
        assert order.cancelled_at is not None

    def test_raises_order_cancelled(self):
        order = _make_order()
        order.cancel(reason="Changed my mind")
        event = order._events[-1]
        assert isinstance(event, OrderCancelled)
        assert event.previous_status == "pending"
        assert event.reason == "Changed my mind"

    @pytest.mark.parametrize("status", ["in_transit", "out_for_delivery", "delivered", "cancelled", "returned"])
    def test_customer_cannot_cancel_late_states(self, status):
        order = _make_order()
        order.set_status(status)
        with pytest.raises(ValidationError):
            order.cancel()
        assert order.order_status == status

    def test_admin_cancels_delivered_order(self):
        order = _make_order()
        order.set_status("delivered")
        order.cancel(by_admin=True)
        assert order.order_status == OrderStatus.CANCELLED.value
        assert order.cancelled_by_user is False
        assert order.cancel_reason == "Cancelled by admin"

    def test_completed_online_payment_is_flagged_refunded(self):
        order = _make_order(payment_method="razorpay")
        order.attach_payment_intent("order_abc")
        order.record_payment_verification("pay_1", "sig", verified=True)
        order.cancel()
        assert order.payment_status == PaymentStatus.REFUNDED.value
        assert order._events[-1].payment_refunded is True

    def test_pending_payment_is_not_refunded(self):
        order = _make_order(payment_method="razorpay")
        order.cancel()
        assert order.payment_status == PaymentStatus.PENDING.value

    def test_cod_payment_is_never_refunded(self):
        order = _make_order(payment_method="cod")
        order.payment_status = PaymentStatus.COMPLETED.value
        order.cancel(by_admin=True)
        assert order.payment_status == PaymentStatus.COMPLETED.value

    def test_cancelled_shipment_is_recorded(self):
        order = _shipped_order()
        order.cancel(shipment_cancelled=True)
        assert order.shipment.status == "cancelled"
        assert order.shipment.awb == "AWB123"


class TestReturns:
    def test_delivered_order_can_be_returned(self):
        order = _make_order()
        order.set_status("delivered")
        order.initiate_return(reason="Too small")
        assert order.return_status == ReturnStatus.RETURN_INITIATED.value
        assert order.return_reason == "Too small"
        assert order.return_requested_at is not None
        assert isinstance(order._events[-1], ReturnInitiated)

    def test_return_records_reverse_pickup(self):
        order = _shipped_order()
        order.set_status("delivered")
        order.initiate_return(return_shipment_id="ret-1", return_awb="RAWB1", return_tracking_url="https://t/RAWB1")
        assert order.shipment.return_awb == "RAWB1"
        assert order.shipment.awb == "AWB123"

    def test_undelivered_order_cannot_be_returned(self):
        order = _make_order()
        with pytest.raises(ValidationError) as exc:
            order.initiate_return()
        assert exc.value.messages["order_status"] == ["Only delivered orders can be returned"]

    def test_second_return_is_rejected(self):
        order = _make_order()
        order.set_status("delivered")
        order.initiate_return()
        with pytest.raises(ValidationError):
            order.initiate_return()


class TestShippingReconciliation:
    def test_replaces_provisional_shipping(self):
        order = _make_order()
        assert order.reconcile_shipping(_quote(charge=72.5)) is True
        assert order.shipping == 72.5
        assert order.total == 1252.5
        assert order.shipping_reconciled is True
        assert order.shipment.courier_name == "Delhivery Surface"
        assert json.loads(order.shipment.rate_response)["courier_company_id"] == 10

    def test_applies_at_most_once(self):
        order = _make_order()
        order.reconcile_shipping(_quote(charge=72.5))
        assert order.reconcile_shipping(_quote(charge=99.0)) is False
        assert order.shipping == 72.5
        assert order.total == 1252.5

    def test_sets_estimated_delivery(self):
        etd = datetime.now(UTC) + timedelta(days=3)
        order = _make_order()
        order.reconcile_shipping(_quote(etd=etd))
        assert order.estimated_delivery_at == etd

    def test_records_package(self):
        order = _make_order()
        order.reconcile_shipping(_quote(), Package(weight=1.0, length=30.0, breadth=20.0, height=5.0))
        assert order.shipment.weight == 1.0
        assert order.shipment.length == 30.0

    def test_raises_shipping_charge_reconciled(self):
        order = _make_order()
        order.reconcile_shipping(_quote(charge=72.5))
        event = order._events[-1]
        assert isinstance(event, ShippingChargeReconciled)
        assert event.previous_shipping == 50
        assert event.total == 1252.5


class TestShipmentAttachment:
    def test_attach_sets_identifiers_and_status(self):
        order = _shipped_order()
        assert order.shipment.awb == "AWB123"
        assert order.shipment.shipment_id == "shp-1"
        assert order.order_status == OrderStatus.PROCESSING.value

    def test_attach_keeps_reconciled_charges(self):
        order = _make_order()
        order.reconcile_shipping(_quote(charge=72.5))
        order.attach_shipment(ShipmentResult(provider="shiprocket", awb="AWB9"), mapped_status=None)
        assert order.shipment.charge == 72.5
        assert order.shipment.awb == "AWB9"
        assert order.order_status == OrderStatus.PENDING.value

    def test_attach_after_cancellation_keeps_status(self):
        order = _make_order()
        order.cancel()

        order.attach_shipment(
            ShipmentResult(provider="shiprocket", external_order_id="ext-1", awb="AWB123", status="NEW"),
            mapped_status="processing",
        )

        assert order.order_status == OrderStatus.CANCELLED.value
        assert order.shipment.awb == "AWB123"
        assert order.shipment.status == "NEW"

    def test_withdrawn_shipment_is_marked_cancelled(self):
        order = _shipped_order()
        order.cancel()

        order.record_shipment_cancelled()

        assert order.shipment.status == "cancelled"
        assert order.shipment.awb == "AWB123"
        assert order.order_status == OrderStatus.CANCELLED.value

    def test_cancellable_shipment(self):
        order = _shipped_order()
        assert order.has_cancellable_shipment()
        order.set_status("delivered")
        assert not order.has_cancellable_shipment()


class TestTrackingSync:
    def _events(self):
        return [
            TrackingUpdate(
                status="Picked Up",
                message="Shipment picked up",
                location="Mumbai",
                event_at=datetime(2026, 3, 1, 10, 0, tzinfo=UTC),
            ),
            TrackingUpdate(
                status="In Transit",
                message="Reached hub",
                location="Pune",
                event_at=datetime(2026, 3, 2, 8, 30, tzinfo=UTC),
            ),
        ]

    def test_records_events_and_status(self):
        order = _shipped_order()
        added = order.record_tracking("In Transit", "in_transit", self._events())
        assert added == 2
        assert len(order.tracking_events) == 2
        assert order.order_status == OrderStatus.IN_TRANSIT.value
        assert order.shipment.status == "In Transit"
        assert order.shipment.last_synced_at is not None

    def test_repeated_pull_adds_nothing(self):
        order = _shipped_order()
        order.record_tracking("In Transit", "in_transit", self._events())
        assert order.record_tracking("In Transit", "in_transit", self._events()) == 0
        assert len(order.tracking_events) == 2

    def test_naive_timestamps_match_utc(self):
        order = _shipped_order()
        order.record_tracking("In Transit", "in_transit", self._events())
        naive = TrackingUpdate(
            status="Picked Up",
            message="Shipment picked up",
            location="Mumbai",
            event_at=datetime(2026, 3, 1, 10, 0, 0, 450000),
        )
        assert order.record_tracking("In Transit", "in_transit", [naive]) == 0

    def test_unmapped_status_keeps_order_status(self):
        order = _shipped_order()
        order.record_tracking("weird_custom_code", None, [])
        assert order.order_status == OrderStatus.PROCESSING.value
        assert order.shipment.status == "weird_custom_code"

    def test_delivery_is_stamped_once(self):
        order = _shipped_order()
        order.record_tracking("Delivered", "delivered", [])
        first = order.shipment.delivered_at
        assert first is not None
        order.record_tracking("Delivered", "delivered", [])
        assert order.shipment.delivered_at == first

    def test_raises_tracking_synced(self):
        order = _shipped_order()
        order.record_tracking("In Transit", "in_transit", self._events())
        event = order._events[-1]
        assert isinstance(event, TrackingSynced)
        assert event.previous_status == "processing"
        assert event.new_events == 2


class TestManualStatus:
    def test_sets_known_status(self):
        order = _make_order()
        order.set_status("confirmed")
        assert order.order_status == OrderStatus.CONFIRMED.value

    def test_rejects_unknown_status(self):
        order = _make_order()
        with pytest.raises(ValidationError):
            order.set_status("teleported")
        assert order.order_status == OrderStatus.PENDING.value
