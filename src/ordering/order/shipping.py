"""Shipment lifecycle: commands and handler.

The shipping provider adapter only talks to the carrier. Whatever it learns
(a rate quote, a booked shipment, a tracking pull) is written back to the
order through the commands in this module, one Unit of Work each.
"""

import json

from protean import handle
from protean.fields import DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from fulfillment.carrier.port import Package, RateQuote, ShipmentResult, TrackingUpdate, parse_datetime
from fulfillment.carrier.statuses import normalize_status
from ordering.domain import ordering
from ordering.order.order import Order


@ordering.command(part_of="Order")
class ReconcileShippingCharge:
    order_id = Identifier(required=True)
    provider = String(max_length=50)
    courier_company_id = Integer()
    courier_name = String(max_length=255)
    charge = Float(required=True, min_value=0.0)
    freight_charge = Float(default=0.0)
    cod_charge = Float(default=0.0)
    fuel_surcharge = Float(default=0.0)
    total_charge = Float(default=0.0)
    etd = DateTime()
    rate_response = Text()  # JSON
    weight = Float()
    length = Float()
    breadth = Float()
    height = Float()


@ordering.command(part_of="Order")
class AttachShipment:
    order_id = Identifier(required=True)
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


@ordering.command(part_of="Order")
class RecordShipmentCancelled:
    order_id = Identifier(required=True)


@ordering.command(part_of="Order")
class RecordTrackingSync:
    order_id = Identifier(required=True)
    provider_status = String(max_length=255)
    events = Text()  # JSON: list of {status, message, location, event_at}
    track_url = String(max_length=1000)
    edd = DateTime()


@ordering.command(part_of="Order")
class SetOrderStatus:
    order_id = Identifier(required=True)
    order_status = String(required=True, max_length=30)


def reconcile_command(order_id, quote, package=None):
    return ReconcileShippingCharge(
        order_id=order_id,
        provider=quote.provider,
        courier_company_id=quote.courier_company_id,
        courier_name=quote.courier_name,
        charge=quote.charge,
        freight_charge=quote.freight_charge,
        cod_charge=quote.cod_charge,
        fuel_surcharge=quote.fuel_surcharge,
        total_charge=quote.total_charge,
        etd=quote.etd,
        rate_response=json.dumps(quote.raw, default=str) if quote.raw else None,
        weight=package.weight if package else None,
        length=package.length if package else None,
        breadth=package.breadth if package else None,
        height=package.height if package else None,
    )


def attach_command(order_id, shipment):
    return AttachShipment(
        order_id=order_id,
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
        status=shipment.status,
        pickup_scheduled_at=shipment.pickup_scheduled_at,
    )


def tracking_command(order_id, snapshot):
    events = [
        {
            "status": event.status,
            "message": event.message,
            "location": event.location,
            "event_at": event.event_at.isoformat() if event.event_at else None,
        }
        for event in snapshot.events
    ]
    return RecordTrackingSync(
        order_id=order_id,
        provider_status=snapshot.status,
        events=json.dumps(events),
        track_url=snapshot.track_url,
        edd=snapshot.edd,
    )


@ordering.command_handler(part_of=Order)
class ShipmentHandler:
    @handle(ReconcileShippingCharge)
    def reconcile_shipping_charge(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        quote = RateQuote(
            provider=command.provider,
            courier_company_id=command.courier_company_id,
            courier_name=command.courier_name,
            charge=command.charge,
            freight_charge=command.freight_charge or 0.0,
            cod_charge=command.cod_charge or 0.0,
            fuel_surcharge=command.fuel_surcharge or 0.0,
            total_charge=command.total_charge or command.charge,
            etd=command.etd,
            raw=json.loads(command.rate_response) if command.rate_response else {},
        )
        package = None
        if command.weight:
            package = Package(
                weight=command.weight,
                length=command.length,
                breadth=command.breadth,
                height=command.height,
            )

        if order.reconcile_shipping(quote, package):
            repo.add(order)
            return True
        return False

    @handle(AttachShipment)
    def attach_shipment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        shipment = ShipmentResult(
            provider=command.provider,
            external_order_id=command.external_order_id,
            shipment_id=command.shipment_id,
            courier_company_id=command.courier_company_id,
            courier_name=command.courier_name,
            awb=command.awb,
            tracking_url=command.tracking_url,
            label_url=command.label_url,
            invoice_url=command.invoice_url,
            manifest_url=command.manifest_url,
            status=command.status,
            pickup_scheduled_at=command.pickup_scheduled_at,
        )
        order.attach_shipment(shipment, mapped_status=normalize_status(command.status))
        repo.add(order)

    @handle(RecordShipmentCancelled)
    def record_shipment_cancelled(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_shipment_cancelled()
        repo.add(order)

    @handle(RecordTrackingSync)
    def record_tracking_sync(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        events = [
            TrackingUpdate(
                status=event.get("status"),
                message=event.get("message"),
                location=event.get("location"),
                event_at=parse_datetime(event.get("event_at")),
            )
            for event in (json.loads(command.events) if command.events else [])
        ]
        added = order.record_tracking(
            provider_status=command.provider_status,
            mapped_status=normalize_status(command.provider_status),
            events=events,
            tracking_url=command.track_url,
            etd=command.edd,
        )
        repo.add(order)
        return added

    @handle(SetOrderStatus)
    def set_order_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.set_status(command.order_status)
        repo.add(order)
