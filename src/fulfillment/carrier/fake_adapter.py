"""Fake shipping provider: deterministic carrier for testing and development.

Generates mock shipment ids, awbs and tracking snapshots without any network
calls. Success/failure and the reported tracking status are configurable at
runtime, and every call is recorded in ``calls``.
"""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

from fulfillment.carrier.port import (
    RateQuote,
    ReturnShipmentResult,
    ShipmentResult,
    ShippingProvider,
    TrackingSnapshot,
    TrackingUpdate,
)
from fulfillment.carrier.statuses import normalize_status
from ordering.errors import ShippingProviderError


class FakeShippingProvider(ShippingProvider):
    """Fake provider that succeeds by default."""

    def __init__(self, enabled: bool = True):
        self._enabled = enabled
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
        self.quote_charge = 65.0
        self.estimated_days = 3
        self.serviceable = True
        self.shipment_status = "NEW"
        self.tracking_status = "In Transit"
        self.tracking_events: list[TrackingUpdate] = []
        self.calls: list[dict] = []

    @property
    def enabled(self) -> bool:
        return self._enabled

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Carrier unavailable",
        enabled: bool | None = None,
    ) -> None:
        """Configure the fake provider behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        if enabled is not None:
            self._enabled = enabled

    def set_tracking(self, status: str, events: list[TrackingUpdate] | None = None) -> None:
        self.tracking_status = status
        self.tracking_events = list(events or [])

    def normalize_status(self, status):
        return normalize_status(status)

    def _fail_if_configured(self):
        if not self.should_succeed:
            raise ShippingProviderError(self.failure_reason)

    async def quote(self, destination_pincode, cod=False, order_amount=0.0, weight=None, dimensions=None):
        self.calls.append({"method": "quote", "pincode": destination_pincode, "cod": cod, "weight": weight})
        if not self._enabled:
            return None
        self._fail_if_configured()
        if not self.serviceable:
            return None

        return RateQuote(
            provider="fake",
            courier_company_id=1,
            courier_name="Fake Express",
            charge=self.quote_charge,
            freight_charge=self.quote_charge,
            cod_charge=0.0,
            fuel_surcharge=0.0,
            total_charge=self.quote_charge,
            estimated_days=self.estimated_days,
            etd=datetime.now(UTC) + timedelta(days=self.estimated_days),
            raw={"courier_company_id": 1, "courier_name": "Fake Express"},
        )

    async def create_shipment(self, order, package, quote=None):
        self.calls.append({"method": "create_shipment", "order_number": order.order_number, "package": package})
        if not self._enabled:
            return None
        self._fail_if_configured()

        awb = f"FAKE{uuid4().hex[:10].upper()}"
        shipment_id = f"ship-{uuid4().hex[:8]}"
        return ShipmentResult(
            provider="fake",
            external_order_id=f"ext-{uuid4().hex[:8]}",
            shipment_id=shipment_id,
            courier_company_id=quote.courier_company_id if quote else 1,
            courier_name=quote.courier_name if quote else "Fake Express",
            awb=awb,
            tracking_url=f"https://fake-carrier.example.com/track/{awb}",
            label_url=f"https://fake-carrier.example.com/labels/{shipment_id}.pdf",
            status=self.shipment_status,
        )

    async def cancel_shipment(self, order):
        self.calls.append({"method": "cancel_shipment", "order_number": order.order_number})
        if not self._enabled or not (order.shipment and order.shipment.awb):
            return False
        self._fail_if_configured()
        return True

    async def create_return_shipment(self, order, package, reason=None):
        self.calls.append({"method": "create_return_shipment", "order_number": order.order_number, "reason": reason})
        if not self._enabled:
            raise ShippingProviderError("Return shipments require a configured shipping provider")
        self._fail_if_configured()

        awb = f"FAKERET{uuid4().hex[:8].upper()}"
        return ReturnShipmentResult(
            return_shipment_id=f"ret-{uuid4().hex[:8]}",
            return_awb=awb,
            return_tracking_url=f"https://fake-carrier.example.com/track/{awb}",
        )

    async def fetch_tracking(self, awb):
        self.calls.append({"method": "fetch_tracking", "awb": awb})
        if not self._enabled or not awb:
            return None
        self._fail_if_configured()
        return TrackingSnapshot(
            status=self.tracking_status,
            events=tuple(self.tracking_events),
            track_url=f"https://fake-carrier.example.com/track/{awb}",
        )
