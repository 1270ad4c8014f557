"""Shipping provider port: abstract interface for the carrier integration.

The order lifecycle programs against this port; the concrete adapter
(ShiprocketProvider in production, FakeShippingProvider in tests and dev) is
constructed once at process start and injected.

Adapters never touch aggregates. They return plain result objects and the
ordering domain applies them through its own commands.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime


@dataclass(frozen=True)
class Package:
    """Packed weight (kg) and dimensions (cm) of a whole order."""

    weight: float
    length: float
    breadth: float
    height: float


@dataclass(frozen=True)
class RateQuote:
    """The carrier chosen for an order and what it charges."""

    provider: str
    courier_company_id: int
    courier_name: str | None
    charge: float
    freight_charge: float
    cod_charge: float
    fuel_surcharge: float
    total_charge: float
    estimated_days: float | None = None
    etd: datetime | None = None
    raw: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ShipmentResult:
    """Identifiers the carrier assigned to a forward shipment."""

    provider: str
    external_order_id: str | None = None
    shipment_id: str | None = None
    courier_company_id: int | None = None
    courier_name: str | None = None
    awb: str | None = None
    tracking_url: str | None = None
    label_url: str | None = None
    invoice_url: str | None = None
    manifest_url: str | None = None
    status: str | None = None
    pickup_scheduled_at: datetime | None = None


@dataclass(frozen=True)
class ReturnShipmentResult:
    return_shipment_id: str | None = None
    return_awb: str | None = None
    return_tracking_url: str | None = None


@dataclass(frozen=True)
class TrackingUpdate:
    status: str | None = None
    message: str | None = None
    location: str | None = None
    event_at: datetime | None = None


@dataclass(frozen=True)
class TrackingSnapshot:
    """Latest status and scan history reported for an awb."""

    status: str | None
    events: tuple[TrackingUpdate, ...] = ()
    track_url: str | None = None
    edd: datetime | None = None


def parse_datetime(value):
    """Parse a provider timestamp; naive values are taken as UTC. Unparseable values give None."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip())
        except ValueError:
            return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class ShippingProvider(ABC):
    """Abstract shipping provider interface."""

    @property
    @abstractmethod
    def enabled(self) -> bool:
        """Whether the provider is configured; disabled providers make no calls."""
        ...

    @abstractmethod
    async def quote(
        self,
        destination_pincode: str,
        cod: bool = False,
        order_amount: float = 0.0,
        weight: float | None = None,
        dimensions: dict | None = None,
    ) -> RateQuote | None:
        """Quote the fastest serviceable carrier. None when disabled or nothing serves the pincode."""
        ...

    @abstractmethod
    async def create_shipment(self, order, package: Package, quote: RateQuote | None = None) -> ShipmentResult | None:
        """Book a forward shipment for an order. None when disabled."""
        ...

    @abstractmethod
    async def cancel_shipment(self, order) -> bool:
        """Cancel the order's forward shipment. False when there is nothing to cancel."""
        ...

    @abstractmethod
    async def create_return_shipment(self, order, package: Package, reason: str | None = None) -> ReturnShipmentResult:
        """Book a reverse pickup from the customer's address."""
        ...

    @abstractmethod
    async def fetch_tracking(self, awb: str) -> TrackingSnapshot | None:
        """Pull the current tracking state for an awb. None when disabled or unknown."""
        ...

    @abstractmethod
    def normalize_status(self, status: str | None) -> str | None:
        """Map a provider status onto the order status vocabulary, or None."""
        ...

    async def aclose(self) -> None:  # noqa: B027
        """Release any network resources held by the adapter."""
