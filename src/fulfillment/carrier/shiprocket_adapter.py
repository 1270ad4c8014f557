"""Shiprocket shipping provider adapter.

Talks to the Shiprocket external API over ``httpx.AsyncClient``. One instance
is created at process start and owns the bearer token and its expiry; the
token is reused until less than a minute of validity remains.

Every call carries a fixed timeout. A 401 from the API forces exactly one
re-authentication and retry. Any other failure surfaces as
``ShippingProviderError``.
"""

import time
from datetime import UTC, datetime, timedelta

import httpx
import structlog
from protean.exceptions import ValidationError

from fulfillment.carrier.config import ShippingConfig
from fulfillment.carrier.payload import MIN_WEIGHT_KG, build_shipment_payload
from fulfillment.carrier.port import (
    Package,
    RateQuote,
    ReturnShipmentResult,
    ShipmentResult,
    ShippingProvider,
    TrackingSnapshot,
    TrackingUpdate,
    parse_datetime,
)
from fulfillment.carrier.statuses import normalize_status
from ordering.errors import ShippingProviderError

logger = structlog.get_logger(__name__)

PROVIDER_NAME = "shiprocket"
TOKEN_REFRESH_MARGIN = 60  # seconds
DEFAULT_TOKEN_TTL = 10 * 60  # seconds
UNKNOWN_DELIVERY_DAYS = 99


def tracking_url_for(awb):
    return f"https://shiprocket.co/tracking/{awb}" if awb else None


def _text(value):
    return str(value) if value not in (None, "") else None


def _number(value, default=0.0):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _integer(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _positive(value, default):
    number = _number(value, 0.0)
    return number if number > 0 else default


def _response_data(body):
    if isinstance(body, dict) and isinstance(body.get("data"), dict):
        return body["data"]
    return body if isinstance(body, dict) else {}


class ShiprocketProvider(ShippingProvider):
    """Shiprocket adapter.

    Args:
        config: Credentials, pickup details and package defaults.
        transport: Optional httpx transport (tests pass an ``httpx.MockTransport``).
        clock: Returns the current epoch time in seconds; used for token expiry
               and delivery estimates.
    """

    def __init__(self, config: ShippingConfig, transport: httpx.AsyncBaseTransport | None = None, clock=time.time):
        self.config = config
        self._clock = clock
        self._token: str | None = None
        self._token_expires_at: float = 0.0
        self._client = httpx.AsyncClient(
            base_url=config.api_url,
            timeout=httpx.Timeout(config.timeout),
            transport=transport,
        )

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def _now(self):
        return datetime.fromtimestamp(self._clock(), UTC)

    def normalize_status(self, status):
        return normalize_status(status)

    async def aclose(self):
        await self._client.aclose()

    # -------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------
    async def authenticate(self, force=False):
        if not self.enabled:
            raise ShippingProviderError("Shiprocket credentials are not configured")

        now = self._clock()
        if not force and self._token and self._token_expires_at > now + TOKEN_REFRESH_MARGIN:
            return self._token

        try:
            response = await self._client.post(
                "/auth/login",
                json={"email": self.config.email, "password": self.config.password},
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("shiprocket_auth_failed", error=str(exc))
            raise ShippingProviderError(f"Shiprocket authentication failed: {exc}") from exc

        token = body.get("token") if isinstance(body, dict) else None
        if not token:
            raise ShippingProviderError("Shiprocket authentication returned no token")

        expires_in = _number(body.get("expires_in"), 0.0)
        self._token = token
        self._token_expires_at = now + (expires_in or DEFAULT_TOKEN_TTL)
        logger.info("shiprocket_authenticated", forced=force)
        return token

    async def _request(self, method, url, *, params=None, json=None, retried=False):
        token = await self.authenticate(force=retried)
        try:
            response = await self._client.request(
                method,
                url,
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            logger.error("shiprocket_request_failed", method=method, url=url, error=str(exc))
            raise ShippingProviderError(f"Shiprocket {method} {url} failed: {exc}") from exc

        if response.status_code == 401 and not retried:
            logger.info("shiprocket_token_rejected", method=method, url=url)
            return await self._request(method, url, params=params, json=json, retried=True)

        if response.is_error:
            logger.error("shiprocket_request_rejected", method=method, url=url, status=response.status_code)
            raise ShippingProviderError(f"Shiprocket {method} {url} failed with status {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise ShippingProviderError(f"Shiprocket {method} {url} returned invalid JSON") from exc

    # -------------------------------------------------------------------
    # Rate quotes
    # -------------------------------------------------------------------
    async def quote(self, destination_pincode, cod=False, order_amount=0.0, weight=None, dimensions=None):
        if not self.enabled:
            return None
        if not destination_pincode:
            raise ValidationError({"pincode": ["Destination pincode is required for rate quote"]})

        dimensions = dimensions or {}
        safe_weight = max(_positive(weight, self.config.default_weight), MIN_WEIGHT_KG)
        params = {
            "pickup_postcode": self.config.pickup_pincode,
            "delivery_postcode": destination_pincode,
            "cod": 1 if cod else 0,
            "weight": safe_weight,
            "order_type": "COD" if cod else "prepaid",
            "mode": self.config.default_mode,
            "order_amount": order_amount or safe_weight * 100,
            "length": _positive(dimensions.get("length"), self.config.default_length),
            "breadth": _positive(dimensions.get("breadth"), self.config.default_breadth),
            "height": _positive(dimensions.get("height"), self.config.default_height),
        }

        body = await self._request("GET", "/courier/serviceability/", params=params)
        companies = _response_data(body).get("available_courier_companies") or []
        candidates = [company for company in companies if company.get("courier_company_id")]
        if not candidates:
            logger.info("shiprocket_no_serviceable_courier", pincode=destination_pincode)
            return None

        def charges(company):
            freight = _number(company.get("freight_charge") or company.get("rate"))
            cod_charge = _number(company.get("cod_charges"))
            fuel = _number(company.get("fuel_surcharge"))
            return freight, cod_charge, fuel

        def delivery_days(company):
            return _number(company.get("estimated_delivery_days") or company.get("etd"), UNKNOWN_DELIVERY_DAYS)

        chosen = min(candidates, key=lambda company: (delivery_days(company), sum(charges(company))))
        freight, cod_charge, fuel = charges(chosen)
        charge = round(freight + cod_charge + fuel, 2)

        days = delivery_days(chosen)
        estimated_days = days if days != UNKNOWN_DELIVERY_DAYS else None
        etd = self._now() + timedelta(days=estimated_days) if estimated_days is not None else None

        return RateQuote(
            provider=PROVIDER_NAME,
            courier_company_id=_integer(chosen.get("courier_company_id")),
            courier_name=chosen.get("courier_name"),
            charge=charge,
            freight_charge=freight,
            cod_charge=cod_charge,
            fuel_surcharge=fuel,
            total_charge=_number(chosen.get("total_amount"), charge) or charge,
            estimated_days=estimated_days,
            etd=etd,
            raw=chosen,
        )

    # -------------------------------------------------------------------
    # Shipments
    # -------------------------------------------------------------------
    async def create_shipment(self, order, package: Package, quote: RateQuote | None = None):
        if not self.enabled:
            return None

        payload = build_shipment_payload(order, package, self.config, quote=quote, now=self._now())
        data = _response_data(await self._request("POST", "/orders/create/adhoc", json=payload))

        awb = _text(data.get("awb_code") or data.get("awb"))
        logger.info("shiprocket_shipment_created", order_number=order.order_number, awb=awb)
        return ShipmentResult(
            provider=PROVIDER_NAME,
            external_order_id=_text(data.get("order_id") or data.get("order_code")),
            shipment_id=_text(data.get("shipment_id")),
            courier_company_id=quote.courier_company_id if quote else _integer(data.get("courier_company_id")),
            courier_name=(quote.courier_name if quote else None) or data.get("courier_name"),
            awb=awb,
            tracking_url=data.get("tracking_url") or tracking_url_for(awb),
            label_url=data.get("label_url"),
            invoice_url=data.get("invoice_url"),
            manifest_url=data.get("manifest_url"),
            status=_text(data.get("status")),
            pickup_scheduled_at=parse_datetime(data.get("pickup_scheduled_date")),
        )

    async def cancel_shipment(self, order):
        if not self.enabled:
            return False
        shipment = order.shipment
        external_id = shipment.external_order_id or shipment.shipment_id if shipment else None
        if not external_id:
            return False

        await self._request("POST", "/orders/cancel", json={"ids": [external_id]})
        logger.info("shiprocket_shipment_cancelled", order_number=order.order_number, external_id=external_id)
        return True

    async def create_return_shipment(self, order, package: Package, reason=None):
        if not self.enabled:
            raise ShippingProviderError("Return shipments require Shiprocket configuration")

        payload = build_shipment_payload(order, package, self.config, is_return=True, reason=reason, now=self._now())
        data = _response_data(await self._request("POST", "/orders/create/adhoc", json=payload))

        awb = _text(data.get("awb_code") or data.get("awb"))
        logger.info("shiprocket_return_created", order_number=order.order_number, awb=awb)
        return ReturnShipmentResult(
            return_shipment_id=_text(data.get("shipment_id")),
            return_awb=awb,
            return_tracking_url=data.get("tracking_url") or tracking_url_for(awb),
        )

    # -------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------
    async def fetch_tracking(self, awb):
        if not self.enabled or not awb:
            return None

        body = await self._request("GET", f"/courier/track/awb/{awb}")
        tracking = body.get("tracking_data") if isinstance(body, dict) else None
        if not tracking:
            return None

        events = tuple(
            TrackingUpdate(
                status=_text(event.get("current_status") or event.get("status")),
                message=event.get("remarks") or event.get("remark"),
                location=event.get("current_city") or event.get("location"),
                event_at=parse_datetime(event.get("date") or event.get("event_date")),
            )
            for event in tracking.get("shipment_track") or []
        )

        return TrackingSnapshot(
            status=_text(tracking.get("current_status") or tracking.get("status")),
            events=events,
            track_url=tracking.get("track_url") or tracking.get("url"),
            edd=parse_datetime(tracking.get("edd")),
        )
