"""Order lifecycle: application service over the order commands.

``OrderLifecycle`` sequences the transactional order commands with the calls
to the shipping provider that must happen outside any Unit of Work:

    place_order   PlaceOrder, then (best-effort) quote → ReconcileShippingCharge
                  and create shipment → AttachShipment
                  (a booking that lands after a cancellation is withdrawn
                  again → RecordShipmentCancelled)
    cancel        (best-effort) cancel carrier shipment, then CancelOrder
    initiate_return
                  reverse pickup (required when the provider is enabled),
                  then InitiateReturn
    sync_tracking fetch tracking → RecordTrackingSync

Best-effort steps go through ``attempt()``: a failure is logged and returned
as an ``Outcome`` and never undoes the committed order.
"""

import inspect
import json
from dataclasses import dataclass
from typing import Any

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from fulfillment.carrier.config import ShippingConfig
from fulfillment.carrier.payload import build_package
from fulfillment.carrier.port import ShippingProvider
from ordering.errors import AccessDenied
from ordering.inventory.product import Product
from ordering.order.cancellation import CancelOrder
from ordering.order.creation import PlaceOrder
from ordering.order.order import TERMINAL_STATES, Order, OrderStatus
from ordering.order.payment import VerifyPayment
from ordering.order.pricing import provisional_shipping
from ordering.order.returns import InitiateReturn
from ordering.order.shipping import (
    RecordShipmentCancelled,
    SetOrderStatus,
    attach_command,
    reconcile_command,
    tracking_command,
)

logger = structlog.get_logger(__name__)

PAGE_SIZE = 100


@dataclass(frozen=True)
class Outcome:
    """Result of a best-effort step: either a value or the error it failed with."""

    value: Any = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def attempt(operation, call, **context):
    """Run ``call`` (sync or async) and capture any failure instead of raising it."""
    try:
        result = call()
        if inspect.isawaitable(result):
            result = await result
    except Exception as exc:
        logger.warning(f"{operation}_failed", error=str(exc), error_type=type(exc).__name__, **context)
        return Outcome(error=exc)
    return Outcome(value=result)


class OrderLifecycle:
    def __init__(self, provider: ShippingProvider, shipping_config: ShippingConfig | None = None):
        self.provider = provider
        self.shipping_config = shipping_config or ShippingConfig.from_env()

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def load(self, order_id) -> Order:
        return current_domain.repository_for(Order).get(order_id)

    def load_for(self, order_id, user_id, is_admin=False) -> Order:
        order = self.load(order_id)
        if not is_admin and not order.is_owned_by(user_id):
            raise AccessDenied("Access denied")
        return order

    def list_orders(self, customer_id=None, limit=PAGE_SIZE, offset=0):
        """Orders newest first, optionally only those of one customer."""
        query = current_domain.repository_for(Order)._dao.query
        if customer_id is not None:
            query = query.filter(customer_id=str(customer_id))
        return query.order_by("-created_at").offset(offset).limit(limit).all().items

    def package_for(self, items):
        """Parcel for ``(product_id, quantity)`` pairs, from each product's shipping profile."""
        product_repo = current_domain.repository_for(Product)
        lines = []
        for product_id, quantity in items:
            try:
                profile = product_repo.get(product_id).shipping_profile
            except ObjectNotFoundError:
                profile = None
            lines.append((profile, quantity))
        return build_package(lines, self.shipping_config)

    def _order_package(self, order):
        return self.package_for([(item.product_id, item.quantity) for item in order.items])

    # -------------------------------------------------------------------
    # Placement
    # -------------------------------------------------------------------
    async def place_order(self, customer_id, items, shipping_address, payment_method):
        order_id = current_domain.process(
            PlaceOrder(
                customer_id=customer_id,
                items=json.dumps(items),
                shipping_address=json.dumps(shipping_address),
                payment_method=payment_method,
            ),
            asynchronous=False,
        )
        await self._arrange_shipping(order_id)
        return self.load(order_id)

    async def _arrange_shipping(self, order_id):
        if not self.provider.enabled:
            return

        order = self.load(order_id)
        context = {"order_number": order.order_number}
        package = self._order_package(order)

        quoted = await attempt(
            "shipping_quote",
            lambda: self.provider.quote(
                order.shipping_address.pincode,
                cod=order.is_cash_on_delivery,
                order_amount=order.total,
                weight=package.weight,
                dimensions={"length": package.length, "breadth": package.breadth, "height": package.height},
            ),
            **context,
        )
        quote = quoted.value
        order = self.load(order_id)
        if order.status == OrderStatus.CANCELLED:
            logger.info("shipping_skipped_for_cancelled_order", **context)
            return
        if quote is not None:
            await attempt(
                "shipping_reconciliation",
                lambda: current_domain.process(reconcile_command(order_id, quote, package), asynchronous=False),
                **context,
            )
            order = self.load(order_id)

        booked = await attempt("shipment_creation", lambda: self.provider.create_shipment(order, package, quote), **context)
        if booked.value is None:
            return
        await attempt(
            "shipment_attachment",
            lambda: current_domain.process(attach_command(order_id, booked.value), asynchronous=False),
            **context,
        )

        # A cancellation that committed while the carrier was booking never saw the shipment
        order = self.load(order_id)
        if order.status == OrderStatus.CANCELLED and order.shipment and order.shipment.status != "cancelled":
            await self._withdraw_shipment(order, **context)

    async def _withdraw_shipment(self, order, **context):
        withdrawn = await attempt("shipment_cancellation", lambda: self.provider.cancel_shipment(order), **context)
        if withdrawn.value:
            await attempt(
                "shipment_cancellation_record",
                lambda: current_domain.process(RecordShipmentCancelled(order_id=order.id), asynchronous=False),
                **context,
            )

    async def quote(self, pincode, cod=False, order_amount=0.0, items=None):
        """Rate quote for a prospective order, falling back to the flat rate."""
        if not pincode:
            raise ValidationError({"pincode": ["Destination pincode is required for rate quote"]})

        package = self.package_for(items) if items else None
        quoted = await attempt(
            "shipping_quote",
            lambda: self.provider.quote(
                pincode,
                cod=cod,
                order_amount=order_amount,
                weight=package.weight if package else None,
                dimensions=(
                    {"length": package.length, "breadth": package.breadth, "height": package.height} if package else None
                ),
            ),
            pincode=pincode,
        )
        quote = quoted.value
        if quote is None:
            return {
                "provider": None,
                "courier_company_id": None,
                "courier_name": None,
                "charge": provisional_shipping(order_amount),
                "estimated_days": None,
                "etd": None,
                "fallback": True,
            }
        return {
            "provider": quote.provider,
            "courier_company_id": quote.courier_company_id,
            "courier_name": quote.courier_name,
            "charge": quote.charge,
            "estimated_days": quote.estimated_days,
            "etd": quote.etd,
            "fallback": False,
        }

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def verify_payment(self, order_id, user_id, gateway_payment_id, signature):
        verified = current_domain.process(
            VerifyPayment(
                order_id=order_id,
                user_id=user_id,
                gateway_payment_id=gateway_payment_id,
                signature=signature,
            ),
            asynchronous=False,
        )
        if not verified:
            raise ValidationError({"signature": ["Payment verification failed"]})
        return self.load(order_id)

    # -------------------------------------------------------------------
    # Cancellation and returns
    # -------------------------------------------------------------------
    async def cancel(self, order_id, user_id, is_admin=False, reason=None):
        order = self.load_for(order_id, user_id, is_admin)
        if not is_admin and not order.can_be_cancelled_by_customer():
            raise ValidationError({"order_status": [f"Order cannot be cancelled (status: {order.order_status})"]})

        shipment_cancelled = False
        if order.has_cancellable_shipment():
            outcome = await attempt(
                "shipment_cancellation",
                lambda: self.provider.cancel_shipment(order),
                order_number=order.order_number,
            )
            shipment_cancelled = bool(outcome.value)

        current_domain.process(
            CancelOrder(
                order_id=order_id,
                user_id=user_id,
                is_admin=is_admin,
                reason=reason,
                shipment_cancelled=shipment_cancelled,
            ),
            asynchronous=False,
        )
        logger.info("order_cancelled", order_number=order.order_number, by_admin=is_admin)
        return self.load(order_id)

    async def initiate_return(self, order_id, user_id, is_admin=False, reason=None):
        order = self.load_for(order_id, user_id, is_admin)
        order.assert_returnable()

        pickup = None
        if self.provider.enabled:
            pickup = await self.provider.create_return_shipment(order, self._order_package(order), reason)

        current_domain.process(
            InitiateReturn(
                order_id=order_id,
                user_id=user_id,
                is_admin=is_admin,
                reason=reason,
                return_shipment_id=pickup.return_shipment_id if pickup else None,
                return_awb=pickup.return_awb if pickup else None,
                return_tracking_url=pickup.return_tracking_url if pickup else None,
            ),
            asynchronous=False,
        )
        logger.info("return_initiated", order_number=order.order_number, reverse_pickup=pickup is not None)
        return self.load(order_id)

    # -------------------------------------------------------------------
    # Tracking
    # -------------------------------------------------------------------
    async def sync_tracking(self, order_id):
        """Pull carrier tracking for one order. Provider errors propagate."""
        order = self.load(order_id)
        awb = order.shipment.awb if order.shipment else None
        if not awb or not self.provider.enabled:
            return order

        snapshot = await self.provider.fetch_tracking(awb)
        if snapshot is None:
            return order

        current_domain.process(tracking_command(order_id, snapshot), asynchronous=False)
        return self.load(order_id)

    async def tracking(self, order_id, user_id, is_admin=False):
        """Best-effort sync, then the order with its shipment and history."""
        order = self.load_for(order_id, user_id, is_admin)
        await attempt("tracking_sync", lambda: self.sync_tracking(order_id), order_number=order.order_number)
        return self.load(order_id)

    async def set_status(self, order_id, order_status=None):
        """Manual status edit while the provider is disabled; a sync pull otherwise."""
        if self.provider.enabled:
            return await self.sync_tracking(order_id)
        if not order_status:
            raise ValidationError({"order_status": ["order_status is required"]})

        current_domain.process(SetOrderStatus(order_id=order_id, order_status=order_status), asynchronous=False)
        return self.load(order_id)

    def orders_in_flight(self):
        """Orders with a carrier awb whose status still expects carrier movement."""
        query = current_domain.repository_for(Order)._dao.query.order_by("created_at")
        offset = 0
        while True:
            page = query.offset(offset).limit(PAGE_SIZE).all()
            for order in page.items:
                if order.shipment and order.shipment.awb and order.status not in TERMINAL_STATES:
                    yield order
            offset += PAGE_SIZE
            if offset >= page.total:
                break

    async def sync_all(self):
        """Scheduled sync of every in-flight order; one failure does not stop the rest."""
        synced = failed = 0
        for order in list(self.orders_in_flight()):
            outcome = await attempt(
                "tracking_sync",
                lambda order_id=str(order.id): self.sync_tracking(order_id),
                order_number=order.order_number,
            )
            if outcome.ok:
                synced += 1
            else:
                failed += 1
        logger.info("tracking_sync_completed", synced=synced, failed=failed)
        return {"synced": synced, "failed": failed}
