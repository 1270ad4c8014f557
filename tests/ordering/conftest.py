import asyncio
import json

import pytest
from fulfillment.carrier.config import ShippingConfig
from fulfillment.carrier.fake_adapter import FakeShippingProvider
from ordering.inventory.product import Product
from ordering.order.creation import PlaceOrder
from ordering.order.lifecycle import OrderLifecycle
from payments.gateway import reset_gateway, set_gateway
from payments.gateway.fake_adapter import FakeGateway
from protean import current_domain
from protean.integrations.pytest import DomainFixture

ADDRESS = {
    "name": "Asha Rao",
    "phone": "9876543210",
    "address_line1": "12 MG Road",
    "address_line2": "Near Metro",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pincode": "560001",
}


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def gateway():
    fake = FakeGateway(key_secret="s3cr3t")
    set_gateway(fake)
    yield fake
    reset_gateway()


class StallingCarrier(FakeShippingProvider):
    """Fake carrier that yields to the event loop inside one of its calls."""

    def __init__(self, stall):
        super().__init__()
        self.stall = stall
        self.stalled = asyncio.Event()

    async def _pause(self, method):
        if method == self.stall:
            self.stalled.set()
            await asyncio.sleep(0.05)

    async def quote(self, *args, **kwargs):
        await self._pause("quote")
        return await super().quote(*args, **kwargs)

    async def create_shipment(self, *args, **kwargs):
        await self._pause("create_shipment")
        return await super().create_shipment(*args, **kwargs)


@pytest.fixture()
def provider():
    return FakeShippingProvider()


@pytest.fixture()
def lifecycle(provider):
    return OrderLifecycle(provider, ShippingConfig())


@pytest.fixture()
def stalling_lifecycle():
    """Factory for a lifecycle whose carrier pauses inside ``stall`` (``quote`` or ``create_shipment``)."""

    def _make(stall):
        return OrderLifecycle(StallingCarrier(stall), ShippingConfig())

    return _make


@pytest.fixture()
def address():
    return dict(ADDRESS)


@pytest.fixture()
def make_product():
    """Factory persisting a product; keyword arguments go to ``Product.create``."""

    def _make(name="Tee", price=500.0, stock=10, **kwargs):
        product = Product.create(name=name, price=price, stock=stock, **kwargs)
        current_domain.repository_for(Product).add(product)
        return product

    return _make


@pytest.fixture()
def place_order():
    """Process PlaceOrder and return the new order's id."""

    def _place(customer_id, lines, payment_method="cod", shipping_address=None):
        return current_domain.process(
            PlaceOrder(
                customer_id=customer_id,
                items=json.dumps(lines),
                shipping_address=json.dumps(shipping_address or ADDRESS),
                payment_method=payment_method,
            ),
            asynchronous=False,
        )

    return _place
