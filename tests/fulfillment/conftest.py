from types import SimpleNamespace

import httpx
import pytest
from fulfillment.carrier.config import ShippingConfig
from fulfillment.carrier.shiprocket_adapter import ShiprocketProvider

NOW = 1_760_000_000.0

CONFIG = ShippingConfig(
    api_url="https://shiprocket.test/v1/external",
    email="ops@storefront.test",
    password="pw",
    pickup_location="Primary",
    pickup_pincode="110001",
    pickup_phone="9000000000",
    channel_id="4711",
    fallback_email="orders@storefront.test",
)


class ShiprocketAPI:
    """In-memory stand-in for the Shiprocket external API."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.logins = 0
        self.token_ttl = None
        self.reject_next = 0
        self.responses: dict[tuple[str, str], httpx.Response] = {}

    def respond(self, method, path, status_code=200, json=None):
        self.responses[(method, path)] = httpx.Response(status_code, json=json if json is not None else {})

    def calls_to(self, path):
        return [request for request in self.requests if request.url.path.endswith(path)]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/v1/external")

        if path == "/auth/login":
            self.logins += 1
            body = {"token": f"tok-{self.logins}"}
            if self.token_ttl:
                body["expires_in"] = self.token_ttl
            return httpx.Response(200, json=body)

        if self.reject_next:
            self.reject_next -= 1
            return httpx.Response(401, json={"message": "Token expired"})

        response = self.responses.get((request.method, path))
        return response if response is not None else httpx.Response(404, json={"message": "Not found"})


@pytest.fixture()
def api():
    return ShiprocketAPI()


@pytest.fixture()
def clock():
    return {"now": NOW}


@pytest.fixture()
async def shiprocket(api, clock):
    provider = ShiprocketProvider(CONFIG, transport=httpx.MockTransport(api), clock=lambda: clock["now"])
    yield provider
    await provider.aclose()


@pytest.fixture()
def order():
    """Order snapshot with the attributes the carrier payloads read."""
    return SimpleNamespace(
        order_number="MT17600000000000001",
        payment_method="cod",
        subtotal=1000.0,
        total=1245.0,
        shipping_address=SimpleNamespace(
            name="Asha Rao",
            phone="9876543210",
            address_line1="12 MG Road",
            address_line2=None,
            city="Bengaluru",
            state="Karnataka",
            pincode="560001",
        ),
        items=[SimpleNamespace(product_id="prod-001", name="Linen Shirt", quantity=2, price=500.0)],
        shipment=SimpleNamespace(external_order_id="ext-77", shipment_id="shp-77", awb="AWB77"),
    )
