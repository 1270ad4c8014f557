"""Shipping provider integration: port, Shiprocket adapter and fake.

The provider is not a module singleton: ``build_shipping_provider()`` is
called once at process start and the instance is passed to whoever needs it.
"""

import os

from fulfillment.carrier.config import ShippingConfig
from fulfillment.carrier.port import ShippingProvider


def build_shipping_provider(config: ShippingConfig | None = None) -> ShippingProvider:
    """Construct the adapter selected by SHIPPING_PROVIDER (``shiprocket`` or ``fake``)."""
    adapter = os.environ.get("SHIPPING_PROVIDER", "shiprocket")
    if adapter == "shiprocket":
        from fulfillment.carrier.shiprocket_adapter import ShiprocketProvider

        return ShiprocketProvider(config or ShippingConfig.from_env())
    if adapter == "fake":
        from fulfillment.carrier.fake_adapter import FakeShippingProvider

        return FakeShippingProvider()
    raise ValueError(f"Unknown shipping provider: {adapter}")
