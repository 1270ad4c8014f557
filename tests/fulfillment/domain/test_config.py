"""Tests for shipping provider configuration."""

from fulfillment.carrier.config import DEFAULT_API_URL, ShippingConfig


class TestShippingConfig:
    def test_disabled_without_credentials(self):
        assert not ShippingConfig().enabled

    def test_enabled_with_credentials_and_pickup(self):
        assert ShippingConfig(email="a@b.c", password="pw", pickup_location="Primary").enabled

    def test_pickup_location_is_required(self):
        assert not ShippingConfig(email="a@b.c", password="pw").enabled

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SHIPROCKET_EMAIL", "ops@storefront.test")
        monkeypatch.setenv("SHIPROCKET_PASSWORD", "pw")
        monkeypatch.setenv("SHIPROCKET_PICKUP_LOCATION", "Primary")
        monkeypatch.setenv("SHIPROCKET_FALLBACK_ITEM_WEIGHT_KG", "0.75")
        monkeypatch.setenv("SHIPROCKET_FALLBACK_LENGTH_CM", "not-a-number")
        monkeypatch.delenv("SHIPROCKET_API_URL", raising=False)

        config = ShippingConfig.from_env()

        assert config.enabled
        assert config.api_url == DEFAULT_API_URL
        assert config.default_weight == 0.75
        assert config.default_length == 20.0

    def test_non_positive_numbers_fall_back(self, monkeypatch):
        monkeypatch.setenv("SHIPROCKET_TIMEOUT_SECONDS", "0")
        assert ShippingConfig.from_env().timeout == 15.0
