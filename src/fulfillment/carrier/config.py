"""Shipping provider configuration, read once from the environment."""

import os
from dataclasses import dataclass

DEFAULT_API_URL = "https://apiv2.shiprocket.in/v1/external"


def _number(name, default):
    raw = os.environ.get(name)
    try:
        value = float(raw) if raw else 0.0
    except ValueError:
        value = 0.0
    return value if value > 0 else default


@dataclass(frozen=True)
class ShippingConfig:
    api_url: str = DEFAULT_API_URL
    email: str | None = None
    password: str | None = None
    pickup_location: str | None = None
    pickup_pincode: str | None = None
    pickup_address: str = ""
    pickup_city: str = ""
    pickup_state: str = ""
    pickup_phone: str = ""
    company_name: str = "Maytastic"
    channel_id: str | None = None
    default_mode: str = "Surface"
    default_hsn: str = "61091000"
    fallback_email: str | None = None
    default_weight: float = 0.5
    default_length: float = 20.0
    default_breadth: float = 16.0
    default_height: float = 4.0
    timeout: float = 15.0

    @property
    def enabled(self) -> bool:
        return bool(self.email and self.password and self.pickup_location)

    @classmethod
    def from_env(cls) -> "ShippingConfig":
        env = os.environ.get
        return cls(
            api_url=env("SHIPROCKET_API_URL") or DEFAULT_API_URL,
            email=env("SHIPROCKET_EMAIL"),
            password=env("SHIPROCKET_PASSWORD"),
            pickup_location=env("SHIPROCKET_PICKUP_LOCATION"),
            pickup_pincode=env("SHIPROCKET_PICKUP_PINCODE"),
            pickup_address=env("SHIPROCKET_PICKUP_ADDRESS", ""),
            pickup_city=env("SHIPROCKET_PICKUP_CITY", ""),
            pickup_state=env("SHIPROCKET_PICKUP_STATE", ""),
            pickup_phone=env("SHIPROCKET_PICKUP_PHONE", ""),
            company_name=env("SHIPROCKET_COMPANY_NAME") or "Maytastic",
            channel_id=env("SHIPROCKET_CHANNEL_ID"),
            default_mode=env("SHIPROCKET_DEFAULT_MODE") or "Surface",
            default_hsn=env("SHIPROCKET_DEFAULT_HSN") or "61091000",
            fallback_email=env("SHIPROCKET_FALLBACK_EMAIL"),
            default_weight=_number("SHIPROCKET_FALLBACK_ITEM_WEIGHT_KG", 0.5),
            default_length=_number("SHIPROCKET_FALLBACK_LENGTH_CM", 20.0),
            default_breadth=_number("SHIPROCKET_FALLBACK_BREADTH_CM", 16.0),
            default_height=_number("SHIPROCKET_FALLBACK_HEIGHT_CM", 4.0),
            timeout=_number("SHIPROCKET_TIMEOUT_SECONDS", 15.0),
        )
