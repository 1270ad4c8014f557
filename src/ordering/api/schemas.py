"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), kept separate from
internal Protean commands.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class ShippingAddressSchema(BaseModel):
    name: str | None = None
    phone: str | None = None
    address_line1: str
    address_line2: str | None = None
    city: str
    state: str | None = None
    pincode: str


class OrderLineSchema(BaseModel):
    product_id: str
    quantity: int
    size: str | None = None
    color: str | None = None


class QuoteLineSchema(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    items: list[OrderLineSchema] = Field(default_factory=list)
    shipping_address: ShippingAddressSchema | None = None
    payment_method: str = "cod"

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [{"product_id": "prod-001", "quantity": 2, "size": "M", "color": "Black"}],
                    "shipping_address": {
                        "name": "Asha Rao",
                        "phone": "9876543210",
                        "address_line1": "12 MG Road",
                        "city": "Bengaluru",
                        "state": "Karnataka",
                        "pincode": "560001",
                    },
                    "payment_method": "razorpay",
                }
            ]
        }
    }


class QuoteRequest(BaseModel):
    pincode: str | None = None
    cod: bool = False
    order_amount: float = Field(ge=0, default=0.0)
    items: list[QuoteLineSchema] = Field(default_factory=list)


class VerifyPaymentRequest(BaseModel):
    payment_id: str
    signature: str


class UpdateStatusRequest(BaseModel):
    order_status: str | None = None


class CancelOrderRequest(BaseModel):
    cancel_reason: str | None = None


class ReturnOrderRequest(BaseModel):
    reason: str | None = None


# ---------------------------------------------------------------------------
# Product Request Schemas
# ---------------------------------------------------------------------------
class StockUpdateRequest(BaseModel):
    kind: Literal["set_absolute", "apply_delta", "set_size_stocks"]
    stock: int | None = None
    delta: int | None = None
    sizes: dict[str, int] | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"kind": "set_size_stocks", "sizes": {"S": 4, "M": 10}},
                {"kind": "apply_delta", "delta": -2},
            ]
        }
    }


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class QuoteResponse(BaseModel):
    provider: str | None = None
    courier_company_id: int | None = None
    courier_name: str | None = None
    charge: float
    estimated_days: float | None = None
    etd: datetime | None = None
    fallback: bool = False
