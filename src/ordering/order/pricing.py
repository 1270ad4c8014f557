"""Pricing engine: pure computation of order totals from priced line items."""

from dataclasses import dataclass

TAX_RATE = 0.18
FREE_SHIPPING_THRESHOLD = 1000
FLAT_SHIPPING_CHARGE = 50


@dataclass(frozen=True)
class Pricing:
    subtotal: float
    tax: float
    shipping: float
    total: float


def provisional_shipping(amount):
    """Flat-rate shipping used until (or instead of) a carrier quote."""
    return 0 if amount > FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING_CHARGE


def order_total(subtotal, tax, shipping):
    return round(subtotal + tax + shipping, 2)


def price_items(lines):
    """Price a list of ``(unit_price, quantity)`` pairs."""
    subtotal = round(sum(price * quantity for price, quantity in lines), 2)
    tax = round(subtotal * TAX_RATE, 2)
    shipping = provisional_shipping(subtotal)
    return Pricing(
        subtotal=subtotal,
        tax=tax,
        shipping=shipping,
        total=order_total(subtotal, tax, shipping),
    )
