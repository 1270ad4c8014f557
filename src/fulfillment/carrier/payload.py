"""Shipment payload construction.

Builds the provider's ad-hoc order payload from an order snapshot. Empty
values are dropped rather than sent as blanks.
"""

from datetime import UTC, datetime

from fulfillment.carrier.port import Package

MIN_WEIGHT_KG = 0.1


def build_package(lines, config):
    """Combine per-unit shipping profiles into one parcel.

    ``lines`` is an iterable of ``(profile, quantity)`` pairs where a profile
    has weight, length, breadth and height (any may be missing). Weight is
    summed over quantity; each dimension is the largest seen.
    """
    weight = 0.0
    length = breadth = height = 0.0
    for profile, quantity in lines:
        weight += (getattr(profile, "weight", None) or config.default_weight) * quantity
        length = max(length, getattr(profile, "length", None) or 0.0)
        breadth = max(breadth, getattr(profile, "breadth", None) or 0.0)
        height = max(height, getattr(profile, "height", None) or 0.0)

    return Package(
        weight=max(weight or config.default_weight, MIN_WEIGHT_KG),
        length=length or config.default_length,
        breadth=breadth or config.default_breadth,
        height=height or config.default_height,
    )


def _drop_empty(payload):
    return {key: value for key, value in payload.items() if value is not None and value != ""}


def build_shipment_payload(order, package, config, quote=None, is_return=False, reason=None, now=None):
    now = now or datetime.now(UTC)
    address = order.shipping_address
    customer_name = (address.name if address else None) or "Customer"

    items = [
        {
            "name": item.name,
            "sku": str(item.product_id) if item.product_id else item.name,
            "units": item.quantity,
            "selling_price": item.price,
            "hsn": config.default_hsn,
        }
        for item in order.items
    ]

    order_id = f"{order.order_number}-RET-{int(now.timestamp() * 1000)}" if is_return else order.order_number

    payload = {
        "order_id": order_id,
        "order_date": now.isoformat(),
        "channel_id": config.channel_id,
        "pickup_location": config.pickup_location,
        "billing_customer_name": customer_name,
        "billing_last_name": "",
        "billing_address": address.address_line1 if address else "",
        "billing_address_2": address.address_line2 if address else "",
        "billing_city": address.city if address else "",
        "billing_pincode": address.pincode if address else "",
        "billing_state": address.state if address else "",
        "billing_country": "India",
        "billing_email": config.fallback_email,
        "billing_phone": (address.phone if address else None) or config.pickup_phone,
        "shipping_is_billing": True,
        "order_items": items,
        "payment_method": "COD" if order.payment_method == "cod" else "Prepaid",
        "sub_total": float(order.subtotal or 0),
        "length": package.length or config.default_length,
        "breadth": package.breadth or config.default_breadth,
        "height": package.height or config.default_height,
        "weight": max(package.weight or config.default_weight, MIN_WEIGHT_KG),
        "order_amount": float(order.total or order.subtotal or 0),
        "courier_id": quote.courier_company_id if quote else None,
        "comment": reason,
        "cod_charges": quote.cod_charge if quote else None,
        "shipping_charges": quote.freight_charge if quote else None,
    }

    if is_return:
        payload.update(
            {
                "is_return": 1,
                "reverse_pickup": 1,
                "pickup_customer_name": customer_name,
                "pickup_last_name": "",
                "pickup_address": address.address_line1 if address else "",
                "pickup_address_2": address.address_line2 if address else "",
                "pickup_city": address.city if address else "",
                "pickup_state": address.state if address else "",
                "pickup_pincode": address.pincode if address else "",
                "pickup_country": "India",
                "pickup_phone": (address.phone if address else None) or config.pickup_phone,
                "return_reason": reason or "Customer return",
                "payment_method": "Prepaid",
            }
        )

    return _drop_empty(payload)
