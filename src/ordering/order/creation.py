"""Order placement: command and handler.

Placing an order is one Unit of Work: every referenced product is loaded
once, stock is reserved in memory, the items are priced, and for online
payment methods a payment intent is opened. Only then are the product and
order writes registered, so any failure along the way (unknown product,
unknown size, insufficient stock, gateway error) leaves no partial write.
"""

import json
import os
from datetime import UTC, datetime

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import NotFound
from ordering.inventory.product import Product
from ordering.order.order import Order, PaymentMethod
from ordering.order.pricing import price_items
from payments.gateway import get_gateway

logger = structlog.get_logger(__name__)

PAYMENT_CURRENCY = "INR"


@ordering.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, quantity, size, color}
    shipping_address = Text(required=True)  # JSON: address dict
    payment_method = String(required=True, max_length=20)


def next_order_number(prefix=None):
    """Prefix + epoch milliseconds + four-digit count of existing orders."""
    prefix = prefix or os.environ.get("ORDER_NUMBER_PREFIX", "MT")
    existing = current_domain.repository_for(Order)._dao.query.all().total
    millis = int(datetime.now(UTC).timestamp() * 1000)
    return f"{prefix}{millis}{existing:04d}"


def _quantity(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        lines = json.loads(command.items) if isinstance(command.items, str) else command.items
        shipping_address = (
            json.loads(command.shipping_address)
            if isinstance(command.shipping_address, str)
            else command.shipping_address
        )

        if not lines:
            raise ValidationError({"items": ["Order must have items"]})
        if not shipping_address:
            raise ValidationError({"shipping_address": ["Shipping address is required"]})
        try:
            payment_method = PaymentMethod(command.payment_method)
        except ValueError:
            raise ValidationError({"payment_method": [f"Unknown payment method {command.payment_method}"]}) from None

        product_repo = current_domain.repository_for(Product)
        products = {}
        items_data = []
        for line in lines:
            product_id = line.get("product_id")
            if not product_id:
                raise ValidationError({"items": ["Invalid order item"]})
            quantity = _quantity(line.get("quantity"))
            if quantity <= 0:
                raise ValidationError({"quantity": ["Quantity must be greater than zero"]})

            product = products.get(product_id)
            if product is None:
                try:
                    product = product_repo.get(product_id)
                except ObjectNotFoundError:
                    raise NotFound(f"Product {product_id} not found") from None
                products[product_id] = product

            size = product.reserve(quantity, size=line.get("size"))
            color = line.get("color")
            items_data.append(
                {
                    "product_id": str(product.id),
                    "name": product.name,
                    "size": size,
                    "color": color,
                    "quantity": quantity,
                    "price": product.price,
                    "image": product.image_for(color),
                }
            )

        pricing = price_items([(item["price"], item["quantity"]) for item in items_data])
        order = Order.create(
            order_number=next_order_number(),
            customer_id=command.customer_id,
            items_data=items_data,
            shipping_address=shipping_address,
            payment_method=payment_method.value,
            pricing=pricing,
        )

        if order.uses_online_payment:
            intent = get_gateway().open_intent(
                amount_minor=round(pricing.total * 100),
                currency=PAYMENT_CURRENCY,
                receipt=f"receipt_{order.order_number}",
            )
            order.attach_payment_intent(intent.gateway_order_id)

        order.mark_placed()

        for product in products.values():
            product_repo.add(product)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "order_placed",
            order_number=order.order_number,
            customer_id=str(order.customer_id),
            total=order.total,
            payment_method=order.payment_method,
        )
        return str(order.id)
