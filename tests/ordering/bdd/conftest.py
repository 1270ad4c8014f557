"""Shared BDD fixtures and step definitions for the Ordering domain."""

import json
from uuid import uuid4

import pytest
from ordering.errors import InsufficientStock
from ordering.inventory.product import Product
from ordering.order.creation import PlaceOrder
from ordering.order.order import Order
from ordering.order.payment import VerifyPayment
from ordering.order.shipping import SetOrderStatus
from payments.gateway.port import sign
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then, when


# ---------------------------------------------------------------------------
# Scalar fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def customer_id():
    return f"cust-{uuid4().hex[:8]}"


@pytest.fixture()
def error():
    """Container for the exception a When step was rejected with."""
    return {"exc": None}


def load_order(order_id):
    return current_domain.repository_for(Order).get(order_id)


def _place(customer_id, product, quantity, payment_method, address):
    return current_domain.process(
        PlaceOrder(
            customer_id=customer_id,
            items=json.dumps([{"product_id": product.id, "quantity": quantity}]),
            shipping_address=json.dumps(address),
            payment_method=payment_method,
        ),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('a product "{name}" priced at {price:g} with {stock:d} in stock'),
    target_fixture="product",
)
def _(make_product, name, price, stock):
    return make_product(name=name, price=price, stock=stock)


@given(
    parsers.cfparse('the customer placed an order for {quantity:d} units paying "{method}"'),
    target_fixture="order_id",
)
def _(customer_id, product, address, quantity, method):
    return _place(customer_id, product, quantity, method, address)


@given(parsers.cfparse('the order status was set to "{status}"'))
def _(order_id, status):
    current_domain.process(SetOrderStatus(order_id=order_id, order_status=status), asynchronous=False)


@given("the payment was verified")
def _(order_id, customer_id, gateway):
    order = load_order(order_id)
    current_domain.process(
        VerifyPayment(
            order_id=order_id,
            user_id=customer_id,
            gateway_payment_id="pay_given",
            signature=sign(order.gateway_order_id, "pay_given", gateway.key_secret),
        ),
        asynchronous=False,
    )


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(
    parsers.cfparse('the customer orders {quantity:d} units paying "{method}"'),
    target_fixture="order_id",
)
def _(customer_id, product, address, quantity, method, error):
    try:
        return _place(customer_id, product, quantity, method, address)
    except (InsufficientStock, ValidationError) as exc:
        error["exc"] = exc
        return None


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(order_id, status):
    assert load_order(order_id).order_status == status


@then(parsers.cfparse('the payment status is "{status}"'))
def _(order_id, status):
    assert load_order(order_id).payment_status == status


@then(parsers.cfparse('the return status is "{status}"'))
def _(order_id, status):
    assert load_order(order_id).return_status == status


@then(parsers.cfparse("the order total is {total:g}"))
def _(order_id, total):
    assert load_order(order_id).total == pytest.approx(total)


@then(parsers.cfparse('"{name}" has {stock:d} in stock'))
def _(product, name, stock):
    reloaded = current_domain.repository_for(Product).get(product.id)
    assert reloaded.name == name
    assert reloaded.stock == stock


@then("the order action fails with a validation error")
def _(error):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], ValidationError)
