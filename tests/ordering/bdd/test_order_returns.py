"""BDD tests for order returns."""

from ordering.order.returns import InitiateReturn
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, scenarios, when

scenarios("features/order_returns.feature")


def _return(order_id, customer_id, reason):
    current_domain.process(
        InitiateReturn(order_id=order_id, user_id=customer_id, reason=reason),
        asynchronous=False,
    )


@given("the customer returned the order")
def _(order_id, customer_id):
    _return(order_id, customer_id, "Wrong colour")


@when(parsers.cfparse('the customer returns the order because "{reason}"'))
def _(order_id, customer_id, reason, error):
    try:
        _return(order_id, customer_id, reason)
    except ValidationError as exc:
        error["exc"] = exc
