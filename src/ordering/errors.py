"""Error taxonomy for the ordering service.

Field-level validation failures use Protean's ``ValidationError`` (HTTP 400)
and missing aggregates surface as Protean's ``ObjectNotFoundError`` (HTTP 404).
The classes below cover the remaining failure modes, each carrying the HTTP
status it is reported with.
"""


class OrderingError(Exception):
    """Base class for errors that map onto a specific HTTP status."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unauthenticated(OrderingError):
    status_code = 401


class AccessDenied(OrderingError):
    status_code = 403


class NotFound(OrderingError):
    status_code = 404


class StockConflict(OrderingError):
    """Raised while reserving stock; aborts the order-creation transaction."""

    status_code = 409


class InsufficientStock(StockConflict):
    pass


class ItemUnavailable(StockConflict):
    pass


class PaymentGatewayError(OrderingError):
    """The payment gateway could not open a payment intent."""

    status_code = 502


class ShippingProviderError(OrderingError):
    """The shipping provider rejected a call or could not be reached."""

    status_code = 502


class InternalError(OrderingError):
    status_code = 500
