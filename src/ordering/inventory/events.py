"""Domain events for the Product aggregate's inventory ledger."""

from protean.fields import Boolean, DateTime, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Product")
class StockReserved:
    """Units of a product (optionally a specific size) were reserved for an order."""

    __version__ = 1

    product_id = Identifier(required=True)
    size = String()
    quantity = Integer(required=True)
    remaining_stock = Integer(required=True)
    in_stock = Boolean(required=True)
    reserved_at = DateTime(required=True)


@ordering.event(part_of="Product")
class StockLevelsUpdated:
    """Stock counters were set or adjusted by an administrator."""

    __version__ = 1

    product_id = Identifier(required=True)
    update_kind = String(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    in_stock = Boolean(required=True)
    updated_at = DateTime(required=True)
