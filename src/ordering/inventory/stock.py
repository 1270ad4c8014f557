"""Stock administration: command and handler.

Stock counters are only ever changed through a Unit of Work: either here, or
by the order-creation handler reserving units for an order.
"""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.inventory.product import ApplyDelta, Product, SetAbsolute, SetSizeStocks

UPDATE_KINDS = ("set_absolute", "apply_delta", "set_size_stocks")


@ordering.command(part_of="Product")
class UpdateStock:
    product_id = Identifier(required=True)
    kind = String(required=True, max_length=20)
    stock = Integer()
    delta = Integer()
    sizes = Text()  # JSON: {size: stock}


def build_stock_update(kind, stock=None, delta=None, sizes=None):
    """Translate a wire-level update into its tagged StockUpdate."""
    match kind:
        case "set_absolute":
            if stock is None:
                raise ValidationError({"stock": ["stock is required for set_absolute"]})
            return SetAbsolute(stock=int(stock))
        case "apply_delta":
            if delta is None:
                raise ValidationError({"delta": ["delta is required for apply_delta"]})
            return ApplyDelta(delta=int(delta))
        case "set_size_stocks":
            if not sizes:
                raise ValidationError({"sizes": ["sizes are required for set_size_stocks"]})
            return SetSizeStocks(sizes={str(label): int(count) for label, count in sizes.items()})
        case _:
            raise ValidationError({"kind": [f"kind must be one of {', '.join(UPDATE_KINDS)}"]})


@ordering.command_handler(part_of=Product)
class StockHandler:
    @handle(UpdateStock)
    def update_stock(self, command):
        sizes = json.loads(command.sizes) if isinstance(command.sizes, str) else command.sizes
        update = build_stock_update(command.kind, stock=command.stock, delta=command.delta, sizes=sizes)

        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.apply_stock_update(update)
        repo.add(product)
