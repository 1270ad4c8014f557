"""Product aggregate: the inventory ledger for plain and size-variant stock.

A product carries either a single plain stock counter, or an ordered list of
size variants each with its own counter. For sized products the plain counter
mirrors the sum of all size counters. ``in_stock`` is derived from both and is
recomputed in the same aggregate write as every stock mutation.

Stock administration arrives as an explicit tagged update:

    SetAbsolute(stock)        replace the plain counter
    ApplyDelta(delta)         add to (or subtract from) the plain counter
    SetSizeStocks(sizes)      set the counters of the named sizes
"""

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Integer, String, Text, ValueObject

from ordering.domain import ordering
from ordering.errors import InsufficientStock, ItemUnavailable
from ordering.inventory.events import StockLevelsUpdated, StockReserved


# ---------------------------------------------------------------------------
# Stock updates
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class SetAbsolute:
    stock: int


@dataclass(frozen=True)
class ApplyDelta:
    delta: int


@dataclass(frozen=True)
class SetSizeStocks:
    sizes: dict[str, int] = field(default_factory=dict)


StockUpdate = SetAbsolute | ApplyDelta | SetSizeStocks


def _same_label(left, right):
    return (left or "").strip().lower() == (right or "").strip().lower()


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Product")
class ShippingProfile:
    """Packed weight (kg) and dimensions (cm) of one unit of the product."""

    weight = Float(default=0.5, min_value=0.0)
    length = Float(default=20.0, min_value=0.0)
    breadth = Float(default=16.0, min_value=0.0)
    height = Float(default=4.0, min_value=0.0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Product")
class SizeStock:
    size = String(required=True, max_length=20)
    stock = Integer(default=0, min_value=0)


@ordering.entity(part_of="Product")
class ColorOption:
    name = String(required=True, max_length=50)
    hex = String(max_length=7)
    images = Text()  # JSON: list of image urls


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Product:
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)
    sizes = HasMany(SizeStock)
    colors = HasMany(ColorOption)
    images = Text()  # JSON: list of {url, alt, color}
    in_stock = Boolean(default=False)
    shipping_profile = ValueObject(ShippingProfile)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def size_names_must_be_unique(self):
        seen = set()
        for entry in self.sizes or []:
            key = (entry.size or "").strip().lower()
            if key in seen:
                raise ValidationError({"sizes": [f"Size {entry.size} is listed more than once"]})
            seen.add(key)

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, name, price, stock=0, sizes=None, colors=None, images=None, shipping_profile=None):
        """Create a product.

        Args:
            sizes: Optional list of dicts with ``size`` and ``stock``.
            colors: Optional list of dicts with ``name``, ``hex`` and ``images`` (list of urls).
            images: Optional list of dicts with ``url``, ``alt`` and ``color``.
            shipping_profile: Optional dict with ``weight``, ``length``, ``breadth``, ``height``.
        """
        now = datetime.now(UTC)
        product = cls(
            name=name,
            price=price,
            stock=stock,
            images=json.dumps(images or []),
            shipping_profile=ShippingProfile(**(shipping_profile or {})),
            created_at=now,
            updated_at=now,
        )
        with atomic_change(product):
            for entry in sizes or []:
                product.add_sizes(SizeStock(size=entry["size"].strip(), stock=entry.get("stock", 0)))
            for color in colors or []:
                product.add_colors(
                    ColorOption(
                        name=color["name"].strip(),
                        hex=color.get("hex"),
                        images=json.dumps(color.get("images", [])),
                    )
                )
            product._refresh_stock_flags()
        return product

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def has_size_variants(self):
        return bool(self.sizes)

    def total_size_stock(self):
        return sum(entry.stock or 0 for entry in self.sizes or [])

    def find_size(self, size):
        return next((entry for entry in self.sizes or [] if _same_label(entry.size, size)), None)

    def _refresh_stock_flags(self):
        if self.has_size_variants:
            self.stock = max(0, self.total_size_stock())
        self.in_stock = (self.stock or 0) > 0 or any((entry.stock or 0) > 0 for entry in self.sizes or [])

    def image_for(self, color=None):
        """Pick the line-item image: colour gallery first, then a colour-tagged image, then the first image."""
        images = json.loads(self.images) if self.images else []
        fallback = images[0]["url"] if images else None
        if not color:
            return fallback

        option = next((c for c in self.colors or [] if _same_label(c.name, color)), None)
        gallery = json.loads(option.images) if option and option.images else []
        if gallery:
            return gallery[0]

        tagged = next((img for img in images if img.get("color") and _same_label(img["color"], color)), None)
        return tagged["url"] if tagged else fallback

    # -------------------------------------------------------------------
    # Reservation
    # -------------------------------------------------------------------
    def reserve(self, quantity, size=None):
        """Reserve ``quantity`` units, optionally of a specific size.

        Raises ItemUnavailable when the size does not exist and
        InsufficientStock when there are not enough units. Without a size on
        a sized product the request is checked against the total of all sizes
        but no individual size counter is decremented.
        """
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be greater than zero"]})

        entry = None
        with atomic_change(self):
            if size:
                entry = self.find_size(size)
                if entry is None:
                    raise ItemUnavailable(f"Size {size} not available for {self.name}")
                if (entry.stock or 0) < quantity:
                    raise InsufficientStock(f"Insufficient stock for {self.name} - size {entry.size}")
                entry.stock = entry.stock - quantity
            elif self.has_size_variants:
                if self.total_size_stock() < quantity:
                    raise InsufficientStock(f"{self.name} is out of stock")
            else:
                if (self.stock or 0) < quantity:
                    raise InsufficientStock(f"{self.name} is out of stock")
                self.stock = self.stock - quantity

            self._refresh_stock_flags()
            self.updated_at = datetime.now(UTC)

        self.raise_(
            StockReserved(
                product_id=str(self.id),
                size=entry.size if entry else None,
                quantity=quantity,
                remaining_stock=entry.stock if entry else self.stock,
                in_stock=self.in_stock,
                reserved_at=self.updated_at,
            )
        )
        return entry.size if entry else None

    # -------------------------------------------------------------------
    # Stock administration
    # -------------------------------------------------------------------
    def apply_stock_update(self, update):
        """Apply a SetAbsolute, ApplyDelta or SetSizeStocks update."""
        previous_stock = self.stock or 0

        with atomic_change(self):
            match update:
                case SetAbsolute(stock=stock):
                    if self.has_size_variants:
                        raise ValidationError({"stock": [f"{self.name} is stocked per size; set size stocks instead"]})
                    if stock < 0:
                        raise ValidationError({"stock": ["Stock cannot be negative"]})
                    self.stock = stock
                case ApplyDelta(delta=delta):
                    if self.has_size_variants:
                        raise ValidationError({"stock": [f"{self.name} is stocked per size; set size stocks instead"]})
                    if previous_stock + delta < 0:
                        raise ValidationError(
                            {"stock": [f"Adjustment of {delta} would take {self.name} below zero ({previous_stock})"]}
                        )
                    self.stock = previous_stock + delta
                case SetSizeStocks(sizes=sizes):
                    for label, stock in sizes.items():
                        if stock < 0:
                            raise ValidationError({"sizes": [f"Stock for size {label} cannot be negative"]})
                        entry = self.find_size(label)
                        if entry is None:
                            self.add_sizes(SizeStock(size=label.strip(), stock=stock))
                        else:
                            entry.stock = stock
                case _:
                    raise ValidationError({"update": [f"Unknown stock update {type(update).__name__}"]})

            self._refresh_stock_flags()
            self.updated_at = datetime.now(UTC)

        self.raise_(
            StockLevelsUpdated(
                product_id=str(self.id),
                update_kind=type(update).__name__,
                previous_stock=previous_stock,
                new_stock=self.stock,
                in_stock=self.in_stock,
                updated_at=self.updated_at,
            )
        )
