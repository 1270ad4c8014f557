"""Ordering bounded context: Orders, Inventory Ledger and Shipment Lifecycle.

Handles the order-creation transaction (stock reservation, pricing, payment
intent), payment verification, cancellation, returns, and the synchronization
of carrier shipment status into the order's lifecycle state.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
