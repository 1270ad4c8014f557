"""Ordering domain API package."""

from ordering.api.routes import order_router, product_router

__all__ = ["order_router", "product_router"]
