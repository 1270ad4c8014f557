"""FastAPI application factory for the ordering service.

The shipping provider is built once per process in the lifespan handler (or
passed in by the caller), held on ``app.state`` and shared by every request
through ``OrderLifecycle``.
"""

from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fulfillment.carrier import build_shipping_provider
from fulfillment.carrier.config import ShippingConfig
from fulfillment.carrier.port import ShippingProvider
from ordering.api.errors import register_error_handlers
from ordering.api.routes import order_router, product_router
from ordering.domain import ordering
from ordering.order.lifecycle import OrderLifecycle
from ordering.utils.logging import add_context, clear_context

logger = structlog.get_logger(__name__)


def _install_lifecycle(app: FastAPI, provider: ShippingProvider, config: ShippingConfig) -> None:
    app.state.shipping_provider = provider
    app.state.lifecycle = OrderLifecycle(provider, config)


def create_app(provider: ShippingProvider | None = None, shipping_config: ShippingConfig | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not hasattr(app.state, "lifecycle"):
            config = shipping_config or ShippingConfig.from_env()
            _install_lifecycle(app, build_shipping_provider(config), config)
        logger.info(
            "ordering_service_started",
            shipping_provider=type(app.state.shipping_provider).__name__,
            shipping_enabled=app.state.shipping_provider.enabled,
        )
        yield
        await app.state.shipping_provider.aclose()

    app = FastAPI(
        title="Storefront Ordering API",
        description="Order placement, payment verification and shipment lifecycle",
        lifespan=lifespan,
    )

    if provider is not None:
        _install_lifecycle(app, provider, shipping_config or ShippingConfig())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the ordering domain context and bind request log context."""
        request_id = request.headers.get("x-request-id") or uuid4().hex
        add_context(request_id=request_id, user_id=request.headers.get("x-user-id"), path=request.url.path)
        try:
            with ordering.domain_context():
                response = await call_next(request)
        finally:
            clear_context()
        response.headers["X-Request-Id"] = request_id
        return response

    register_error_handlers(app)
    app.include_router(order_router)
    app.include_router(product_router)

    @app.get("/health")
    async def health():
        return JSONResponse(
            content={
                "status": "ok",
                "domain": ordering.name,
                "shipping_enabled": app.state.shipping_provider.enabled,
            }
        )

    return app
