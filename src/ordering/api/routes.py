"""FastAPI routes for the Ordering domain: orders and product stock."""

import json

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from protean.utils.globals import current_domain

from ordering.api.dependencies import Identity, admin_identity, current_identity, get_lifecycle
from ordering.api.schemas import (
    CancelOrderRequest,
    PlaceOrderRequest,
    QuoteRequest,
    QuoteResponse,
    ReturnOrderRequest,
    StockUpdateRequest,
    UpdateStatusRequest,
    VerifyPaymentRequest,
)
from ordering.inventory.product import Product
from ordering.inventory.stock import UpdateStock
from ordering.order.lifecycle import OrderLifecycle
from payments.gateway import get_gateway


def _view(aggregate) -> dict:
    return jsonable_encoder(aggregate.to_dict())


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201)
async def place_order(
    body: PlaceOrderRequest,
    identity: Identity = Depends(current_identity),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict:
    order = await lifecycle.place_order(
        customer_id=identity.user_id,
        items=[line.model_dump() for line in body.items],
        shipping_address=body.shipping_address.model_dump() if body.shipping_address else None,
        payment_method=body.payment_method,
    )
    if order.gateway_order_id:
        return {
            "order": _view(order),
            "gateway_order_id": order.gateway_order_id,
            "key_id": get_gateway().key_id,
        }
    return {"order": _view(order), "message": "Order created successfully"}


@order_router.post("/quote", response_model=QuoteResponse)
async def quote_shipping(
    body: QuoteRequest,
    identity: Identity = Depends(current_identity),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> QuoteResponse:
    quote = await lifecycle.quote(
        pincode=body.pincode,
        cod=body.cod,
        order_amount=body.order_amount,
        items=[(line.product_id, line.quantity) for line in body.items],
    )
    return QuoteResponse(**quote)


@order_router.post("/{order_id}/verify")
async def verify_payment(
    order_id: str,
    body: VerifyPaymentRequest,
    identity: Identity = Depends(current_identity),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict:
    order = lifecycle.verify_payment(order_id, identity.user_id, body.payment_id, body.signature)
    return {"message": "Payment verified successfully", "order": _view(order)}


@order_router.get("")
async def list_my_orders(
    identity: Identity = Depends(current_identity),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> list[dict]:
    return [_view(order) for order in lifecycle.list_orders(customer_id=identity.user_id)]


@order_router.get("/all")
async def list_all_orders(
    limit: int = 100,
    offset: int = 0,
    identity: Identity = Depends(admin_identity),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> list[dict]:
    return [_view(order) for order in lifecycle.list_orders(limit=limit, offset=offset)]


@order_router.get("/{order_id}")
async def get_order(
    order_id: str,
    identity: Identity = Depends(current_identity),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict:
    return _view(lifecycle.load_for(order_id, identity.user_id, identity.is_admin))


@order_router.get("/{order_id}/tracking")
async def get_tracking(
    order_id: str,
    identity: Identity = Depends(current_identity),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict:
    order = await lifecycle.tracking(order_id, identity.user_id, identity.is_admin)
    view = _view(order)
    return {
        "order_id": view["id"],
        "order_number": view["order_number"],
        "order_status": view["order_status"],
        "estimated_delivery_at": view.get("estimated_delivery_at"),
        "shipment": view.get("shipment"),
        "tracking_events": view.get("tracking_events", []),
    }


@order_router.api_route("/{order_id}/status", methods=["PUT", "POST"])
async def update_status(
    order_id: str,
    body: UpdateStatusRequest | None = None,
    identity: Identity = Depends(admin_identity),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict:
    order = await lifecycle.set_status(order_id, body.order_status if body else None)
    return _view(order)


@order_router.api_route("/{order_id}/sync", methods=["PUT", "POST"])
async def sync_order(
    order_id: str,
    identity: Identity = Depends(admin_identity),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict:
    order = await lifecycle.sync_tracking(order_id)
    return _view(order)


@order_router.put("/{order_id}/cancel")
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest | None = None,
    identity: Identity = Depends(current_identity),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict:
    order = await lifecycle.cancel(
        order_id,
        identity.user_id,
        is_admin=identity.is_admin,
        reason=body.cancel_reason if body else None,
    )
    return {"message": "Order cancelled successfully", "order": _view(order)}


@order_router.post("/{order_id}/return")
async def return_order(
    order_id: str,
    body: ReturnOrderRequest | None = None,
    identity: Identity = Depends(current_identity),
    lifecycle: OrderLifecycle = Depends(get_lifecycle),
) -> dict:
    order = await lifecycle.initiate_return(
        order_id,
        identity.user_id,
        is_admin=identity.is_admin,
        reason=body.reason if body else None,
    )
    return {"message": "Return initiated", "order": _view(order)}


# ---------------------------------------------------------------------------
# Product Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.put("/{product_id}/stock")
async def update_stock(
    product_id: str,
    body: StockUpdateRequest,
    identity: Identity = Depends(admin_identity),
) -> dict:
    command = UpdateStock(
        product_id=product_id,
        kind=body.kind,
        stock=body.stock,
        delta=body.delta,
        sizes=json.dumps(body.sizes) if body.sizes is not None else None,
    )
    current_domain.process(command, asynchronous=False)
    return _view(current_domain.repository_for(Product).get(product_id))
