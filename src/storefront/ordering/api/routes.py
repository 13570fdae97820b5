"""FastAPI routes for carts and orders.

Thin adapters that translate HTTP requests into domain commands.
"""

from fastapi import APIRouter
from protean.utils.globals import current_domain

from storefront.ordering.api.schemas import (
    AddToCartRequest,
    CancelOrderRequest,
    CartIdResponse,
    CartItemResponse,
    CartResponse,
    OrderItemResponse,
    OrderListResponse,
    OrderResponse,
    StatusResponse,
)
from storefront.ordering.cart.management import AddToCart, RemoveFromCart, cart_for
from storefront.ordering.order.cancellation import CancelOrder
from storefront.ordering.order.order import Order

cart_router = APIRouter(prefix="/carts", tags=["carts"])
order_router = APIRouter(prefix="/orders", tags=["orders"])


def _order_response(order: Order) -> OrderResponse:
    pricing = order.pricing
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        user_id=str(order.user_id),
        status=order.status,
        payment_id=str(order.payment_id) if order.payment_id else None,
        items=[
            OrderItemResponse(
                item_id=str(item.id),
                product_id=str(item.product_id),
                name=item.snapshot.name if item.snapshot else None,
                size=item.size,
                quantity=item.quantity,
                unit_price=item.unit_price,
                reserved_stock=item.reserved_stock or 0,
                stock_released=bool(item.stock_released),
            )
            for item in order.items
        ],
        subtotal=pricing.subtotal if pricing else 0.0,
        discount=pricing.discount if pricing else 0.0,
        shipping=pricing.shipping if pricing else 0.0,
        tax=pricing.tax if pricing else 0.0,
        total=pricing.total if pricing else 0.0,
        currency=pricing.currency if pricing else "MXN",
        shipping_method=order.shipping.method if order.shipping else None,
        carrier=order.carrier,
        tracking_number=order.tracking_number,
        shipment_id=str(order.shipment_id) if order.shipment_id else None,
        cancellation_reason=order.cancellation_reason,
        created_at=str(order.created_at) if order.created_at else None,
    )


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
@cart_router.get("/{user_id}", response_model=CartResponse)
async def get_cart(user_id: str) -> CartResponse:
    cart = cart_for(user_id)
    if cart is None:
        return CartResponse(user_id=user_id)
    return CartResponse(
        cart_id=str(cart.id),
        user_id=user_id,
        items=[
            CartItemResponse(
                item_id=str(item.id),
                product_id=str(item.product_id),
                size=item.size,
                quantity=item.quantity,
            )
            for item in cart.items
        ],
    )


@cart_router.post("/{user_id}/items", status_code=201, response_model=CartIdResponse)
async def add_to_cart(user_id: str, body: AddToCartRequest) -> CartIdResponse:
    command = AddToCart(
        user_id=user_id,
        product_id=body.product_id,
        size=body.size,
        quantity=body.quantity,
    )
    cart_id = current_domain.process(command, asynchronous=False)
    return CartIdResponse(cart_id=cart_id)


@cart_router.delete("/{user_id}/items/{item_id}", response_model=StatusResponse)
async def remove_from_cart(user_id: str, item_id: str) -> StatusResponse:
    current_domain.process(RemoveFromCart(user_id=user_id, item_id=item_id), asynchronous=False)
    return StatusResponse(status="removed")


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
@order_router.get("", response_model=OrderListResponse)
async def list_orders(user_id: str) -> OrderListResponse:
    """A user's orders, newest first."""
    orders = current_domain.repository_for(Order)._dao.query.filter(user_id=user_id).all().items
    orders = sorted(orders, key=lambda o: str(o.created_at or ""), reverse=True)
    return OrderListResponse(orders=[_order_response(o) for o in orders])


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    order = current_domain.repository_for(Order).get(order_id)
    return _order_response(order)


@order_router.post("/{order_id}/cancel", response_model=StatusResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest) -> StatusResponse:
    """Cancel an order before it ships; reserved stock is given back."""
    command = CancelOrder(
        order_id=order_id,
        reason=body.reason,
        cancelled_by=body.cancelled_by,
        user_id=body.user_id,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="cancelled")
