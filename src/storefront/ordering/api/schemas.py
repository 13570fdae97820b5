"""Pydantic API schemas for carts and orders."""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    size: str | None = None
    quantity: int = Field(default=1, ge=1)


class CancelOrderRequest(BaseModel):
    reason: str
    user_id: str | None = None
    cancelled_by: str = "customer"  # customer | admin | system


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class CartIdResponse(BaseModel):
    cart_id: str


class CartItemResponse(BaseModel):
    item_id: str
    product_id: str
    size: str | None = None
    quantity: int


class CartResponse(BaseModel):
    cart_id: str | None = None
    user_id: str
    items: list[CartItemResponse] = []


class OrderItemResponse(BaseModel):
    item_id: str
    product_id: str
    name: str | None = None
    size: str
    quantity: int
    unit_price: float
    reserved_stock: int
    stock_released: bool


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    user_id: str
    status: str
    payment_id: str | None = None
    items: list[OrderItemResponse]
    subtotal: float = 0.0
    discount: float = 0.0
    shipping: float = 0.0
    tax: float = 0.0
    total: float = 0.0
    currency: str = "MXN"
    shipping_method: str | None = None
    carrier: str | None = None
    tracking_number: str | None = None
    shipment_id: str | None = None
    cancellation_reason: str | None = None
    created_at: str | None = None


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
