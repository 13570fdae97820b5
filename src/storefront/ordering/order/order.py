"""Order aggregate (CQRS) — the immutable result of a paid checkout.

An Order owns a snapshot of every product it contains, so later catalogue
edits never rewrite history. Each line item remembers how much stock it
holds against the ledger (``reserved_stock``) and whether that stock has
been given back (``stock_released``, flips false → true exactly once).

State Machine:
    PENDING → PAID → PROCESSING → SHIPPED → DELIVERED
    {PENDING, PAID, PROCESSING} → CANCELLED
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from storefront.domain import storefront
from storefront.ordering.order.events import (
    OrderCancelled,
    OrderDelivered,
    OrderItemStockReleased,
    OrderPaid,
    OrderPlaced,
    OrderProcessing,
    OrderShipped,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class CancellationActor(Enum):
    CUSTOMER = "customer"
    SYSTEM = "system"
    ADMIN = "admin"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class ProductSnapshot:
    """Product data frozen at purchase time."""

    name = String(required=True, max_length=200)
    description = Text()
    price = Float(required=True, min_value=0.0)
    images = Text()  # JSON list of image URLs
    category = String(max_length=100)


@storefront.value_object(part_of="Order")
class ShippingDetails:
    """Canonical shipping data, whatever shape checkout sent it in."""

    method = String(required=True, max_length=20)  # carrier | address_only | none
    carrier = String(max_length=100)
    service = String(max_length=50)
    cost = Float(default=0.0)
    quote_id = String(max_length=100)
    estimated_days = Integer()
    recipient_name = String(max_length=200)
    email = String(max_length=254)
    phone = String(max_length=50)
    street = String(max_length=255)
    number = String(max_length=20)
    city = String(max_length=100)
    state = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(max_length=100)


@storefront.value_object(part_of="Order")
class OrderPricing:
    """Totals computed once from snapshot prices; never recalculated."""

    subtotal = Float(default=0.0)
    discount = Float(default=0.0)
    shipping = Float(default=0.0)
    tax = Float(default=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default="MXN")


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderItem:
    product_id = Identifier(required=True)
    size = String(required=True, max_length=32)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    snapshot = ValueObject(ProductSnapshot)
    reserved_stock = Integer(default=0)
    stock_released = Boolean(default=False)

    @property
    def line_total(self) -> float:
        return round(self.unit_price * self.quantity, 2)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    order_number = String(required=True, unique=True, max_length=20)
    user_id = Identifier(required=True)
    payment_id = Identifier()
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    items = HasMany(OrderItem)
    shipping = ValueObject(ShippingDetails)
    pricing = ValueObject(OrderPricing)
    customer_email = String(max_length=254)
    customer_name = String(max_length=200)
    shipment_id = Identifier()
    carrier = String(max_length=100)
    tracking_number = String(max_length=100)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(choices=CancellationActor)
    paid_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        user_id,
        items_data,
        pricing,
        shipping=None,
        payment_id=None,
        customer_email=None,
        customer_name=None,
    ):
        """Create a PENDING order.

        Args:
            items_data: list of dicts with product_id, size, quantity,
                unit_price, snapshot (ProductSnapshot) and reserved_stock.
            pricing: an OrderPricing value object.
            shipping: a ShippingDetails value object.
        """
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            user_id=user_id,
            payment_id=payment_id,
            status=OrderStatus.PENDING.value,
            shipping=shipping,
            pricing=pricing,
            customer_email=customer_email,
            customer_name=customer_name,
            created_at=now,
            updated_at=now,
        )
        for item_data in items_data:
            order.add_items(OrderItem(**item_data))

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                user_id=str(user_id),
                payment_id=str(payment_id) if payment_id else None,
                items=json.dumps(
                    [
                        {
                            "product_id": str(i["product_id"]),
                            "size": i["size"],
                            "quantity": i["quantity"],
                            "unit_price": i["unit_price"],
                        }
                        for i in items_data
                    ]
                ),
                total=pricing.total,
                currency=pricing.currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def mark_paid(self, payment_id):
        self._assert_can_transition(OrderStatus.PAID)

        now = datetime.now(UTC)
        self.status = OrderStatus.PAID.value
        self.payment_id = payment_id
        self.paid_at = now
        self.updated_at = now
        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                payment_id=str(payment_id),
                amount=self.pricing.total if self.pricing else 0.0,
                paid_at=now,
            )
        )

    def start_processing(self):
        self._assert_can_transition(OrderStatus.PROCESSING)

        now = datetime.now(UTC)
        self.status = OrderStatus.PROCESSING.value
        self.updated_at = now
        self.raise_(OrderProcessing(order_id=str(self.id), started_at=now))

    def mark_shipped(self, tracking_number, carrier=None, shipment_id=None):
        self._assert_can_transition(OrderStatus.SHIPPED)

        now = datetime.now(UTC)
        self.status = OrderStatus.SHIPPED.value
        self.tracking_number = tracking_number
        self.carrier = carrier
        self.shipment_id = shipment_id
        self.shipped_at = now
        self.updated_at = now
        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                shipment_id=str(shipment_id) if shipment_id else None,
                carrier=carrier,
                tracking_number=tracking_number,
                shipped_at=now,
            )
        )

    def mark_delivered(self, delivered_at=None):
        self._assert_can_transition(OrderStatus.DELIVERED)

        now = delivered_at or datetime.now(UTC)
        self.status = OrderStatus.DELIVERED.value
        self.delivered_at = now
        self.updated_at = now
        self.raise_(OrderDelivered(order_id=str(self.id), delivered_at=now))

    def cancel(self, reason, cancelled_by=CancellationActor.CUSTOMER.value):
        """Cancel before shipping. Stock is given back by the caller, item by item."""
        current = OrderStatus(self.status)
        if OrderStatus.CANCELLED not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot cancel order in {current.value} state"]})

        now = datetime.now(UTC)
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.cancelled_by = cancelled_by
        self.cancelled_at = now
        self.updated_at = now
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_by=cancelled_by,
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Stock bookkeeping
    # -------------------------------------------------------------------
    def items_holding_stock(self):
        """Items whose reserved stock has not been given back yet."""
        return [i for i in self.items if i.reserved_stock and not i.stock_released]

    def mark_stock_released(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in order"]})
        if item.stock_released:
            raise ValidationError({"stock_released": [f"Stock for item {item_id} was already released"]})

        now = datetime.now(UTC)
        item.stock_released = True
        self.updated_at = now
        self.raise_(
            OrderItemStockReleased(
                order_id=str(self.id),
                item_id=str(item.id),
                product_id=str(item.product_id),
                size=item.size,
                quantity=item.reserved_stock,
                released_at=now,
            )
        )
