"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """An order was materialized from a completed payment."""

    __version__ = 1

    order_id: Identifier(required=True)
    order_number: String(required=True)
    user_id: Identifier(required=True)
    payment_id: Identifier()
    items: Text(required=True)  # JSON list of {product_id, size, quantity, unit_price}
    total: Float(required=True)
    currency: String(required=True)
    placed_at: DateTime(required=True)


@storefront.event(part_of="Order")
class OrderPaid:
    __version__ = 1

    order_id: Identifier(required=True)
    payment_id: Identifier(required=True)
    amount: Float(required=True)
    paid_at: DateTime(required=True)


@storefront.event(part_of="Order")
class OrderProcessing:
    __version__ = 1

    order_id: Identifier(required=True)
    started_at: DateTime(required=True)


@storefront.event(part_of="Order")
class OrderShipped:
    __version__ = 1

    order_id: Identifier(required=True)
    shipment_id: Identifier()
    carrier: String()
    tracking_number: String(required=True)
    shipped_at: DateTime(required=True)


@storefront.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id: Identifier(required=True)
    delivered_at: DateTime(required=True)


@storefront.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id: Identifier(required=True)
    reason: String(required=True)
    cancelled_by: String(required=True)
    cancelled_at: DateTime(required=True)


@storefront.event(part_of="Order")
class OrderItemStockReleased:
    """Reserved stock for one line item went back to the ledger."""

    __version__ = 1

    order_id: Identifier(required=True)
    item_id: Identifier(required=True)
    product_id: Identifier(required=True)
    size: String(required=True)
    quantity: Integer(required=True)
    released_at: DateTime(required=True)
