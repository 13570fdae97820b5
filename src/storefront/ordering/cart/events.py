"""Domain events for the Cart aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Cart")
class CartItemAdded:
    __version__ = 1

    cart_id: Identifier(required=True)
    item_id: Identifier(required=True)
    product_id: Identifier(required=True)
    size: String()
    quantity: Integer(required=True)


@storefront.event(part_of="Cart")
class CartItemRemoved:
    __version__ = 1

    cart_id: Identifier(required=True)
    item_id: Identifier(required=True)


@storefront.event(part_of="Cart")
class CartCleared:
    """All items were removed after a full checkout was paid."""

    __version__ = 1

    cart_id: Identifier(required=True)
    owner_id: Identifier(required=True)
    cleared_at: DateTime(required=True)


@storefront.event(part_of="Cart")
class CartPartiallyPurchased:
    """Only the purchased quantities were taken out of the cart."""

    __version__ = 1

    cart_id: Identifier(required=True)
    owner_id: Identifier(required=True)
    remaining_items: Integer(required=True)
    purchased_at: DateTime(required=True)
