"""Cart aggregate (CQRS) — mutable basket that a paid checkout turns into an Order.

Orders never reference the cart after materialization; they keep their own
snapshot. A full checkout clears the cart, a partial checkout only takes
the purchased quantities out of it.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from storefront.domain import storefront
from storefront.inventory.ledger import DEFAULT_SIZE
from storefront.ordering.cart.events import (
    CartCleared,
    CartItemAdded,
    CartItemRemoved,
    CartPartiallyPurchased,
)


@storefront.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    size = String(max_length=32)
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()


@storefront.aggregate
class Cart:
    owner_id = Identifier(required=True)
    items = HasMany(CartItem)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, owner_id, **kwargs):
        now = datetime.now(UTC)
        return cls(owner_id=owner_id, created_at=now, updated_at=now, **kwargs)

    def _find(self, product_id, size):
        return next(
            (
                i
                for i in self.items
                if str(i.product_id) == str(product_id) and (i.size or DEFAULT_SIZE) == (size or DEFAULT_SIZE)
            ),
            None,
        )

    def add_item(self, product_id, quantity, size=None):
        """Add an item (or increase its quantity if the product/size is already in the cart)."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        now = datetime.now(UTC)
        existing = self._find(product_id, size)
        if existing:
            existing.quantity += quantity
            item_id = str(existing.id)
        else:
            item = CartItem(product_id=product_id, size=size, quantity=quantity, added_at=now)
            self.add_items(item)
            item_id = str(item.id)

        self.updated_at = now
        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=item_id,
                product_id=str(product_id),
                size=size,
                quantity=quantity,
            )
        )

    def remove_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})

        self.remove_items(item)
        self.updated_at = datetime.now(UTC)
        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    def clear(self):
        """Remove every item after a full checkout."""
        for item in list(self.items):
            self.remove_items(item)

        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(CartCleared(cart_id=str(self.id), owner_id=str(self.owner_id), cleared_at=now))

    def remove_purchased(self, purchased):
        """Take purchased quantities out of the cart after a partial checkout.

        Args:
            purchased: iterable of dicts with product_id, size and quantity.
        """
        for line in purchased:
            item = self._find(line["product_id"], line.get("size"))
            if item is None:
                continue
            remaining = item.quantity - line["quantity"]
            if remaining > 0:
                item.quantity = remaining
            else:
                self.remove_items(item)

        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            CartPartiallyPurchased(
                cart_id=str(self.id),
                owner_id=str(self.owner_id),
                remaining_items=len(self.items),
                purchased_at=now,
            )
        )
