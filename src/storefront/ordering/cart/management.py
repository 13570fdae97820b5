"""Cart commands + handler — add and remove items.

A user has one cart; it is created the first time an item is added.
"""

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront.catalogue.product import Product
from storefront.domain import storefront
from storefront.ordering.cart.cart import Cart


def cart_for(owner_id) -> Cart | None:
    carts = current_domain.repository_for(Cart)._dao.query.filter(owner_id=str(owner_id)).all().items
    return carts[0] if carts else None


@storefront.command(part_of="Cart")
class AddToCart:
    user_id: Identifier(required=True)
    product_id: Identifier(required=True)
    size: String(max_length=32)
    quantity: Integer(required=True, min_value=1)


@storefront.command(part_of="Cart")
class RemoveFromCart:
    user_id: Identifier(required=True)
    item_id: Identifier(required=True)


@storefront.command_handler(part_of=Cart)
class CartHandler:
    @handle(AddToCart)
    def add_to_cart(self, command: AddToCart):
        try:
            current_domain.repository_for(Product).get(command.product_id)
        except ObjectNotFoundError:
            raise ValidationError({"product_id": [f"Product {command.product_id} does not exist"]}) from None

        repo = current_domain.repository_for(Cart)
        cart = cart_for(command.user_id) or Cart.create(owner_id=command.user_id)
        cart.add_item(command.product_id, command.quantity, size=command.size)
        repo.add(cart)
        return str(cart.id)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command: RemoveFromCart):
        cart = cart_for(command.user_id)
        if cart is None:
            raise ObjectNotFoundError(f"Cart for user {command.user_id} does not exist")

        cart.remove_item(command.item_id)
        current_domain.repository_for(Cart).add(cart)
