import pytest
from protean.exceptions import ValidationError

from storefront.ordering.cart.cart import Cart
from storefront.ordering.cart.events import CartCleared, CartItemAdded


class TestCartItems:
    def test_add_item(self):
        cart = Cart.create(owner_id="user-001")
        cart.add_item("prod-1", 2, size="M")
        assert len(cart.items) == 1
        assert isinstance(cart._events[-1], CartItemAdded)

    def test_same_product_and_size_merges(self):
        cart = Cart.create(owner_id="user-001")
        cart.add_item("prod-1", 2, size="M")
        cart.add_item("prod-1", 1, size="M")
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 3

    def test_missing_size_means_unique(self):
        cart = Cart.create(owner_id="user-001")
        cart.add_item("prod-1", 1)
        cart.add_item("prod-1", 1, size="unique")
        assert len(cart.items) == 1

    def test_different_sizes_are_separate_lines(self):
        cart = Cart.create(owner_id="user-001")
        cart.add_item("prod-1", 1, size="M")
        cart.add_item("prod-1", 1, size="L")
        assert len(cart.items) == 2

    def test_quantity_must_be_positive(self):
        cart = Cart.create(owner_id="user-001")
        with pytest.raises(ValidationError):
            cart.add_item("prod-1", 0)

    def test_remove_unknown_item(self):
        cart = Cart.create(owner_id="user-001")
        with pytest.raises(ValidationError):
            cart.remove_item("missing")


class TestCheckoutSettlement:
    def test_clear(self):
        cart = Cart.create(owner_id="user-001")
        cart.add_item("prod-1", 1, size="M")
        cart.add_item("prod-2", 1)
        cart.clear()
        assert cart.items == []
        assert isinstance(cart._events[-1], CartCleared)

    def test_remove_purchased_reduces_quantities(self):
        cart = Cart.create(owner_id="user-001")
        cart.add_item("prod-1", 3, size="M")
        cart.add_item("prod-2", 1)

        cart.remove_purchased(
            [
                {"product_id": "prod-1", "size": "M", "quantity": 2},
                {"product_id": "prod-2", "size": "unique", "quantity": 1},
            ]
        )

        assert len(cart.items) == 1
        assert cart.items[0].quantity == 1

    def test_remove_purchased_ignores_missing_lines(self):
        cart = Cart.create(owner_id="user-001")
        cart.add_item("prod-1", 1, size="M")
        cart.remove_purchased([{"product_id": "prod-9", "size": "M", "quantity": 1}])
        assert len(cart.items) == 1
