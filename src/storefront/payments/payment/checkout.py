"""Checkout — command and handler.

Prices the customer's cart (all of it, or a subset for a partial checkout),
checks that stock is still there, opens a hosted checkout at the gateway and
records a PENDING Payment. Nothing is reserved here: stock is taken only
when the payment completes.
"""

import json
import os

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.domain import storefront
from storefront.errors import InsufficientStock
from storefront.inventory.ledger import DEFAULT_SIZE, StockLedger
from storefront.ordering.cart.management import cart_for
from storefront.ordering.order.pricing import compute_pricing
from storefront.ordering.order.shipping_info import parse_shipping_info
from storefront.payments.gateway import get_gateway
from storefront.payments.payment.payment import Payment

logger = structlog.get_logger(__name__)


def return_urls(provider: str) -> dict:
    base = os.environ.get("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")
    return {
        "success": f"{base}/payments/{provider}/return?outcome=success",
        "failure": f"{base}/payments/{provider}/return?outcome=failure",
        "pending": f"{base}/payments/{provider}/return?outcome=pending",
    }


@storefront.command(part_of="Payment")
class StartCheckout:
    """Start paying for the user's cart through a hosted checkout."""

    user_id = Identifier(required=True)
    provider = String(required=True, max_length=20)
    currency = String(max_length=3, default="MXN")
    item_ids = Text()  # JSON list of cart item ids; empty means the whole cart
    metadata = Text()  # JSON: shipping shapes, customer contact, discount


@storefront.command_handler(part_of=Payment)
class StartCheckoutHandler:
    @handle(StartCheckout)
    def start_checkout(self, command):
        cart = cart_for(command.user_id)
        if cart is None or not cart.items:
            raise ValidationError({"cart": ["Cart is empty"]})

        selected_ids = set(json.loads(command.item_ids)) if command.item_ids else set()
        selected = [i for i in cart.items if not selected_ids or str(i.id) in selected_ids]
        if not selected:
            raise ValidationError({"item_ids": ["None of the selected items are in the cart"]})
        is_partial = len(selected) < len(cart.items)

        ledger = StockLedger()
        product_repo = current_domain.repository_for(Product)
        items_data = []
        for item in selected:
            try:
                product = product_repo.get(item.product_id)
            except ObjectNotFoundError:
                raise ValidationError({"items": [f"Product {item.product_id} is no longer available"]}) from None

            size = item.size or DEFAULT_SIZE
            if not product.is_preorder:
                available = ledger.available(product.id, size)
                if available < item.quantity:
                    raise InsufficientStock(str(product.id), size, available, item.quantity)

            items_data.append(
                {
                    "product_id": str(product.id),
                    "name": product.name,
                    "size": size,
                    "quantity": item.quantity,
                    "unit_price": product.price,
                }
            )

        metadata = json.loads(command.metadata) if command.metadata else {}
        metadata.update({"cart_id": str(cart.id), "is_partial": is_partial})
        shipping = parse_shipping_info(metadata)
        pricing = compute_pricing(
            [(i["unit_price"], i["quantity"]) for i in items_data],
            shipping=getattr(shipping, "cost", 0.0),
            discount=metadata.get("discount") or 0.0,
            currency=command.currency or "MXN",
        )

        checkout = get_gateway().create_checkout(
            items=items_data,
            amount=pricing.total,
            currency=pricing.currency,
            return_urls=return_urls(command.provider),
        )
        payment = Payment.initiate(
            user_id=command.user_id,
            provider=command.provider,
            provider_payment_id=checkout.provider_payment_id,
            amount=pricing.total,
            items_data=items_data,
            currency=pricing.currency,
            metadata=metadata,
            approval_url=checkout.approval_url,
        )
        current_domain.repository_for(Payment).add(payment)

        logger.info(
            "Checkout started",
            payment_id=str(payment.id),
            provider=command.provider,
            amount=pricing.total,
            is_partial=is_partial,
        )
        return str(payment.id)
