"""Order totals from snapshot prices.

Discount and tax are carried through, not validated: the discount comes
from payment metadata and tax is a flat rate from TAX_RATE.
"""

import os
from decimal import ROUND_HALF_UP, Decimal

from storefront.ordering.order.order import OrderPricing

_CENT = Decimal("0.01")


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(_CENT, rounding=ROUND_HALF_UP)


def tax_rate() -> Decimal:
    return Decimal(os.environ.get("TAX_RATE", "0"))


def compute_pricing(lines, shipping=0.0, discount=0.0, currency="MXN", rate: Decimal | None = None) -> OrderPricing:
    """Compute totals.

    Args:
        lines: iterable of (unit_price, quantity) pairs.
    """
    rate = tax_rate() if rate is None else rate
    subtotal = sum((_money(price) * qty for price, qty in lines), Decimal("0"))
    subtotal = subtotal.quantize(_CENT)
    discount_amount = min(_money(discount), subtotal)
    shipping_amount = _money(shipping)
    tax = ((subtotal - discount_amount) * rate).quantize(_CENT, rounding=ROUND_HALF_UP)
    total = subtotal - discount_amount + shipping_amount + tax

    return OrderPricing(
        subtotal=float(subtotal),
        discount=float(discount_amount),
        shipping=float(shipping_amount),
        tax=float(tax),
        total=float(total),
        currency=currency,
    )
