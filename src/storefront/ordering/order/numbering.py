"""Order numbers: ``ORD-<year>-<6-digit sequence>``.

The sequence comes from a dedicated per-year counter in the key store, so
concurrent materializations never read the same value.
"""

from datetime import UTC, datetime

from storefront.shared.keys import get_key_store
from storefront.shared.keys.port import KeyStore


def next_order_number(now: datetime | None = None, store: KeyStore | None = None) -> str:
    year = (now or datetime.now(UTC)).year
    sequence = (store or get_key_store()).next_value(f"order-number:{year}")
    return f"ORD-{year}-{sequence:06d}"
