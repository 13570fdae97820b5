"""Storefront domain — payment-to-fulfillment saga.

A single bounded context so that the saga steps (payment reconciliation,
order materialization, stock reservation, notifications and shipments) can
call each other synchronously inside one domain context:

    Cart → Payment (gateway callback) → Order (+ stock reservation)
         → Notification (order_confirmed) → Shipment → tracking sweep
"""

import structlog
from protean.domain import Domain

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
