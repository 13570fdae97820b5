"""ExpireStalePayments command + handler — close checkouts the customer abandoned.

Invoked by the background job runner. A payment still PENDING (or APPROVED
but never captured) after ``max_age_minutes`` is expired and its hosted
checkout is cancelled at the gateway.
"""

from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.fields import DateTime, Integer
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.payments.gateway import get_gateway
from storefront.payments.payment.payment import Payment, PaymentStatus
from storefront.utils.query import fetch_all

logger = structlog.get_logger(__name__)

PAYMENT_MAX_AGE_MINUTES = 30


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=UTC)


@storefront.command(part_of="Payment")
class ExpireStalePayments:
    as_of = DateTime()
    max_age_minutes = Integer(default=PAYMENT_MAX_AGE_MINUTES, min_value=1)


@storefront.command_handler(part_of=Payment)
class ExpireStalePaymentsHandler:
    @handle(ExpireStalePayments)
    def expire_stale(self, command):
        as_of = _as_utc(command.as_of or datetime.now(UTC))
        cutoff = as_of - timedelta(minutes=command.max_age_minutes)
        repo = current_domain.repository_for(Payment)
        gateway = get_gateway()

        expired = 0
        for status in (PaymentStatus.PENDING, PaymentStatus.APPROVED):
            for payment in fetch_all(repo, status=status.value):
                if payment.created_at is None or _as_utc(payment.created_at) > cutoff:
                    continue

                payment.expire()
                repo.add(payment)
                expired += 1

                try:
                    gateway.cancel(payment.provider_payment_id)
                except Exception:
                    logger.exception("Gateway cancel failed", payment_id=str(payment.id))

        logger.info("Stale payments expired", expired=expired, cutoff=cutoff.isoformat())
        return expired
