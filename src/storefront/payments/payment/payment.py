"""Payment aggregate (CQRS) — a gateway checkout waiting for its callback.

State Machine:
    PENDING → APPROVED → COMPLETED
    PENDING → COMPLETED
    {PENDING, APPROVED} → FAILED | CANCELLED
    PENDING → EXPIRED
    COMPLETED → PENDING (only when the order for it could not be created)

The pending → completed flip happens once per payment; duplicate gateway
callbacks are filtered out by the reconciler before they reach here.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from storefront.domain import storefront
from storefront.payments.payment.events import (
    PaymentApproved,
    PaymentCancelled,
    PaymentCompleted,
    PaymentExpired,
    PaymentFailed,
    PaymentInitiated,
    PaymentOrderLinked,
    PaymentReverted,
)


class PaymentStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"
    EXPIRED = "expired"


class PaymentProvider(Enum):
    PAYPAL = "paypal"
    MERCADOPAGO = "mercadopago"


_VALID_TRANSITIONS = {
    PaymentStatus.PENDING: {
        PaymentStatus.APPROVED,
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
        PaymentStatus.EXPIRED,
    },
    PaymentStatus.APPROVED: {
        PaymentStatus.COMPLETED,
        PaymentStatus.FAILED,
        PaymentStatus.CANCELLED,
        PaymentStatus.EXPIRED,
    },
    PaymentStatus.COMPLETED: {PaymentStatus.PENDING},  # Via revert
    PaymentStatus.FAILED: set(),  # Terminal
    PaymentStatus.CANCELLED: set(),  # Terminal
    PaymentStatus.EXPIRED: set(),  # Terminal
}


@storefront.entity(part_of="Payment")
class PaymentItem:
    """A cart line as it was charged."""

    product_id = Identifier(required=True)
    name = String(max_length=200)
    size = String(max_length=32)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)


@storefront.aggregate
class Payment:
    user_id = Identifier(required=True)
    provider = String(choices=PaymentProvider, required=True)
    provider_payment_id = String(required=True, max_length=255)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="MXN")
    items = HasMany(PaymentItem)
    provider_metadata = Text()  # JSON: cart_id, is_partial, shipping shapes, discount
    approval_url = String(max_length=1000)
    order_id = Identifier()
    failure_reason = String(max_length=500)
    completed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def initiate(
        cls,
        user_id,
        provider,
        provider_payment_id,
        amount,
        items_data,
        currency="MXN",
        metadata=None,
        approval_url=None,
    ):
        now = datetime.now(UTC)
        payment = cls(
            user_id=user_id,
            provider=provider,
            provider_payment_id=provider_payment_id,
            status=PaymentStatus.PENDING.value,
            amount=amount,
            currency=currency,
            provider_metadata=json.dumps(metadata or {}),
            approval_url=approval_url,
            created_at=now,
            updated_at=now,
        )
        for item_data in items_data:
            payment.add_items(PaymentItem(**item_data))

        payment.raise_(
            PaymentInitiated(
                payment_id=str(payment.id),
                user_id=str(user_id),
                provider=provider,
                provider_payment_id=provider_payment_id,
                amount=amount,
                currency=currency,
                initiated_at=now,
            )
        )
        return payment

    # -------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------
    @property
    def metadata_dict(self) -> dict:
        return json.loads(self.provider_metadata) if self.provider_metadata else {}

    @property
    def is_partial(self) -> bool:
        return bool(self.metadata_dict.get("is_partial"))

    @property
    def is_pending(self) -> bool:
        return PaymentStatus(self.status) in (PaymentStatus.PENDING, PaymentStatus.APPROVED)

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = PaymentStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def approve(self):
        self._assert_can_transition(PaymentStatus.APPROVED)

        now = datetime.now(UTC)
        self.status = PaymentStatus.APPROVED.value
        self.updated_at = now
        self.raise_(PaymentApproved(payment_id=str(self.id), approved_at=now))

    def complete(self):
        self._assert_can_transition(PaymentStatus.COMPLETED)

        now = datetime.now(UTC)
        self.status = PaymentStatus.COMPLETED.value
        self.completed_at = now
        self.updated_at = now
        self.raise_(
            PaymentCompleted(
                payment_id=str(self.id),
                user_id=str(self.user_id),
                provider_payment_id=self.provider_payment_id,
                amount=self.amount,
                completed_at=now,
            )
        )

    def revert_to_pending(self, reason):
        """Undo completion so a later callback can retry order creation."""
        self._assert_can_transition(PaymentStatus.PENDING)

        now = datetime.now(UTC)
        self.status = PaymentStatus.PENDING.value
        self.completed_at = None
        self.failure_reason = reason
        self.updated_at = now
        self.raise_(PaymentReverted(payment_id=str(self.id), reason=reason, reverted_at=now))

    def fail(self, reason):
        self._assert_can_transition(PaymentStatus.FAILED)

        now = datetime.now(UTC)
        self.status = PaymentStatus.FAILED.value
        self.failure_reason = reason
        self.updated_at = now
        self.raise_(PaymentFailed(payment_id=str(self.id), reason=reason, failed_at=now))

    def cancel(self, reason=None):
        self._assert_can_transition(PaymentStatus.CANCELLED)

        now = datetime.now(UTC)
        self.status = PaymentStatus.CANCELLED.value
        self.failure_reason = reason
        self.updated_at = now
        self.raise_(PaymentCancelled(payment_id=str(self.id), reason=reason, cancelled_at=now))

    def expire(self):
        self._assert_can_transition(PaymentStatus.EXPIRED)

        now = datetime.now(UTC)
        self.status = PaymentStatus.EXPIRED.value
        self.updated_at = now
        self.raise_(PaymentExpired(payment_id=str(self.id), expired_at=now))

    def link_order(self, order_id):
        if PaymentStatus(self.status) != PaymentStatus.COMPLETED:
            raise ValidationError({"status": ["Only completed payments can be linked to an order"]})
        if self.order_id and str(self.order_id) != str(order_id):
            raise ValidationError({"order_id": [f"Payment already linked to order {self.order_id}"]})

        now = datetime.now(UTC)
        self.order_id = order_id
        self.updated_at = now
        self.raise_(PaymentOrderLinked(payment_id=str(self.id), order_id=str(order_id), linked_at=now))
