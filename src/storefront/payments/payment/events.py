"""Domain events for the Payment aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from storefront.domain import storefront


@storefront.event(part_of="Payment")
class PaymentInitiated:
    __version__ = 1

    payment_id: Identifier(required=True)
    user_id: Identifier(required=True)
    provider: String(required=True)
    provider_payment_id: String(required=True)
    amount: Float(required=True)
    currency: String(required=True)
    initiated_at: DateTime(required=True)


@storefront.event(part_of="Payment")
class PaymentApproved:
    __version__ = 1

    payment_id: Identifier(required=True)
    approved_at: DateTime(required=True)


@storefront.event(part_of="Payment")
class PaymentCompleted:
    __version__ = 1

    payment_id: Identifier(required=True)
    user_id: Identifier(required=True)
    provider_payment_id: String(required=True)
    amount: Float(required=True)
    completed_at: DateTime(required=True)


@storefront.event(part_of="Payment")
class PaymentReverted:
    """A completed payment went back to pending because its order could not be created."""

    __version__ = 1

    payment_id: Identifier(required=True)
    reason: String(required=True)
    reverted_at: DateTime(required=True)


@storefront.event(part_of="Payment")
class PaymentFailed:
    __version__ = 1

    payment_id: Identifier(required=True)
    reason: String(required=True)
    failed_at: DateTime(required=True)


@storefront.event(part_of="Payment")
class PaymentCancelled:
    __version__ = 1

    payment_id: Identifier(required=True)
    reason: String()
    cancelled_at: DateTime(required=True)


@storefront.event(part_of="Payment")
class PaymentExpired:
    __version__ = 1

    payment_id: Identifier(required=True)
    expired_at: DateTime(required=True)


@storefront.event(part_of="Payment")
class PaymentOrderLinked:
    __version__ = 1

    payment_id: Identifier(required=True)
    order_id: Identifier(required=True)
    linked_at: DateTime(required=True)
