"""Payment aggregate: creation, state machine, order linking."""

import pytest
from protean.exceptions import ValidationError

from storefront.payments.payment.events import PaymentCompleted, PaymentInitiated, PaymentReverted
from storefront.payments.payment.payment import Payment, PaymentStatus


def _payment(metadata=None):
    return Payment.initiate(
        user_id="user-001",
        provider="paypal",
        provider_payment_id="PAY-123",
        amount=300.0,
        items_data=[{"product_id": "prod-1", "name": "Shirt", "size": "M", "quantity": 2, "unit_price": 150.0}],
        metadata=metadata,
    )


class TestInitiate:
    def test_pending(self):
        payment = _payment()
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.is_pending
        assert len(payment.items) == 1
        assert isinstance(payment._events[0], PaymentInitiated)

    def test_metadata_roundtrip(self):
        payment = _payment(metadata={"is_partial": True, "discount": 10})
        assert payment.metadata_dict["discount"] == 10
        assert payment.is_partial

    def test_unknown_provider(self):
        with pytest.raises(ValidationError):
            Payment.initiate(
                user_id="user-001",
                provider="bitcoin",
                provider_payment_id="X",
                amount=1.0,
                items_data=[],
            )


class TestTransitions:
    def test_complete(self):
        payment = _payment()
        payment.complete()
        assert payment.status == PaymentStatus.COMPLETED.value
        assert payment.completed_at is not None
        assert isinstance(payment._events[-1], PaymentCompleted)

    def test_approved_then_completed(self):
        payment = _payment()
        payment.approve()
        assert payment.is_pending
        payment.complete()
        assert payment.status == PaymentStatus.COMPLETED.value

    def test_cannot_complete_twice(self):
        payment = _payment()
        payment.complete()
        with pytest.raises(ValidationError):
            payment.complete()

    def test_revert_to_pending(self):
        payment = _payment()
        payment.complete()
        payment.revert_to_pending("Insufficient stock")
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.completed_at is None
        assert payment.failure_reason == "Insufficient stock"
        assert isinstance(payment._events[-1], PaymentReverted)

    def test_only_completed_can_revert(self):
        with pytest.raises(ValidationError):
            _payment().revert_to_pending("nope")

    @pytest.mark.parametrize("close", ["fail", "cancel", "expire"])
    def test_closed_states_are_terminal(self, close):
        payment = _payment()
        if close == "fail":
            payment.fail("declined")
        else:
            getattr(payment, close)()
        assert not payment.is_pending
        with pytest.raises(ValidationError):
            payment.complete()

    def test_approved_can_expire(self):
        payment = _payment()
        payment.approve()
        payment.expire()
        assert payment.status == PaymentStatus.EXPIRED.value


class TestLinkOrder:
    def test_link(self):
        payment = _payment()
        payment.complete()
        payment.link_order("order-1")
        assert payment.order_id == "order-1"

    def test_relinking_same_order_is_allowed(self):
        payment = _payment()
        payment.complete()
        payment.link_order("order-1")
        payment.link_order("order-1")
        assert payment.order_id == "order-1"

    def test_cannot_link_another_order(self):
        payment = _payment()
        payment.complete()
        payment.link_order("order-1")
        with pytest.raises(ValidationError):
            payment.link_order("order-2")

    def test_must_be_completed(self):
        with pytest.raises(ValidationError):
            _payment().link_order("order-1")
