"""PaymentReconciler — gateway callbacks in, orders out.

Entry point of the saga. A success callback flips the payment from PENDING
to COMPLETED exactly once and hands it to the OrderMaterializer; if that
fails the payment goes back to PENDING so the next callback (or webhook)
can retry. Every outcome ends in a redirect back to the storefront.
"""

import os
from dataclasses import dataclass
from urllib.parse import urlencode
from uuid import uuid4

import structlog
from protean.utils.globals import current_domain

from storefront.errors import IdempotencyViolation, StockConflictError
from storefront.ordering.cart.cart import Cart
from storefront.ordering.cart.management import cart_for
from storefront.ordering.order.materializer import CLAIM_TTL, OrderMaterializer, order_for_payment
from storefront.payments.gateway import get_gateway
from storefront.payments.payment.payment import Payment, PaymentStatus
from storefront.shared.keys import get_key_store

logger = structlog.get_logger(__name__)

SUCCESS = "success"
FAILURE = "failure"
PENDING = "pending"

# Webhook status vocabulary of both providers, folded into callback outcomes.
_WEBHOOK_OUTCOMES = {
    "approved": SUCCESS,
    "completed": SUCCESS,
    "captured": SUCCESS,
    "rejected": FAILURE,
    "failed": FAILURE,
    "denied": FAILURE,
    "cancelled": FAILURE,
    "pending": PENDING,
    "in_process": PENDING,
}


@dataclass(frozen=True)
class CallbackResult:
    outcome: str  # success | failure | pending | error
    redirect_url: str
    payment_id: str | None = None
    order_id: str | None = None
    reason: str | None = None


def payment_by_reference(provider_payment_id) -> Payment | None:
    payments = (
        current_domain.repository_for(Payment)
        ._dao.query.filter(provider_payment_id=str(provider_payment_id))
        .all()
        .items
    )
    return payments[0] if payments else None


def webhook_outcome(status: str) -> str:
    return _WEBHOOK_OUTCOMES.get((status or "").lower(), PENDING)


class PaymentReconciler:
    def __init__(self, materializer: OrderMaterializer | None = None, keys=None, gateway=None, frontend_url=None):
        self.materializer = materializer or OrderMaterializer()
        self.keys = keys or get_key_store()
        self.gateway = gateway or get_gateway()
        self.frontend_url = (frontend_url or os.environ.get("FRONTEND_BASE_URL", "http://localhost:3000")).rstrip("/")

    @property
    def repo(self):
        return current_domain.repository_for(Payment)

    def handle_callback(self, provider_payment_id, outcome, reason=None) -> CallbackResult:
        payment = payment_by_reference(provider_payment_id)
        if payment is None:
            logger.warning("Callback for unknown payment", provider_payment_id=str(provider_payment_id))
            return self._redirect("error", reason="payment_not_found")

        if outcome == SUCCESS:
            return self._on_success(payment)
        if outcome == FAILURE:
            return self._on_failure(payment, reason or "Payment rejected by provider")
        return self._redirect(PENDING, payment)

    # -------------------------------------------------------------------
    # Outcomes
    # -------------------------------------------------------------------
    def _on_success(self, payment: Payment) -> CallbackResult:
        status = PaymentStatus(payment.status)
        claim_key = f"payment-complete:{payment.id}"
        if status == PaymentStatus.COMPLETED:
            order = order_for_payment(payment.id)
            if order is not None:
                logger.info("Duplicate success callback ignored", payment_id=str(payment.id))
                return self._redirect(SUCCESS, payment, order_id=str(order.id))
            # Captured by a worker that never got as far as the order.
            logger.warning("Completed payment has no order, materializing", payment_id=str(payment.id))
            return self._materialize(payment, claim_key)
        if not payment.is_pending:
            logger.warning("Success callback for closed payment", payment_id=str(payment.id), status=status.value)
            return self._redirect(FAILURE, payment, reason=f"payment_{status.value}")

        if not self.keys.claim(claim_key, owner=uuid4().hex, ttl=CLAIM_TTL):
            logger.info("Payment completion already in progress", payment_id=str(payment.id))
            return self._redirect(PENDING, payment)

        capture = self.gateway.capture(payment.provider_payment_id)
        if not capture.success:
            self.keys.release(claim_key)
            if capture.status == "pending":
                return self._redirect(PENDING, payment)
            return self._on_failure(payment, capture.failure_reason or "Capture failed")

        payment.complete()
        self.repo.add(payment)
        return self._materialize(payment, claim_key)

    def _materialize(self, payment: Payment, claim_key: str) -> CallbackResult:
        try:
            order = self.materializer.materialize(payment)
        except IdempotencyViolation:
            logger.info("Order materialization already in progress", payment_id=str(payment.id))
            return self._redirect(PENDING, payment)
        except Exception as exc:
            payment.revert_to_pending(str(exc))
            self.repo.add(payment)
            self.keys.release(claim_key)
            logger.error(
                "Order materialization failed; payment reverted to pending",
                payment_id=str(payment.id),
                error=str(exc),
                error_type=type(exc).__name__,
            )
            reason = "out_of_stock" if isinstance(exc, StockConflictError) else "order_failed"
            return self._redirect(FAILURE, payment, reason=reason)

        self._settle_cart(payment)
        return self._redirect(SUCCESS, payment, order_id=str(order.id))

    def _on_failure(self, payment: Payment, reason: str) -> CallbackResult:
        if payment.is_pending:
            payment.fail(reason)
            self.repo.add(payment)
            logger.info("Payment failed", payment_id=str(payment.id), reason=reason)
        return self._redirect(FAILURE, payment, reason="payment_failed")

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _settle_cart(self, payment: Payment) -> None:
        """Empty the cart (or take out the purchased lines). Best-effort."""
        try:
            cart = cart_for(payment.user_id)
            if cart is None:
                return
            if payment.is_partial:
                cart.remove_purchased(
                    [{"product_id": str(i.product_id), "size": i.size, "quantity": i.quantity} for i in payment.items]
                )
            else:
                cart.clear()
            current_domain.repository_for(Cart).add(cart)
        except Exception:
            logger.exception("Cart cleanup failed", payment_id=str(payment.id), user_id=str(payment.user_id))

    def _redirect(self, outcome, payment=None, order_id=None, reason=None) -> CallbackResult:
        params = {}
        if payment is not None:
            params["payment_id"] = str(payment.id)
        if order_id:
            params["order_id"] = order_id
        if reason:
            params["reason"] = reason

        path = {SUCCESS: "checkout/success", FAILURE: "checkout/failure", PENDING: "checkout/pending"}.get(
            outcome, "checkout/error"
        )
        url = f"{self.frontend_url}/{path}"
        if params:
            url = f"{url}?{urlencode(params)}"

        return CallbackResult(
            outcome=outcome,
            redirect_url=url,
            payment_id=str(payment.id) if payment is not None else None,
            order_id=order_id,
            reason=reason,
        )
