"""Configurable fake payment gateway for development and testing.

This adapter simulates a hosted-checkout provider without any external
calls. It can be configured at runtime to succeed or fail, which is used by
``/payments/gateway/configure`` for manual API testing and by the test
suite for predictable outcomes.
"""

from uuid import uuid4

from storefront.payments.gateway.port import CaptureResult, CheckoutResult, PaymentGateway


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, provider: str = "paypal") -> None:
        self.provider = provider
        self.should_succeed: bool = True
        self.failure_reason: str = "Payment declined"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Payment declined") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_checkout(self, items: list[dict], amount: float, currency: str, return_urls: dict) -> CheckoutResult:
        self.calls.append(
            {
                "method": "create_checkout",
                "items": items,
                "amount": amount,
                "currency": currency,
                "return_urls": return_urls,
            }
        )
        checkout_id = f"fake_{self.provider}_{uuid4().hex[:12]}"
        return CheckoutResult(
            provider_payment_id=checkout_id,
            approval_url=f"https://checkout.example.test/{self.provider}/{checkout_id}",
        )

    def capture(self, provider_payment_id: str) -> CaptureResult:
        self.calls.append({"method": "capture", "provider_payment_id": provider_payment_id})

        if self.should_succeed:
            return CaptureResult(success=True, status="completed")
        return CaptureResult(success=False, status="failed", failure_reason=self.failure_reason)

    def cancel(self, provider_payment_id: str) -> bool:
        self.calls.append({"method": "cancel", "provider_payment_id": provider_payment_id})
        return True

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:  # noqa: ARG002
        return signature == "test-signature"
