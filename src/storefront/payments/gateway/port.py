"""Payment gateway port (abstract interface).

Hosted-checkout contract shared by the PayPal and MercadoPago integrations:
create a checkout the customer is redirected to, capture it when the
customer comes back, cancel it if abandoned, and verify webhook signatures.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class CheckoutResult:
    """A checkout session created at the provider."""

    provider_payment_id: str
    approval_url: str


@dataclass(frozen=True)
class CaptureResult:
    """Outcome of capturing an approved checkout."""

    success: bool
    status: str  # completed | pending | failed
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_checkout(
        self,
        items: list[dict],
        amount: float,
        currency: str,
        return_urls: dict,
    ) -> CheckoutResult:
        """Create a hosted checkout for ``items`` totalling ``amount``."""
        ...

    @abstractmethod
    def capture(self, provider_payment_id: str) -> CaptureResult:
        """Capture the funds of an approved checkout."""
        ...

    @abstractmethod
    def cancel(self, provider_payment_id: str) -> bool:
        """Void a checkout that will not be completed."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...
