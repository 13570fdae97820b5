"""Payment gateway selection.

``PAYMENT_GATEWAY`` picks the adapter; only ``fake`` ships with the
storefront and simulates the hosted checkout of ``PAYMENT_PROVIDER``
(paypal by default). A real provider client is installed at startup with
``set_gateway``.
"""

import os

from storefront.errors import ConfigurationError
from storefront.payments.gateway.port import PaymentGateway

_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    global _gateway
    if _gateway is None:
        adapter = os.environ.get("PAYMENT_GATEWAY", "fake")
        if adapter != "fake":
            raise ConfigurationError(f"No payment gateway adapter named {adapter!r}; install one with set_gateway()")

        from storefront.payments.gateway.fake_adapter import FakeGateway

        _gateway = FakeGateway(provider=os.environ.get("PAYMENT_PROVIDER", "paypal"))
    return _gateway


def set_gateway(gateway: PaymentGateway) -> None:
    global _gateway
    _gateway = gateway


def reset_gateway() -> None:
    global _gateway
    _gateway = None
