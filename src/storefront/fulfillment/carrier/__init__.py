"""Carrier adapter abstraction — pluggable shipping carrier integration."""

import os

_carrier_instance = None


def get_carrier():
    """Return the configured carrier adapter (singleton).

    Uses FakeCarrier by default. Set CARRIER_ADAPTER=http (with
    CARRIER_API_URL and CARRIER_API_KEY) to talk to the real carrier.
    """
    global _carrier_instance
    if _carrier_instance is None:
        adapter = os.environ.get("CARRIER_ADAPTER", "fake")
        if adapter == "fake":
            from storefront.fulfillment.carrier.fake_adapter import FakeCarrier

            _carrier_instance = FakeCarrier()
        elif adapter == "http":
            from storefront.fulfillment.carrier.http_adapter import DEFAULT_TIMEOUT, HttpCarrier

            _carrier_instance = HttpCarrier(
                base_url=os.environ["CARRIER_API_URL"],
                api_key=os.environ.get("CARRIER_API_KEY", ""),
                timeout=float(os.environ.get("CARRIER_TIMEOUT", DEFAULT_TIMEOUT)),
            )
        else:
            raise ValueError(f"Unknown carrier adapter: {adapter}")
    return _carrier_instance


def set_carrier(carrier) -> None:
    """Override the active carrier adapter (useful for tests)."""
    global _carrier_instance
    _carrier_instance = carrier


def reset_carrier():
    """Reset the carrier singleton (useful for testing)."""
    global _carrier_instance
    _carrier_instance = None
