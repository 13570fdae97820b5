"""Carrier port — abstract interface for shipping carrier integrations.

All carrier adapters must implement this interface. The domain code
programs against the port; adapters are swapped via configuration.

Adapters report transport problems with the exceptions below and leave
retry decisions to the ShipmentOrchestrator.
"""

from abc import ABC, abstractmethod


class CarrierError(Exception):
    """The carrier answered with an error status."""

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        self.message = message
        super().__init__(f"Carrier responded {status_code}: {message}" if message else f"Carrier responded {status_code}")


class CarrierTimeoutError(Exception):
    """The carrier did not answer within the configured timeout."""


class CarrierConnectionError(Exception):
    """The carrier could not be reached (connection refused, DNS, reset)."""


class CarrierPort(ABC):
    """Abstract interface for carrier adapters."""

    @abstractmethod
    def quote(self, origin: dict, destination: dict, packages: list[dict]) -> list[dict]:
        """Rate a shipment.

        Returns:
            list of dicts with keys: carrier, service, price, currency,
            estimated_days, quote_id
        """
        ...

    @abstractmethod
    def create_shipment(self, request: dict) -> dict:
        """Create a shipment with the carrier.

        Returns:
            dict with keys: shipment_id, tracking_number, label_url, status,
            estimated_delivery
        """
        ...

    @abstractmethod
    def get_tracking(self, tracking_number: str) -> dict:
        """Get current tracking status for a shipment.

        Returns:
            dict with keys: status, events (list of dicts with status,
            description, location, timestamp), actual_delivery_date
        """
        ...

    @abstractmethod
    def cancel_shipment(self, shipment_id: str) -> dict:
        """Cancel a shipment with the carrier.

        Returns:
            dict with keys: cancelled (bool), reason (str)
        """
        ...
