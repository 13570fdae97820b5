"""Fake carrier adapter — deterministic carrier for testing and development.

Generates mock tracking numbers, labels and tracking snapshots. Failures can
be scripted per call with ``script``: each entry is consumed by the next
carrier call and is either an HTTP status code, ``"timeout"`` or
``"connection"``; once the script runs out calls succeed again.
"""

from collections import deque
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from storefront.fulfillment.carrier.port import (
    CarrierConnectionError,
    CarrierError,
    CarrierPort,
    CarrierTimeoutError,
)

_DAYS_BY_SERVICE = {"standard": 5, "express": 2, "same_day": 0}
_BASE_RATE = 150.0


class FakeCarrier(CarrierPort):
    """Fake carrier that always succeeds by default."""

    name = "fakecarrier"

    def __init__(self):
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
        self.calls: list[dict] = []
        self._script: deque = deque()
        self._tracking: dict[str, dict] = {}

    def configure(self, should_succeed: bool = True, failure_reason: str = "Carrier unavailable"):
        """Configure the fake carrier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def script(self, *outcomes):
        """Queue failures for the next calls, e.g. ``script(503, 503, 503, "timeout")``."""
        self._script.extend(outcomes)

    def set_tracking(self, tracking_number: str, status: str, events: list[dict], actual_delivery_date=None):
        """Fix the snapshot returned by ``get_tracking`` for a tracking number."""
        self._tracking[tracking_number] = {
            "status": status,
            "events": events,
            "actual_delivery_date": actual_delivery_date,
        }

    def _call(self, method: str, **payload):
        self.calls.append({"method": method, **payload})
        if self._script:
            outcome = self._script.popleft()
            if outcome == "timeout":
                raise CarrierTimeoutError(f"{method} timed out")
            if outcome == "connection":
                raise CarrierConnectionError("Connection refused")
            raise CarrierError(int(outcome), self.failure_reason)
        if not self.should_succeed:
            raise CarrierError(503, self.failure_reason)

    def quote(self, origin: dict, destination: dict, packages: list[dict]) -> list[dict]:
        self._call("quote", origin=origin, destination=destination, packages=packages)
        weight = sum(p.get("weight", 0) for p in packages)
        multiplier = max(1, int(-(-weight // 5)))
        return [
            {
                "carrier": self.name,
                "service": service,
                "price": round(_BASE_RATE * multiplier * factor, 2),
                "currency": "MXN",
                "estimated_days": _DAYS_BY_SERVICE[service],
                "quote_id": f"quote-{uuid4().hex[:10]}",
            }
            for service, factor in (("standard", 1.0), ("express", 1.5), ("same_day", 2.0))
        ]

    def create_shipment(self, request: dict) -> dict:
        self._call("create_shipment", request=request)
        tracking_number = f"FAKE-{uuid4().hex[:12].upper()}"
        shipment_id = f"ship-{uuid4().hex[:8]}"
        days = _DAYS_BY_SERVICE.get(request.get("service"), 5)
        return {
            "shipment_id": shipment_id,
            "tracking_number": tracking_number,
            "label_url": f"https://fake-carrier.example.com/labels/{shipment_id}.pdf",
            "status": "created",
            "estimated_delivery": (datetime.now(UTC) + timedelta(days=days)).isoformat(),
            "cost": request.get("cost"),
        }

    def get_tracking(self, tracking_number: str) -> dict:
        self._call("get_tracking", tracking_number=tracking_number)
        if tracking_number in self._tracking:
            return self._tracking[tracking_number]

        return {
            "status": "in_transit",
            "events": [
                {
                    "status": "picked_up",
                    "location": "Warehouse, CDMX",
                    "description": "Package picked up by carrier",
                    "timestamp": "2026-01-01T10:00:00+00:00",
                },
                {
                    "status": "in_transit",
                    "location": "Distribution Center, Querétaro",
                    "description": "Package in transit",
                    "timestamp": "2026-01-01T18:00:00+00:00",
                },
            ],
            "actual_delivery_date": None,
        }

    def cancel_shipment(self, shipment_id: str) -> dict:
        self._call("cancel_shipment", shipment_id=shipment_id)
        return {"cancelled": True, "reason": "Shipment cancelled successfully"}

    def reset(self):
        self.calls.clear()
        self._script.clear()
        self._tracking.clear()
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
