"""HTTP carrier adapter — talks to the carrier's REST API with httpx.

Transport failures are translated into the carrier port exceptions:
timeouts into CarrierTimeoutError, refused/reset connections into
CarrierConnectionError and non-2xx answers into CarrierError with the
status code. Nothing is retried here.
"""

import httpx
import structlog

from storefront.fulfillment.carrier.port import (
    CarrierConnectionError,
    CarrierError,
    CarrierPort,
    CarrierTimeoutError,
)

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 60.0


class HttpCarrier(CarrierPort):
    def __init__(self, base_url: str, api_key: str, timeout: float = DEFAULT_TIMEOUT, transport=None):
        self.client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def _request(self, method: str, path: str, json=None) -> dict:
        try:
            response = self.client.request(method, path, json=json)
        except httpx.TimeoutException as exc:
            raise CarrierTimeoutError(f"{method} {path} timed out") from exc
        except (httpx.ConnectError, httpx.RemoteProtocolError) as exc:
            raise CarrierConnectionError(str(exc)) from exc

        if response.is_error:
            try:
                message = response.json().get("message", "")
            except ValueError:
                message = response.text[:200]
            logger.warning("Carrier error response", method=method, path=path, status_code=response.status_code)
            raise CarrierError(response.status_code, message)

        return response.json() if response.content else {}

    def quote(self, origin: dict, destination: dict, packages: list[dict]) -> list[dict]:
        body = self._request(
            "POST",
            "/v2/shipments/rate",
            json={"origin": origin, "destination": destination, "packages": packages},
        )
        return [
            {
                "carrier": rate.get("carrier"),
                "service": rate.get("service"),
                "price": float(rate.get("totalPrice") or rate.get("price") or 0.0),
                "currency": rate.get("currency", "MXN"),
                "estimated_days": rate.get("deliveryEstimate") or rate.get("estimated_days"),
                "quote_id": rate.get("id") or rate.get("quote_id"),
            }
            for rate in body.get("data", body.get("rates", []))
        ]

    def create_shipment(self, request: dict) -> dict:
        body = self._request("POST", "/v2/shipments", json=request)
        data = body.get("data", body)
        return {
            "shipment_id": data.get("shipmentId") or data.get("id"),
            "tracking_number": data.get("trackingNumber") or data.get("tracking_number"),
            "label_url": data.get("label") or data.get("label_url"),
            "status": data.get("status", "created"),
            "estimated_delivery": data.get("estimatedDelivery") or data.get("estimated_delivery"),
            "cost": data.get("totalPrice"),
        }

    def get_tracking(self, tracking_number: str) -> dict:
        body = self._request("GET", f"/v2/tracking/{tracking_number}")
        data = body.get("data", body)
        return {
            "status": data.get("status"),
            "events": [
                {
                    "status": event.get("status"),
                    "description": event.get("description"),
                    "location": event.get("location"),
                    "courier": event.get("courier"),
                    "timestamp": event.get("timestamp") or event.get("date"),
                }
                for event in data.get("events", [])
            ],
            "actual_delivery_date": data.get("deliveredAt") or data.get("actual_delivery_date"),
        }

    def cancel_shipment(self, shipment_id: str) -> dict:
        body = self._request("POST", f"/v2/shipments/{shipment_id}/cancel")
        data = body.get("data", body)
        return {"cancelled": bool(data.get("cancelled", True)), "reason": data.get("message", "")}

    def close(self):
        self.client.close()
