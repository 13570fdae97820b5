"""HttpCarrier against a mocked carrier API (httpx.MockTransport)."""

import json

import httpx
import pytest

from storefront.fulfillment.carrier import set_carrier
from storefront.fulfillment.carrier.http_adapter import HttpCarrier
from storefront.fulfillment.carrier.port import CarrierConnectionError, CarrierError, CarrierTimeoutError
from storefront.fulfillment.shipment.orchestrator import ShipmentOrchestrator


def _carrier(handler):
    return HttpCarrier("https://carrier.example.test/", "secret-key", timeout=5.0, transport=httpx.MockTransport(handler))


class TestRequests:
    def test_create_shipment(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                201,
                json={
                    "data": {
                        "shipmentId": "shp_123",
                        "trackingNumber": "794611",
                        "label": "https://carrier.example.test/labels/shp_123.pdf",
                        "estimatedDelivery": "2026-01-06T18:00:00Z",
                        "totalPrice": 189.5,
                    }
                },
            )

        result = _carrier(handler).create_shipment({"reference": "ORD-1", "service": "standard"})

        assert seen["path"] == "/v2/shipments"
        assert seen["auth"] == "Bearer secret-key"
        assert seen["body"]["reference"] == "ORD-1"
        assert result["shipment_id"] == "shp_123"
        assert result["tracking_number"] == "794611"
        assert result["cost"] == 189.5
        assert result["status"] == "created"

    def test_quote(self):
        def handler(request):
            assert request.url.path == "/v2/shipments/rate"
            return httpx.Response(
                200,
                json={
                    "data": [
                        {"carrier": "estafeta", "service": "express", "totalPrice": "210.00", "id": "q-1", "deliveryEstimate": 2}
                    ]
                },
            )

        (rate,) = _carrier(handler).quote({}, {"postal_code": "64000"}, [{"weight": 1.0}])

        assert rate == {
            "carrier": "estafeta",
            "service": "express",
            "price": 210.0,
            "currency": "MXN",
            "estimated_days": 2,
            "quote_id": "q-1",
        }

    def test_tracking(self):
        def handler(request):
            assert request.method == "GET"
            assert request.url.path == "/v2/tracking/794611"
            return httpx.Response(
                200,
                json={
                    "data": {
                        "status": "delivered",
                        "deliveredAt": "2026-01-03T12:30:00Z",
                        "events": [{"status": "delivered", "location": "Monterrey", "date": "2026-01-03T12:30:00Z"}],
                    }
                },
            )

        snapshot = _carrier(handler).get_tracking("794611")

        assert snapshot["status"] == "delivered"
        assert snapshot["actual_delivery_date"] == "2026-01-03T12:30:00Z"
        assert snapshot["events"][0]["timestamp"] == "2026-01-03T12:30:00Z"

    def test_cancel(self):
        def handler(request):
            assert request.url.path == "/v2/shipments/shp_123/cancel"
            return httpx.Response(200, json={"data": {"cancelled": True, "message": "ok"}})

        assert _carrier(handler).cancel_shipment("shp_123") == {"cancelled": True, "reason": "ok"}


class TestFailures:
    def test_error_status_carries_message(self):
        def handler(request):
            return httpx.Response(400, json={"message": "Invalid postal code"})

        with pytest.raises(CarrierError) as exc:
            _carrier(handler).create_shipment({})

        assert exc.value.status_code == 400
        assert exc.value.message == "Invalid postal code"

    def test_error_status_without_json(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        with pytest.raises(CarrierError) as exc:
            _carrier(handler).get_tracking("794611")

        assert exc.value.status_code == 502
        assert exc.value.message == "Bad Gateway"

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(CarrierTimeoutError):
            _carrier(handler).create_shipment({})

    def test_connection_refused(self):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        with pytest.raises(CarrierConnectionError):
            _carrier(handler).quote({}, {}, [])


class TestGenerationOverHttp:
    def test_orchestrator_uses_installed_carrier(self, paid_order, sleeps):
        attempts = []

        def handler(request):
            attempts.append(request.url.path)
            if len(attempts) == 1:
                return httpx.Response(503, json={"message": "Try again"})
            return httpx.Response(
                201,
                json={"data": {"shipmentId": "shp_9", "trackingNumber": "794699", "label": "https://l/9.pdf"}},
            )

        set_carrier(_carrier(handler))
        order = paid_order()

        shipment = ShipmentOrchestrator(sleep=sleeps.append).generate(order.id)

        assert shipment.tracking_number == "794699"
        assert shipment.carrier_shipment_id == "shp_9"
        assert attempts == ["/v2/shipments", "/v2/shipments"]
        assert sleeps == [1]
