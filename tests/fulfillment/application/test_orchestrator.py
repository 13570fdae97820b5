"""ShipmentOrchestrator: generation, carrier retry policy, quotes and cancellation."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from storefront.errors import AuthConfigurationError, CarrierTimeout, ServiceUnavailable
from storefront.fulfillment.shipment.cancellation import CancelShipment
from storefront.fulfillment.shipment.orchestrator import shipments_for_order
from storefront.fulfillment.shipment.shipment import ShipmentStatus
from storefront.notifications.notification.notification import Notification
from storefront.ordering.order.order import Order, OrderStatus


def _order(order):
    return current_domain.repository_for(Order).get(order.id)


def _notifications(notification_type):
    return (
        current_domain.repository_for(Notification)
        ._dao.query.filter(notification_type=notification_type)
        .all()
        .items
    )


class TestGenerate:
    def test_creates_shipment_and_ships_order(self, orchestrator, paid_order):
        order = paid_order()

        shipment = orchestrator.generate(order.id)

        assert shipment.status == ShipmentStatus.CREATED.value
        assert shipment.tracking_number.startswith("FAKE-")
        assert shipment.carrier == "fakecarrier"
        assert shipment.destination_dict["postal_code"] == "64000"
        assert shipment.package.weight == 1.0

        reloaded = _order(order)
        assert reloaded.status == OrderStatus.SHIPPED.value
        assert reloaded.tracking_number == shipment.tracking_number
        assert str(reloaded.shipment_id) == str(shipment.id)

    def test_notifies_customer(self, orchestrator, paid_order):
        order = paid_order()

        shipment = orchestrator.generate(order.id)

        shipped = _notifications("order_shipped")
        assert {n.channel for n in shipped} == {"email", "in_app"}
        assert all(shipment.tracking_number in n.message for n in shipped)

    def test_sends_order_to_carrier(self, orchestrator, carrier, paid_order):
        order = paid_order(quantity=3)

        orchestrator.generate(order.id, service="express")

        request = carrier.calls[-1]["request"]
        assert request["reference"] == order.order_number
        assert request["service"] == "express"
        assert request["items"][0]["quantity"] == 3
        assert request["destination"]["street"] == "Calle 5"

    def test_unpaid_order_is_refused(self, orchestrator, paid_order):
        order = paid_order()
        order.cancel("Changed my mind")
        current_domain.repository_for(Order).add(order)

        with pytest.raises(ValidationError):
            orchestrator.generate(order.id)

        assert shipments_for_order(order.id) == []

    def test_one_open_shipment_per_order(self, orchestrator, paid_order):
        order = paid_order()
        orchestrator.generate(order.id)

        with pytest.raises(ValidationError):
            orchestrator.generate(order.id)

    def test_order_without_address(self, orchestrator, paid_order):
        order = paid_order(metadata={"customer_email": "ana@example.com"})

        with pytest.raises(ValidationError):
            orchestrator.generate(order.id)

        assert _order(order).status == OrderStatus.PAID.value


class TestCarrierRetryPolicy:
    def test_retries_transient_failures(self, orchestrator, carrier, sleeps, paid_order):
        carrier.script(503, "timeout")
        order = paid_order()

        shipment = orchestrator.generate(order.id)

        assert shipment.status == ShipmentStatus.CREATED.value
        assert sleeps == [1, 2]

    def test_gives_up_after_four_attempts(self, orchestrator, carrier, sleeps, paid_order):
        carrier.script(503, 503, 503, "timeout")
        order = paid_order()

        with pytest.raises(ServiceUnavailable):
            orchestrator.generate(order.id)

        assert sleeps == [1, 2, 4]
        assert len([c for c in carrier.calls if c["method"] == "create_shipment"]) == 4

        (shipment,) = shipments_for_order(order.id)
        assert shipment.status == ShipmentStatus.EXCEPTION.value
        assert "unavailable" in shipment.last_error
        assert _order(order).status == OrderStatus.PROCESSING.value

    def test_connection_refused_is_retryable(self, orchestrator, carrier, sleeps, paid_order):
        carrier.script("connection")
        orchestrator.generate(paid_order().id)
        assert sleeps == [1]

    def test_credentials_rejected(self, orchestrator, carrier, sleeps, paid_order):
        carrier.script(401)
        order = paid_order()

        with pytest.raises(AuthConfigurationError):
            orchestrator.generate(order.id)

        assert sleeps == []
        (shipment,) = shipments_for_order(order.id)
        assert shipment.status == ShipmentStatus.EXCEPTION.value

    def test_client_error_is_not_retried(self, orchestrator, carrier, sleeps, paid_order):
        carrier.configure(failure_reason="Invalid postal code")
        carrier.script(400)
        order = paid_order()

        with pytest.raises(ValidationError) as exc:
            orchestrator.generate(order.id)

        assert exc.value.messages["carrier"] == ["Invalid postal code"]
        assert sleeps == []

    def test_retry_after_exception(self, orchestrator, carrier, paid_order):
        carrier.script(503, 503, 503, 503)
        order = paid_order()
        with pytest.raises(ServiceUnavailable):
            orchestrator.generate(order.id)

        shipment = orchestrator.generate(order.id)

        assert shipment.status == ShipmentStatus.CREATED.value
        assert _order(order).status == OrderStatus.SHIPPED.value


class TestQuote:
    def test_rates(self, orchestrator):
        rates = orchestrator.quote({"postal_code": "64000"}, [2, 1], declared_value=300.0)
        assert [r["service"] for r in rates] == ["standard", "express", "same_day"]

    def test_timeout(self, orchestrator, carrier, sleeps):
        carrier.script("timeout")
        with pytest.raises(CarrierTimeout):
            orchestrator.quote({"postal_code": "64000"}, [1])
        assert sleeps == []

    def test_server_error(self, orchestrator, carrier):
        carrier.script(502)
        with pytest.raises(ServiceUnavailable):
            orchestrator.quote({"postal_code": "64000"}, [1])


class TestCancel:
    def test_cancels_with_carrier(self, orchestrator, carrier, paid_order):
        shipment = orchestrator.generate(paid_order().id)

        cancelled = orchestrator.cancel(shipment.id, "Address mistake")

        assert cancelled.status == ShipmentStatus.CANCELLED.value
        assert carrier.calls[-1] == {"method": "cancel_shipment", "shipment_id": shipment.carrier_shipment_id}

    def test_command(self, orchestrator, paid_order):
        shipment = orchestrator.generate(paid_order().id)

        status = current_domain.process(CancelShipment(shipment_id=shipment.id, reason="x"), asynchronous=False)

        assert status == ShipmentStatus.CANCELLED.value

    def test_carrier_failure_keeps_shipment(self, orchestrator, carrier, paid_order):
        shipment = orchestrator.generate(paid_order().id)
        carrier.script(503)

        with pytest.raises(ServiceUnavailable):
            orchestrator.cancel(shipment.id)

        assert shipments_for_order(shipment.order_id)[0].status == ShipmentStatus.CREATED.value
