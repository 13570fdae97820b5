"""TrackingReconciler: mirroring carrier tracking onto shipments and orders."""

from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain

from storefront.fulfillment.shipment import tracking
from storefront.fulfillment.shipment.packaging import size_package
from storefront.fulfillment.shipment.shipment import Shipment, ShipmentStatus
from storefront.fulfillment.shipment.tracking import (
    ReconcileTracking,
    RefreshTracking,
    TrackingReconciler,
    map_carrier_status,
)
from storefront.notifications.notification.notification import Notification
from storefront.ordering.order.order import Order, OrderStatus

AS_OF = datetime(2026, 1, 2, 9, 0, tzinfo=UTC)


@pytest.fixture()
def reconciler(orchestrator, sleeps):
    return TrackingReconciler(orchestrator=orchestrator, sleep=sleeps.append)


@pytest.fixture()
def shipped(orchestrator, paid_order):
    def _make(**kwargs):
        return orchestrator.generate(paid_order(**kwargs).id)

    return _make


def _reload(shipment):
    return current_domain.repository_for(Shipment).get(shipment.id)


def _delivered_snapshot(carrier, tracking_number):
    carrier.set_tracking(
        tracking_number,
        "delivered",
        [
            {"status": "picked_up", "location": "Warehouse, CDMX", "timestamp": "2026-01-01T10:00:00+00:00"},
            {"status": "out_for_delivery", "location": "Monterrey", "timestamp": "2026-01-03T08:00:00+00:00"},
            {"status": "delivered", "location": "Monterrey", "timestamp": "2026-01-03T12:30:00Z"},
        ],
        actual_delivery_date="2026-01-03T12:30:00Z",
    )


class TestStatusMapping:
    @pytest.mark.parametrize(
        "carrier_status, expected",
        [
            ("picked_up", ShipmentStatus.IN_TRANSIT),
            ("OUT_FOR_DELIVERY", ShipmentStatus.OUT_FOR_DELIVERY),
            ("delivered", ShipmentStatus.DELIVERED),
            ("lost_in_space", ShipmentStatus.EXCEPTION),
            (None, ShipmentStatus.EXCEPTION),
        ],
    )
    def test_map(self, carrier_status, expected):
        assert map_carrier_status(carrier_status) == expected


class TestRefresh:
    def test_in_transit(self, reconciler, shipped):
        shipment = shipped()

        reconciler.refresh(shipment, as_of=AS_OF)

        reloaded = _reload(shipment)
        assert reloaded.status == ShipmentStatus.IN_TRANSIT.value
        assert len(reloaded.tracking_events) == 2
        assert reloaded.current_location == "Distribution Center, Querétaro"
        assert reloaded.last_tracking_update.replace(tzinfo=UTC) == AS_OF

    def test_events_are_not_duplicated(self, reconciler, shipped):
        shipment = shipped()

        reconciler.refresh(shipment, as_of=AS_OF)
        reconciler.refresh(_reload(shipment), as_of=AS_OF + timedelta(hours=2))

        assert len(_reload(shipment).tracking_events) == 2

    def test_delivered_completes_order(self, reconciler, carrier, shipped):
        shipment = shipped()
        _delivered_snapshot(carrier, shipment.tracking_number)

        reconciler.refresh(shipment, as_of=AS_OF)

        reloaded = _reload(shipment)
        assert reloaded.status == ShipmentStatus.DELIVERED.value
        assert reloaded.actual_delivery.replace(tzinfo=UTC) == datetime(2026, 1, 3, 12, 30, tzinfo=UTC)

        order = current_domain.repository_for(Order).get(shipment.order_id)
        assert order.status == OrderStatus.DELIVERED.value

    def test_important_events_notify(self, reconciler, carrier, shipped):
        shipment = shipped()
        _delivered_snapshot(carrier, shipment.tracking_number)

        reconciler.refresh(shipment, as_of=AS_OF)

        notifications = current_domain.repository_for(Notification)._dao.query.all().items
        types = {(n.notification_type, n.channel) for n in notifications}
        assert ("order_delivered", "push") in types
        assert ("shipment_update", "in_app") in types
        assert not any("picked up" in n.title for n in notifications)

    def test_carrier_error_is_recorded(self, reconciler, carrier, shipped):
        shipment = shipped()
        carrier.script(503)

        reconciler.refresh(shipment, as_of=AS_OF)

        reloaded = _reload(shipment)
        assert reloaded.status == ShipmentStatus.CREATED.value
        assert reloaded.retry_count == 1
        assert "503" in reloaded.last_error

    def test_timeout_is_recorded(self, reconciler, carrier, shipped):
        shipment = shipped()
        carrier.script("timeout")

        reconciler.refresh(shipment, as_of=AS_OF)

        assert _reload(shipment).retry_count == 1

    def test_rejected_lookup_is_recorded(self, reconciler, carrier, shipped):
        shipment = shipped()
        carrier.failure_reason = "Unknown tracking number"
        carrier.script(404)

        reconciler.refresh(shipment, as_of=AS_OF)

        reloaded = _reload(shipment)
        assert reloaded.retry_count == 1
        assert "Unknown tracking number" in reloaded.last_error

    def test_command(self, shipped):
        shipment = shipped()

        status = current_domain.process(RefreshTracking(shipment_id=shipment.id), asynchronous=False)

        assert status == ShipmentStatus.IN_TRANSIT.value


class TestSweep:
    def test_refreshes_due_shipments(self, reconciler, shipped):
        first = shipped()
        second = shipped(user_id="user-002")

        assert reconciler.sweep(as_of=AS_OF) == 2

        assert _reload(first).status == ShipmentStatus.IN_TRANSIT.value
        assert _reload(second).status == ShipmentStatus.IN_TRANSIT.value

    def test_skips_recently_refreshed(self, reconciler, shipped):
        shipped()
        reconciler.sweep(as_of=AS_OF)

        assert reconciler.sweep(as_of=AS_OF + timedelta(minutes=30)) == 0
        assert reconciler.sweep(as_of=AS_OF + timedelta(hours=2)) == 1

    def test_drops_shipment_after_repeated_errors(self, reconciler, carrier, shipped):
        shipment = shipped()
        carrier.script(503, 503, 503)

        for hour in range(3):
            reconciler.sweep(as_of=AS_OF + timedelta(hours=hour))

        assert _reload(shipment).retry_count == 3
        assert reconciler.sweep(as_of=AS_OF + timedelta(hours=5)) == 0

    def test_pauses_between_batches(self, reconciler, shipped, sleeps):
        for n in range(7):
            shipped(user_id=f"user-{n}")
        sleeps.clear()

        assert reconciler.sweep(as_of=AS_OF) == 7

        assert sleeps == [tracking.BATCH_PAUSE]

    def test_caps_shipments_per_run(self, reconciler, shipped, monkeypatch):
        monkeypatch.setattr(tracking, "MAX_PER_RUN", 2)
        for n in range(3):
            shipped(user_id=f"user-{n}")

        assert reconciler.sweep(as_of=AS_OF) == 2
        assert reconciler.sweep(as_of=AS_OF) == 1

    def test_rejected_lookup_does_not_stop_the_sweep(self, reconciler, carrier, shipped):
        first = shipped()
        second = shipped(user_id="user-002")
        carrier.script(404)

        assert reconciler.sweep(as_of=AS_OF) == 2

        reloaded = [_reload(first), _reload(second)]
        assert sorted(s.status for s in reloaded) == [ShipmentStatus.CREATED.value, ShipmentStatus.IN_TRANSIT.value]
        assert sum(s.retry_count for s in reloaded) == 1

    def test_finds_due_shipments_past_the_first_page(self, reconciler, shipped):
        repo = current_domain.repository_for(Shipment)
        for n in range(120):
            filler = Shipment.open(
                order_id=f"order-{n}",
                user_id="user-001",
                package=size_package([1], 150.0),
                origin={},
                destination={},
            )
            filler.mark_created(f"ship-{n}", f"TRK-{n}")
            filler.apply_tracking(ShipmentStatus.CREATED, [], as_of=AS_OF)
            repo.add(filler)
        due = shipped()

        assert reconciler.sweep(as_of=AS_OF + timedelta(minutes=30)) == 1

        assert _reload(due).status == ShipmentStatus.IN_TRANSIT.value

    def test_command(self, shipped):
        shipped()

        refreshed = current_domain.process(ReconcileTracking(as_of=AS_OF), asynchronous=False)

        assert refreshed == 1
