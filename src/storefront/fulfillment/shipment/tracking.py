"""Tracking reconciliation — mirror carrier tracking onto shipments and orders.

The hourly sweep refreshes at most MAX_PER_RUN active shipments, in batches
of BATCH_SIZE with BATCH_PAUSE seconds between batches. A shipment whose
tracking call fails gets ``retry_count`` bumped and drops out of the sweep
after MAX_TRACKING_RETRIES failures.
"""

import time
from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import ShipmentError
from storefront.fulfillment.shipment.orchestrator import ShipmentOrchestrator, error_text, parse_carrier_datetime
from storefront.fulfillment.shipment.shipment import ACTIVE_STATUSES, Shipment, ShipmentStatus
from storefront.notifications.notification.notification import NotificationChannel, NotificationType
from storefront.ordering.order.order import Order, OrderStatus
from storefront.utils.query import fetch_all

logger = structlog.get_logger(__name__)

UPDATE_INTERVAL = timedelta(hours=1)
MAX_TRACKING_RETRIES = 3
MAX_PER_RUN = 50
BATCH_SIZE = 5
BATCH_PAUSE = 5  # seconds

CARRIER_STATUS_MAP = {
    "pending": ShipmentStatus.PENDING,
    "created": ShipmentStatus.CREATED,
    "picked_up": ShipmentStatus.IN_TRANSIT,
    "in_transit": ShipmentStatus.IN_TRANSIT,
    "out_for_delivery": ShipmentStatus.OUT_FOR_DELIVERY,
    "delivered": ShipmentStatus.DELIVERED,
    "failed_delivery": ShipmentStatus.FAILED_DELIVERY,
    "returned": ShipmentStatus.RETURNED,
    "cancelled": ShipmentStatus.CANCELLED,
    "exception": ShipmentStatus.EXCEPTION,
}

IMPORTANT_EVENT_STATUSES = {"out_for_delivery", "delivered", "failed_delivery", "exception"}

_EVENT_MESSAGES = {
    "out_for_delivery": "Your package is out for delivery and will arrive today.",
    "delivered": "Your package was delivered.",
    "failed_delivery": "The carrier could not deliver your package. They will try again.",
    "exception": "There is a problem with your shipment. We are looking into it.",
}


def map_carrier_status(status: str | None) -> ShipmentStatus:
    return CARRIER_STATUS_MAP.get((status or "").lower(), ShipmentStatus.EXCEPTION)


class TrackingReconciler:
    def __init__(self, orchestrator: ShipmentOrchestrator | None = None, sleep=time.sleep):
        self.orchestrator = orchestrator or ShipmentOrchestrator()
        self.sleep = sleep

    @property
    def repo(self):
        return current_domain.repository_for(Shipment)

    def due_shipments(self, as_of: datetime) -> list[Shipment]:
        due = []
        for status in ACTIVE_STATUSES:
            for shipment in fetch_all(self.repo, status=status.value):
                if shipment.needs_tracking_refresh(as_of, UPDATE_INTERVAL, MAX_TRACKING_RETRIES):
                    due.append(shipment)
        # Never-refreshed first, then the stalest.
        due.sort(key=lambda s: s.last_tracking_update.timestamp() if s.last_tracking_update else 0)
        return due[:MAX_PER_RUN]

    def sweep(self, as_of: datetime | None = None) -> int:
        as_of = as_of or datetime.now(UTC)
        shipments = self.due_shipments(as_of)
        logger.info("Tracking sweep started", due=len(shipments))

        for start in range(0, len(shipments), BATCH_SIZE):
            for shipment in shipments[start : start + BATCH_SIZE]:
                self.refresh(shipment, as_of=as_of)
            if start + BATCH_SIZE < len(shipments):
                self.sleep(BATCH_PAUSE)

        logger.info("Tracking sweep completed", refreshed=len(shipments))
        return len(shipments)

    def refresh(self, shipment: Shipment, as_of: datetime | None = None) -> Shipment:
        """Pull tracking for one shipment; failures are recorded on it, never raised."""
        if not shipment.tracking_number:
            return shipment

        try:
            snapshot = self.orchestrator.fetch_tracking(shipment.tracking_number)
            events = [
                {
                    "status": event["status"],
                    "description": event.get("description"),
                    "location": event.get("location"),
                    "courier": event.get("courier"),
                    "occurred_at": parse_carrier_datetime(event.get("timestamp")),
                }
                for event in snapshot.get("events", [])
                if event.get("status") and event.get("timestamp")
            ]
            previous = ShipmentStatus(shipment.status)
            appended = shipment.apply_tracking(
                map_carrier_status(snapshot.get("status")),
                events,
                actual_delivery=parse_carrier_datetime(snapshot.get("actual_delivery_date")),
                as_of=as_of,
            )
        except (ShipmentError, ValidationError, ValueError, KeyError) as exc:
            shipment.record_tracking_error(error_text(exc))
            self.repo.add(shipment)
            logger.error(
                "Tracking update failed",
                shipment_id=str(shipment.id),
                tracking_number=shipment.tracking_number,
                retry_count=shipment.retry_count,
                error=error_text(exc),
            )
            return shipment

        self.repo.add(shipment)
        if ShipmentStatus(shipment.status) != previous:
            logger.info(
                "Shipment status updated",
                shipment_id=str(shipment.id),
                previous_status=previous.value,
                new_status=shipment.status,
            )
            if ShipmentStatus(shipment.status) == ShipmentStatus.DELIVERED:
                self._deliver_order(shipment)

        self._notify(shipment, [e for e in appended if e.status in IMPORTANT_EVENT_STATUSES])
        return shipment

    def _deliver_order(self, shipment: Shipment) -> None:
        order_repo = current_domain.repository_for(Order)
        order = order_repo.get(shipment.order_id)
        if OrderStatus(order.status) == OrderStatus.SHIPPED:
            order.mark_delivered(shipment.actual_delivery)
            order_repo.add(order)

    def _notify(self, shipment: Shipment, events) -> None:
        dispatcher = self.orchestrator.dispatcher
        for event in events:
            notification_type = (
                NotificationType.ORDER_DELIVERED.value
                if event.status == "delivered"
                else NotificationType.SHIPMENT_UPDATE.value
            )
            dispatcher.notify(
                shipment.user_id,
                notification_type,
                (NotificationChannel.EMAIL.value, NotificationChannel.PUSH.value, NotificationChannel.IN_APP.value),
                title=f"Shipment {shipment.tracking_number}: {event.status.replace('_', ' ')}",
                message=_EVENT_MESSAGES[event.status],
                data={
                    "shipment_id": str(shipment.id),
                    "order_id": str(shipment.order_id),
                    "tracking_number": shipment.tracking_number,
                    "status": event.status,
                    "location": event.location,
                },
            )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@storefront.command(part_of="Shipment")
class RefreshTracking:
    """Refresh carrier tracking for one shipment."""

    shipment_id = Identifier(required=True)


@storefront.command(part_of="Shipment")
class ReconcileTracking:
    """Run the periodic tracking sweep."""

    as_of = DateTime()


@storefront.command_handler(part_of=Shipment)
class TrackingHandler:
    @handle(RefreshTracking)
    def refresh_tracking(self, command):
        shipment = current_domain.repository_for(Shipment).get(command.shipment_id)
        return TrackingReconciler().refresh(shipment).status

    @handle(ReconcileTracking)
    def reconcile_tracking(self, command):
        return TrackingReconciler().sweep(as_of=command.as_of)
