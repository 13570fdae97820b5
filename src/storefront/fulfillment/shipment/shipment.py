"""Shipment aggregate (CQRS) — one carrier shipment for one order.

The carrier owns tracking state; this aggregate mirrors it. Status changes
come from two places: generation (PENDING → CREATED, or EXCEPTION when the
carrier call fails) and the tracking sweep, which maps carrier statuses
onto ours and appends only events it has not seen before.

State Machine:
    PENDING → CREATED → IN_TRANSIT → OUT_FOR_DELIVERY → DELIVERED
    any active state → FAILED_DELIVERY | RETURNED | EXCEPTION
    {PENDING, CREATED} → CANCELLED
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from storefront.domain import storefront
from storefront.fulfillment.shipment.events import (
    ShipmentCancelled,
    ShipmentCreated,
    ShipmentFailed,
    ShipmentRequested,
    ShipmentStatusChanged,
    TrackingEventsAppended,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ShipmentStatus(Enum):
    PENDING = "pending"
    CREATED = "created"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    FAILED_DELIVERY = "failed_delivery"
    RETURNED = "returned"
    CANCELLED = "cancelled"
    EXCEPTION = "exception"


class ShipmentService(Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    SAME_DAY = "same_day"


_S = ShipmentStatus
_IN_FLIGHT = {_S.IN_TRANSIT, _S.OUT_FOR_DELIVERY, _S.DELIVERED, _S.FAILED_DELIVERY, _S.RETURNED, _S.EXCEPTION}

_VALID_TRANSITIONS = {
    _S.PENDING: {_S.CREATED, _S.EXCEPTION, _S.CANCELLED},
    _S.CREATED: _IN_FLIGHT | {_S.CANCELLED},
    _S.IN_TRANSIT: _IN_FLIGHT - {_S.IN_TRANSIT},
    _S.OUT_FOR_DELIVERY: _IN_FLIGHT - {_S.OUT_FOR_DELIVERY},
    _S.FAILED_DELIVERY: _IN_FLIGHT - {_S.FAILED_DELIVERY},
    _S.EXCEPTION: _IN_FLIGHT - {_S.EXCEPTION},
    _S.DELIVERED: set(),  # terminal
    _S.RETURNED: set(),  # terminal
    _S.CANCELLED: set(),  # terminal
}

ACTIVE_STATUSES = (_S.CREATED, _S.IN_TRANSIT, _S.OUT_FOR_DELIVERY)
CANCELLABLE_STATUSES = (_S.PENDING, _S.CREATED)

_PROGRESS = {
    _S.PENDING: 0,
    _S.CREATED: 20,
    _S.IN_TRANSIT: 60,
    _S.OUT_FOR_DELIVERY: 90,
    _S.DELIVERED: 100,
    _S.FAILED_DELIVERY: 85,
    _S.RETURNED: 100,
    _S.CANCELLED: 0,
    _S.EXCEPTION: 50,
}

_DESCRIPTIONS = {
    _S.PENDING: "Shipment pending creation",
    _S.CREATED: "Shipment created, awaiting pickup",
    _S.IN_TRANSIT: "In transit to destination",
    _S.OUT_FOR_DELIVERY: "Out for delivery today",
    _S.DELIVERED: "Delivered",
    _S.FAILED_DELIVERY: "Delivery attempt failed",
    _S.RETURNED: "Returned to origin",
    _S.CANCELLED: "Shipment cancelled",
    _S.EXCEPTION: "Shipment exception",
}


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=UTC)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Shipment")
class PackageSpec:
    """Physical package handed to the carrier."""

    weight = Float(required=True)  # kg
    length = Float(required=True)  # cm
    width = Float(required=True)
    height = Float(required=True)
    declared_value = Float(default=0.0)
    insured = Boolean(default=False)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Shipment")
class TrackingEvent:
    """A carrier tracking event; (occurred_at, status) identifies it."""

    status = String(required=True, max_length=50)
    description = String(max_length=500)
    location = String(max_length=200)
    courier = String(max_length=100)
    occurred_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@storefront.aggregate
class Shipment:
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    status = String(choices=ShipmentStatus, default=ShipmentStatus.PENDING.value)

    carrier = String(max_length=100)
    service = String(choices=ShipmentService, default=ShipmentService.STANDARD.value)
    carrier_shipment_id = String(max_length=100)
    tracking_number = String(max_length=100)
    label_url = String(max_length=1000)
    shipping_cost = Float(default=0.0)

    package = ValueObject(PackageSpec)
    origin = Text()  # JSON address
    destination = Text()  # JSON address

    estimated_delivery = DateTime()
    actual_delivery = DateTime()

    tracking_events = HasMany(TrackingEvent)
    last_tracking_update = DateTime()
    retry_count = Integer(default=0)
    last_error = String(max_length=1000)

    cancellation_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def open(cls, order_id, user_id, package, origin, destination, service=None, carrier=None):
        now = datetime.now(UTC)
        service = service or ShipmentService.STANDARD.value
        shipment = cls(
            order_id=order_id,
            user_id=user_id,
            status=ShipmentStatus.PENDING.value,
            carrier=carrier,
            service=service,
            package=package,
            origin=json.dumps(origin or {}),
            destination=json.dumps(destination or {}),
            retry_count=0,
            created_at=now,
            updated_at=now,
        )
        shipment.raise_(
            ShipmentRequested(
                shipment_id=str(shipment.id),
                order_id=str(order_id),
                user_id=str(user_id),
                service=service,
                requested_at=now,
            )
        )
        return shipment

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def origin_dict(self) -> dict:
        return json.loads(self.origin) if self.origin else {}

    @property
    def destination_dict(self) -> dict:
        return json.loads(self.destination) if self.destination else {}

    @property
    def progress(self) -> int:
        return _PROGRESS[ShipmentStatus(self.status)]

    @property
    def status_description(self) -> str:
        return _DESCRIPTIONS[ShipmentStatus(self.status)]

    @property
    def can_be_cancelled(self) -> bool:
        return ShipmentStatus(self.status) in CANCELLABLE_STATUSES

    @property
    def current_location(self) -> str | None:
        located = [e for e in self.tracking_events if e.location]
        if not located:
            return None
        return max(located, key=lambda e: _as_utc(e.occurred_at)).location

    def needs_tracking_refresh(self, as_of: datetime, interval, max_retries: int) -> bool:
        if ShipmentStatus(self.status) not in ACTIVE_STATUSES or not self.tracking_number:
            return False
        if self.retry_count >= max_retries:
            return False
        return self.last_tracking_update is None or _as_utc(self.last_tracking_update) < _as_utc(as_of) - interval

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _can_transition(self, target_status: ShipmentStatus) -> bool:
        return target_status in _VALID_TRANSITIONS.get(ShipmentStatus(self.status), set())

    def _assert_can_transition(self, target_status: ShipmentStatus) -> None:
        if not self._can_transition(target_status):
            raise ValidationError(
                {"status": [f"Cannot transition from {self.status} to {target_status.value}"]}
            )

    def mark_created(
        self, carrier_shipment_id, tracking_number, label_url=None, cost=None, estimated_delivery=None, carrier=None
    ):
        self._assert_can_transition(ShipmentStatus.CREATED)

        now = datetime.now(UTC)
        self.status = ShipmentStatus.CREATED.value
        self.carrier_shipment_id = carrier_shipment_id
        self.tracking_number = tracking_number
        self.label_url = label_url
        if cost is not None:
            self.shipping_cost = cost
        if carrier:
            self.carrier = carrier
        self.estimated_delivery = estimated_delivery
        self.last_error = None
        self.updated_at = now
        self.raise_(
            ShipmentCreated(
                shipment_id=str(self.id),
                order_id=str(self.order_id),
                carrier=self.carrier or "unknown",
                carrier_shipment_id=carrier_shipment_id,
                tracking_number=tracking_number,
                label_url=label_url,
                cost=self.shipping_cost,
                estimated_delivery=estimated_delivery,
                created_at=now,
            )
        )

    def mark_exception(self, error: str) -> None:
        """Generation failed; keep the error for the operator."""
        self._assert_can_transition(ShipmentStatus.EXCEPTION)

        now = datetime.now(UTC)
        self.status = ShipmentStatus.EXCEPTION.value
        self.last_error = error[:1000]
        self.updated_at = now
        self.raise_(
            ShipmentFailed(
                shipment_id=str(self.id),
                order_id=str(self.order_id),
                error=self.last_error,
                retry_count=self.retry_count,
                failed_at=now,
            )
        )

    def record_tracking_error(self, error: str) -> None:
        now = datetime.now(UTC)
        self.retry_count = (self.retry_count or 0) + 1
        self.last_error = error[:1000]
        self.updated_at = now
        self.raise_(
            ShipmentFailed(
                shipment_id=str(self.id),
                order_id=str(self.order_id),
                error=self.last_error,
                retry_count=self.retry_count,
                failed_at=now,
            )
        )

    def apply_tracking(self, status: ShipmentStatus, events: list[dict], actual_delivery=None, as_of=None) -> list:
        """Mirror a carrier tracking snapshot.

        Appends only events whose (occurred_at, status) pair is new and moves
        to ``status`` when that is a legal transition. Returns the appended
        TrackingEvent entities.
        """
        now = as_of or datetime.now(UTC)
        seen = {(_as_utc(e.occurred_at), e.status) for e in self.tracking_events}

        appended = []
        for event in events:
            occurred_at = _as_utc(event["occurred_at"])
            if (occurred_at, event["status"]) in seen:
                continue
            seen.add((occurred_at, event["status"]))
            tracking_event = TrackingEvent(
                status=event["status"],
                description=event.get("description"),
                location=event.get("location"),
                courier=event.get("courier"),
                occurred_at=occurred_at,
            )
            self.add_tracking_events(tracking_event)
            appended.append(tracking_event)

        if appended:
            self.raise_(TrackingEventsAppended(shipment_id=str(self.id), count=len(appended), recorded_at=now))

        previous = ShipmentStatus(self.status)
        if status != previous and self._can_transition(status):
            self.status = status.value
            self.raise_(
                ShipmentStatusChanged(
                    shipment_id=str(self.id),
                    order_id=str(self.order_id),
                    previous_status=previous.value,
                    new_status=status.value,
                    changed_at=now,
                )
            )

        if actual_delivery and not self.actual_delivery:
            self.actual_delivery = actual_delivery

        self.last_tracking_update = now
        self.updated_at = now
        return appended

    def cancel(self, reason=None):
        if not self.can_be_cancelled:
            raise ValidationError({"status": [f"Cannot cancel shipment in {self.status} state"]})

        now = datetime.now(UTC)
        self.status = ShipmentStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.updated_at = now
        self.raise_(
            ShipmentCancelled(
                shipment_id=str(self.id),
                order_id=str(self.order_id),
                reason=reason,
                cancelled_at=now,
            )
        )
