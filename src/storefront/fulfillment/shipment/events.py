"""Shipment domain events — immutable facts about carrier shipments."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Shipment")
class ShipmentRequested:
    """A shipment was opened for a paid order."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    service = String(required=True)
    requested_at = DateTime(required=True)


@storefront.event(part_of="Shipment")
class ShipmentCreated:
    """The carrier accepted the shipment and issued a tracking number."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    carrier = String(required=True)
    carrier_shipment_id = String(required=True)
    tracking_number = String(required=True)
    label_url = String()
    cost = Float()
    estimated_delivery = DateTime()
    created_at = DateTime(required=True)


@storefront.event(part_of="Shipment")
class ShipmentStatusChanged:
    """Carrier tracking moved the shipment to a new status."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@storefront.event(part_of="Shipment")
class TrackingEventsAppended:
    """New carrier tracking events were recorded."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    count = Integer(required=True)
    recorded_at = DateTime(required=True)


@storefront.event(part_of="Shipment")
class ShipmentFailed:
    """Shipment generation or tracking hit an error."""

    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    error = String(required=True)
    retry_count = Integer()
    failed_at = DateTime(required=True)


@storefront.event(part_of="Shipment")
class ShipmentCancelled:
    __version__ = 1

    shipment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String()
    cancelled_at = DateTime(required=True)
