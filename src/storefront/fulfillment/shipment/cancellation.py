"""Shipment cancellation — command and handler."""

from protean import handle
from protean.fields import Identifier, String

from storefront.domain import storefront
from storefront.fulfillment.shipment.orchestrator import ShipmentOrchestrator
from storefront.fulfillment.shipment.shipment import Shipment


@storefront.command(part_of="Shipment")
class CancelShipment:
    """Cancel a shipment the carrier has not picked up yet."""

    shipment_id = Identifier(required=True)
    reason = String(max_length=500)


@storefront.command_handler(part_of=Shipment)
class CancelShipmentHandler:
    @handle(CancelShipment)
    def cancel_shipment(self, command):
        shipment = ShipmentOrchestrator().cancel(command.shipment_id, reason=command.reason)
        return shipment.status
