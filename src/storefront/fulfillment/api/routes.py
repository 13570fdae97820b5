"""FastAPI routes for shipments — quotes, generation, tracking, cancellation."""

import os

from fastapi import APIRouter, HTTPException
from protean.utils.globals import current_domain

from storefront.fulfillment.api.schemas import (
    CancelShipmentRequest,
    CarrierConfigResponse,
    ConfigureCarrierRequest,
    GenerateShipmentRequest,
    QuoteRequest,
    QuoteResponse,
    RateResponse,
    ShipmentResponse,
    StatusResponse,
    TrackingEventResponse,
)
from storefront.fulfillment.carrier import get_carrier
from storefront.fulfillment.carrier.fake_adapter import FakeCarrier
from storefront.fulfillment.shipment.cancellation import CancelShipment
from storefront.fulfillment.shipment.orchestrator import ShipmentOrchestrator
from storefront.fulfillment.shipment.shipment import Shipment
from storefront.fulfillment.shipment.tracking import RefreshTracking

shipment_router = APIRouter(prefix="/shipments", tags=["shipments"])


def _shipment_response(shipment: Shipment) -> ShipmentResponse:
    events = sorted(shipment.tracking_events, key=lambda e: str(e.occurred_at), reverse=True)
    return ShipmentResponse(
        shipment_id=str(shipment.id),
        order_id=str(shipment.order_id),
        status=shipment.status,
        status_description=shipment.status_description,
        progress=shipment.progress,
        carrier=shipment.carrier,
        service=shipment.service,
        tracking_number=shipment.tracking_number,
        label_url=shipment.label_url,
        shipping_cost=shipment.shipping_cost or 0.0,
        estimated_delivery=str(shipment.estimated_delivery) if shipment.estimated_delivery else None,
        actual_delivery=str(shipment.actual_delivery) if shipment.actual_delivery else None,
        current_location=shipment.current_location,
        last_error=shipment.last_error,
        can_be_cancelled=shipment.can_be_cancelled,
        tracking_events=[
            TrackingEventResponse(
                status=e.status,
                description=e.description,
                location=e.location,
                courier=e.courier,
                occurred_at=str(e.occurred_at),
            )
            for e in events
        ],
    )


@shipment_router.post("/quote", response_model=QuoteResponse)
async def quote_shipping(body: QuoteRequest) -> QuoteResponse:
    """Carrier rates for a package holding the given quantities."""
    rates = ShipmentOrchestrator().quote(
        body.destination.model_dump(),
        body.quantities,
        declared_value=body.declared_value,
    )
    return QuoteResponse(rates=[RateResponse(**rate) for rate in rates])


@shipment_router.post("", status_code=201, response_model=ShipmentResponse)
async def generate_shipment(body: GenerateShipmentRequest) -> ShipmentResponse:
    """Create the carrier shipment for a paid order."""
    shipment = ShipmentOrchestrator().generate(body.order_id, service=body.service)
    return _shipment_response(shipment)


@shipment_router.get("/{shipment_id}", response_model=ShipmentResponse)
async def get_shipment(shipment_id: str) -> ShipmentResponse:
    shipment = current_domain.repository_for(Shipment).get(shipment_id)
    return _shipment_response(shipment)


@shipment_router.post("/{shipment_id}/cancel", response_model=StatusResponse)
async def cancel_shipment(shipment_id: str, body: CancelShipmentRequest) -> StatusResponse:
    """Cancel a shipment the carrier has not picked up yet."""
    status = current_domain.process(
        CancelShipment(shipment_id=shipment_id, reason=body.reason),
        asynchronous=False,
    )
    return StatusResponse(status=status)


@shipment_router.post("/{shipment_id}/refresh", response_model=StatusResponse)
async def refresh_tracking(shipment_id: str) -> StatusResponse:
    """Pull the latest tracking from the carrier now."""
    status = current_domain.process(RefreshTracking(shipment_id=shipment_id), asynchronous=False)
    return StatusResponse(status=status)


@shipment_router.post("/carrier/configure", response_model=CarrierConfigResponse)
async def configure_carrier(body: ConfigureCarrierRequest) -> CarrierConfigResponse:
    """Configure the FakeCarrier behavior (non-production only)."""
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Carrier configuration not available in production")

    carrier = get_carrier()
    if not isinstance(carrier, FakeCarrier):
        raise HTTPException(status_code=400, detail="Carrier configuration only available for FakeCarrier")

    carrier.configure(
        should_succeed=body.should_succeed,
        failure_reason=body.failure_reason,
    )
    if body.script:
        carrier.script(*body.script)
    return CarrierConfigResponse(
        carrier=type(carrier).__name__,
        should_succeed=carrier.should_succeed,
        failure_reason=carrier.failure_reason,
        scripted=len(body.script),
    )
