"""Pydantic API schemas for shipments.

These are the external API contracts — separate from domain commands.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class DestinationSchema(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    street: str
    number: str | None = None
    city: str
    state: str | None = None
    postal_code: str
    country: str = "MX"


class QuoteRequest(BaseModel):
    destination: DestinationSchema
    quantities: list[int] = Field(min_length=1)
    declared_value: float = Field(default=0.0, ge=0)


class GenerateShipmentRequest(BaseModel):
    order_id: str
    service: str | None = None  # standard | express | same_day


class CancelShipmentRequest(BaseModel):
    reason: str | None = None


class ConfigureCarrierRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Carrier unavailable"
    script: list[int | str] = Field(default_factory=list)  # e.g. [503, 503, "timeout"]


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class RateResponse(BaseModel):
    carrier: str | None = None
    service: str
    price: float
    currency: str | None = None
    estimated_days: int | None = None
    quote_id: str | None = None


class QuoteResponse(BaseModel):
    rates: list[RateResponse]


class TrackingEventResponse(BaseModel):
    status: str
    description: str | None = None
    location: str | None = None
    courier: str | None = None
    occurred_at: str


class ShipmentResponse(BaseModel):
    shipment_id: str
    order_id: str
    status: str
    status_description: str
    progress: int
    carrier: str | None = None
    service: str | None = None
    tracking_number: str | None = None
    label_url: str | None = None
    shipping_cost: float = 0.0
    estimated_delivery: str | None = None
    actual_delivery: str | None = None
    current_location: str | None = None
    last_error: str | None = None
    can_be_cancelled: bool
    tracking_events: list[TrackingEventResponse] = []


class CarrierConfigResponse(BaseModel):
    carrier: str
    should_succeed: bool
    failure_reason: str
    scripted: int = 0
