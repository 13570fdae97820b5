"""Pydantic request/response schemas for the Payments API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    user_id: str
    provider: str = "paypal"
    currency: str = "MXN"
    item_ids: list[str] = Field(default_factory=list)  # empty = whole cart
    customer_email: str | None = None
    customer_name: str | None = None

    # Shipping: at most one shape is used, in this priority order
    shipping_data: dict | None = None
    shipping_option: dict | None = None
    shipping_address: dict | None = None
    shipping_contact: dict | None = None
    simple_shipping: dict | None = None
    shipping_cost: float | None = Field(default=None, ge=0)

    discount: float = Field(default=0.0, ge=0)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "user_id": "user-001",
                    "provider": "paypal",
                    "currency": "MXN",
                    "item_ids": [],
                    "customer_email": "ana@example.com",
                    "customer_name": "Ana López",
                    "simple_shipping": {
                        "address": {
                            "street": "Calle 5",
                            "number": "12",
                            "city": "Monterrey",
                            "state": "NL",
                            "postal_code": "64000",
                        },
                        "contact": {"first_name": "Ana", "last_name": "López", "phone": "8112345678"},
                    },
                }
            ]
        }
    }

    def metadata(self) -> dict:
        return self.model_dump(exclude={"user_id", "provider", "currency", "item_ids"}, exclude_none=True)


class PaymentWebhookRequest(BaseModel):
    provider_payment_id: str
    status: str  # approved, completed, failed, cancelled, pending, ...
    reason: str | None = None


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Payment declined"


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class CheckoutResponse(BaseModel):
    payment_id: str
    approval_url: str | None = None


class PaymentResponse(BaseModel):
    payment_id: str
    user_id: str
    provider: str
    status: str
    amount: float
    currency: str
    order_id: str | None = None
    failure_reason: str | None = None


class WebhookResponse(BaseModel):
    outcome: str
    payment_id: str | None = None
    order_id: str | None = None


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str
