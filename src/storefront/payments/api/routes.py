"""FastAPI routes for payments — checkout, gateway return, webhook."""

import json
import os

from fastapi import APIRouter, Header, HTTPException
from fastapi.responses import RedirectResponse
from protean.utils.globals import current_domain

from storefront.payments.api.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    ConfigureGatewayRequest,
    GatewayConfigResponse,
    PaymentResponse,
    PaymentWebhookRequest,
    WebhookResponse,
)
from storefront.payments.gateway import get_gateway
from storefront.payments.gateway.fake_adapter import FakeGateway
from storefront.payments.payment.checkout import StartCheckout
from storefront.payments.payment.payment import Payment
from storefront.payments.payment.reconciler import FAILURE, PaymentReconciler, webhook_outcome

payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/checkout", status_code=201, response_model=CheckoutResponse)
async def start_checkout(body: CheckoutRequest) -> CheckoutResponse:
    """Open a hosted checkout for the user's cart (or a subset of it)."""
    command = StartCheckout(
        user_id=body.user_id,
        provider=body.provider,
        currency=body.currency,
        item_ids=json.dumps(body.item_ids) if body.item_ids else None,
        metadata=json.dumps(body.metadata()),
    )
    payment_id = current_domain.process(command, asynchronous=False)
    payment = current_domain.repository_for(Payment).get(payment_id)
    return CheckoutResponse(payment_id=payment_id, approval_url=payment.approval_url)


@payment_router.get("/{provider}/return")
async def gateway_return(provider: str, outcome: str, token: str = "", reason: str | None = None):
    """Where the hosted checkout sends the customer back; answers with a redirect to the storefront."""
    result = PaymentReconciler().handle_callback(token, outcome, reason=reason if outcome == FAILURE else None)
    return RedirectResponse(result.redirect_url, status_code=303)


@payment_router.post("/webhook", response_model=WebhookResponse)
async def process_webhook(
    body: PaymentWebhookRequest,
    x_gateway_signature: str = Header(default=""),
) -> WebhookResponse:
    """Server-to-server status notification from the gateway."""
    gateway = get_gateway()
    if not gateway.verify_webhook_signature(json.dumps(body.model_dump()), x_gateway_signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    result = PaymentReconciler(gateway=gateway).handle_callback(
        body.provider_payment_id,
        webhook_outcome(body.status),
        reason=body.reason,
    )
    return WebhookResponse(outcome=result.outcome, payment_id=result.payment_id, order_id=result.order_id)


@payment_router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(payment_id: str) -> PaymentResponse:
    payment = current_domain.repository_for(Payment).get(payment_id)
    return PaymentResponse(
        payment_id=str(payment.id),
        user_id=str(payment.user_id),
        provider=payment.provider,
        status=payment.status,
        amount=payment.amount,
        currency=payment.currency,
        order_id=str(payment.order_id) if payment.order_id else None,
        failure_reason=payment.failure_reason,
    )


@payment_router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only)."""
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(
        should_succeed=body.should_succeed,
        failure_reason=body.failure_reason,
    )
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
    )
