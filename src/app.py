"""Storefront FastAPI application.

Web server that processes commands synchronously via HTTP. Every request is
wrapped in the storefront domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay from domain.toml.
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.domain import storefront
from storefront.utils.http import register_error_handlers
from storefront.utils.logging import add_context, clear_context, configure_logging

configure_logging("api")
storefront.init()


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Storefront API",
    description="Checkout, orders, stock, notifications and shipments",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the storefront domain context for each request."""
    request_id = request.headers.get("X-Request-ID") or uuid4().hex
    add_context(request_id=request_id)
    try:
        with storefront.domain_context():
            response = await call_next(request)
    finally:
        clear_context("request_id")
    response.headers["X-Request-ID"] = request_id
    return response


register_error_handlers(app)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from storefront.fulfillment.api import shipment_router  # noqa: E402
from storefront.inventory.api import product_router  # noqa: E402
from storefront.notifications.api import router as notification_router  # noqa: E402
from storefront.ordering.api import cart_router, order_router  # noqa: E402
from storefront.payments.api import payment_router  # noqa: E402

app.include_router(product_router)
app.include_router(cart_router)
app.include_router(order_router)
app.include_router(payment_router)
app.include_router(shipment_router)
app.include_router(notification_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(
        content={
            "status": "ok",
            "domains": {"storefront": {"name": storefront.name}},
        }
    )
