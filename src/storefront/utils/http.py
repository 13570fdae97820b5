"""HTTP error mapping for storefront errors.

Protean's own exceptions (ValidationError, ObjectNotFoundError, ...) are
mapped by ``protean.integrations.fastapi.register_exception_handlers``; this
module adds the saga errors on top.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from storefront.errors import (
    CarrierTimeout,
    ConfigurationError,
    IdempotencyViolation,
    NotFoundError,
    ServiceUnavailable,
    StockConflictError,
    StorefrontError,
    TransientProviderError,
)

# Most specific first; the first isinstance match wins.
ERROR_STATUS_CODES = (
    (NotFoundError, 404),
    (StockConflictError, 409),
    (IdempotencyViolation, 409),
    (CarrierTimeout, 504),
    (ServiceUnavailable, 503),
    (ConfigurationError, 502),
    (TransientProviderError, 503),
)


def status_code_for(exc: StorefrontError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def storefront_error_handler(request: Request, exc: StorefrontError):
    return JSONResponse(
        status_code=status_code_for(exc),
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(StorefrontError, storefront_error_handler)
