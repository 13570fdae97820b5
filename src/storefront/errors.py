"""Storefront error taxonomy.

Domain validation uses ``protean.exceptions.ValidationError`` and lookups
raise ``protean.exceptions.ObjectNotFoundError``; the classes here cover
the saga-specific failures that callers need to tell apart.
"""


class StorefrontError(Exception):
    """Base class for storefront errors."""


class NotFoundError(StorefrontError):
    """A product, order, payment or shipment does not exist."""


# ---------------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------------
class StockConflictError(StorefrontError):
    """Inventory could not satisfy a request. Never retried."""


class InsufficientStock(StockConflictError):
    def __init__(self, product_id: str, size: str, available: int, required: int):
        self.product_id = product_id
        self.size = size
        self.available = available
        self.required = required
        super().__init__(f"Insufficient stock for size {size}. Available: {available}, Required: {required}")


class BulkReservationError(StockConflictError):
    """A batch reservation failed and every reservation in it was released."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


# ---------------------------------------------------------------------------
# Idempotency
# ---------------------------------------------------------------------------
class IdempotencyViolation(StorefrontError):
    """Duplicate callback or duplicate order for a payment.

    Raised internally so the caller can turn it into a no-op; it is never
    surfaced to API clients.
    """


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------
class TransientProviderError(StorefrontError):
    """5xx or timeout from an outbound provider."""


class ConfigurationError(StorefrontError):
    """Credentials or configuration must be fixed by an operator."""


class ShipmentError(StorefrontError):
    """Base class for carrier failures surfaced by shipment generation."""


class ServiceUnavailable(ShipmentError, TransientProviderError):
    """The carrier kept failing with retryable errors until retries ran out."""


class CarrierTimeout(ShipmentError, TransientProviderError):
    """A single-shot carrier call timed out."""


class AuthConfigurationError(ShipmentError, ConfigurationError):
    """The carrier rejected our credentials (401/403)."""
