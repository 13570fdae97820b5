"""ShipmentOrchestrator — carrier calls with retry, shipment lifecycle.

Error classification for carrier calls:

- retryable: 5xx answers, timeouts, refused connections. ``create_shipment``
  retries them with 1s, 2s and 4s pauses and gives up with
  ServiceUnavailable;
- non-retryable: 401/403 become AuthConfigurationError, other 4xx become a
  ValidationError carrying the carrier's message. Raised at once.

Quotes, tracking and cancellation are single-shot: a timeout surfaces as
CarrierTimeout, other transient failures as ServiceUnavailable.

A failed generation leaves the shipment persisted in EXCEPTION with
``last_error`` and re-raises.
"""

import time
from datetime import datetime

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from storefront.errors import AuthConfigurationError, CarrierTimeout, ServiceUnavailable, ShipmentError
from storefront.fulfillment.carrier import get_carrier
from storefront.fulfillment.carrier.port import CarrierConnectionError, CarrierError, CarrierTimeoutError
from storefront.fulfillment.shipment.packaging import (
    build_shipment_request,
    destination_from,
    package_payload,
    size_package,
    warehouse_origin,
)
from storefront.fulfillment.shipment.shipment import Shipment, ShipmentService, ShipmentStatus
from storefront.notifications.notification.dispatch import NotificationDispatcher
from storefront.notifications.notification.notification import NotificationChannel, NotificationType
from storefront.ordering.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)

RETRY_BACKOFF = (1, 2, 4)  # seconds

_CARRIER_FAILURES = (CarrierError, CarrierTimeoutError, CarrierConnectionError)
_SHIPPABLE_ORDER_STATUSES = (OrderStatus.PAID, OrderStatus.PROCESSING)
_SUPERSEDED_STATUSES = (ShipmentStatus.CANCELLED, ShipmentStatus.EXCEPTION)
_NOTIFY_CHANNELS = (NotificationChannel.EMAIL.value, NotificationChannel.IN_APP.value)


def is_retryable(exc: Exception) -> bool:
    if isinstance(exc, (CarrierTimeoutError, CarrierConnectionError)):
        return True
    return isinstance(exc, CarrierError) and exc.status_code >= 500


def parse_carrier_datetime(value) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def error_text(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return "; ".join(f"{field}: {', '.join(msgs)}" for field, msgs in exc.messages.items())
    return str(exc)


def shipments_for_order(order_id) -> list[Shipment]:
    return current_domain.repository_for(Shipment)._dao.query.filter(order_id=str(order_id)).all().items


class ShipmentOrchestrator:
    def __init__(self, carrier=None, sleep=time.sleep, backoff=RETRY_BACKOFF, dispatcher=None):
        self.carrier = carrier or get_carrier()
        self.sleep = sleep
        self.backoff = tuple(backoff)
        self.dispatcher = dispatcher or NotificationDispatcher()

    # -------------------------------------------------------------------
    # Carrier call policies
    # -------------------------------------------------------------------
    def _translate(self, exc: Exception) -> Exception:
        """Non-retryable carrier failure → domain error."""
        if isinstance(exc, CarrierError) and exc.status_code in (401, 403):
            return AuthConfigurationError(f"Carrier rejected credentials ({exc.status_code})")
        if isinstance(exc, CarrierError):
            return ValidationError({"carrier": [exc.message or f"Carrier rejected the request ({exc.status_code})"]})
        return ShipmentError(str(exc))

    def _with_retry(self, operation: str, call):
        last_error = None
        for attempt, pause in enumerate((*self.backoff, None), start=1):
            try:
                return call()
            except _CARRIER_FAILURES as exc:
                if not is_retryable(exc):
                    raise self._translate(exc) from exc
                last_error = exc
                if pause is None:
                    break
                logger.warning(
                    "Carrier call failed, retrying",
                    operation=operation,
                    attempt=attempt,
                    retry_in=pause,
                    error=str(exc),
                )
                self.sleep(pause)

        raise ServiceUnavailable(
            f"Carrier unavailable after {len(self.backoff) + 1} attempts: {last_error}"
        ) from last_error

    def _single(self, operation: str, call):
        try:
            return call()
        except CarrierTimeoutError as exc:
            raise CarrierTimeout(f"Carrier {operation} timed out") from exc
        except _CARRIER_FAILURES as exc:
            if is_retryable(exc):
                raise ServiceUnavailable(f"Carrier {operation} failed: {exc}") from exc
            raise self._translate(exc) from exc

    # -------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------
    def quote(self, destination: dict, quantities: list[int], declared_value: float = 0.0) -> list[dict]:
        package = size_package(quantities, declared_value)
        return self._single(
            "quote",
            lambda: self.carrier.quote(warehouse_origin(), destination, [package_payload(package)]),
        )

    def generate(self, order_id, service: str | None = None) -> Shipment:
        """Create the carrier shipment for a paid order.

        Raises:
            ValidationError: the order cannot be shipped, or the carrier
                rejected the request.
            ServiceUnavailable: the carrier kept failing with retryable errors.
            AuthConfigurationError: the carrier rejected our credentials.
        """
        order_repo = current_domain.repository_for(Order)
        shipment_repo = current_domain.repository_for(Shipment)

        order = order_repo.get(order_id)
        if OrderStatus(order.status) not in _SHIPPABLE_ORDER_STATUSES:
            raise ValidationError({"order": [f"Cannot ship an order in {order.status} state"]})
        open_shipments = [
            s for s in shipments_for_order(order.id) if ShipmentStatus(s.status) not in _SUPERSEDED_STATUSES
        ]
        if open_shipments:
            raise ValidationError({"order": [f"Order already has shipment {open_shipments[0].id}"]})

        destination = destination_from(order.shipping)
        package = size_package([i.quantity for i in order.items], order.pricing.subtotal if order.pricing else 0.0)
        service = service or _service_from(order.shipping)
        origin = warehouse_origin()

        shipment = Shipment.open(
            order_id=str(order.id),
            user_id=str(order.user_id),
            package=package,
            origin=origin,
            destination=destination,
            service=service,
            carrier=order.shipping.carrier,
        )
        shipment_repo.add(shipment)

        if OrderStatus(order.status) == OrderStatus.PAID:
            order.start_processing()
            order_repo.add(order)

        request = build_shipment_request(order, package, origin, destination, service)
        try:
            result = self._with_retry("create_shipment", lambda: self.carrier.create_shipment(request))
        except (ShipmentError, ValidationError) as exc:
            shipment.mark_exception(error_text(exc))
            shipment_repo.add(shipment)
            logger.error(
                "Shipment generation failed",
                shipment_id=str(shipment.id),
                order_id=str(order.id),
                error=error_text(exc),
                error_type=type(exc).__name__,
            )
            raise

        shipment.mark_created(
            carrier_shipment_id=result["shipment_id"],
            tracking_number=result["tracking_number"],
            label_url=result.get("label_url"),
            cost=result.get("cost") if result.get("cost") is not None else order.shipping.cost,
            estimated_delivery=parse_carrier_datetime(result.get("estimated_delivery")),
            carrier=order.shipping.carrier or getattr(self.carrier, "name", None),
        )
        shipment_repo.add(shipment)

        order.mark_shipped(shipment.tracking_number, carrier=shipment.carrier, shipment_id=str(shipment.id))
        order_repo.add(order)

        logger.info(
            "Shipment created",
            shipment_id=str(shipment.id),
            order_id=str(order.id),
            tracking_number=shipment.tracking_number,
        )
        self.dispatcher.notify(
            order.user_id,
            NotificationType.ORDER_SHIPPED.value,
            _NOTIFY_CHANNELS,
            title=f"Order {order.order_number} shipped",
            message=f"Your order is on its way. Tracking number: {shipment.tracking_number}",
            data={
                "order_id": str(order.id),
                "shipment_id": str(shipment.id),
                "tracking_number": shipment.tracking_number,
                "label_url": shipment.label_url,
            },
            contacts={NotificationChannel.EMAIL.value: order.customer_email} if order.customer_email else None,
        )
        return shipment

    def fetch_tracking(self, tracking_number: str) -> dict:
        return self._single("tracking", lambda: self.carrier.get_tracking(tracking_number))

    def cancel(self, shipment_id, reason: str | None = None) -> Shipment:
        repo = current_domain.repository_for(Shipment)
        shipment = repo.get(shipment_id)
        if not shipment.can_be_cancelled:
            raise ValidationError({"status": [f"Cannot cancel shipment in {shipment.status} state"]})

        if shipment.carrier_shipment_id:
            result = self._single("cancellation", lambda: self.carrier.cancel_shipment(shipment.carrier_shipment_id))
            if not result.get("cancelled"):
                raise ValidationError({"carrier": [result.get("reason") or "Carrier refused the cancellation"]})

        shipment.cancel(reason)
        repo.add(shipment)
        logger.info("Shipment cancelled", shipment_id=str(shipment.id), reason=reason)
        return shipment


def _service_from(shipping) -> str:
    valid = {s.value for s in ShipmentService}
    if shipping is not None and shipping.service in valid:
        return shipping.service
    return ShipmentService.STANDARD.value
