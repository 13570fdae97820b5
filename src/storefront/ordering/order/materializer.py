"""OrderMaterializer — turn a completed Payment into an immutable Order.

Sequence (all before any side effect):

1. return the existing Order if this payment was already materialized;
2. claim ``materialize:<payment_id>`` so concurrent callers cannot both
   build an order;
3. snapshot every product and reserve stock in one all-or-nothing batch
   (preorder products are snapshotted but not reserved);
4. number, price and persist the Order as PAID and link the payment.

If anything in 3-4 fails, reservations are given back, nothing is persisted
and the claim is released so a later callback can try again. Only then is
the ``order_confirmed`` notification sent, best-effort.

A claim older than CLAIM_TTL belongs to a worker that died mid-way and is
taken over.
"""

from datetime import timedelta
from uuid import uuid4

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.errors import IdempotencyViolation, NotFoundError
from storefront.inventory.ledger import DEFAULT_SIZE, StockLedger, StockRequest
from storefront.notifications.notification.dispatch import NotificationDispatcher
from storefront.notifications.notification.notification import NotificationChannel, NotificationType
from storefront.ordering.order.numbering import next_order_number
from storefront.ordering.order.order import Order, ProductSnapshot
from storefront.ordering.order.pricing import compute_pricing
from storefront.ordering.order.shipping_info import parse_shipping_info, to_details
from storefront.payments.payment.payment import Payment
from storefront.shared.keys import get_key_store

logger = structlog.get_logger(__name__)

CLAIM_TTL = timedelta(minutes=10)
CONFIRMATION_CHANNELS = (NotificationChannel.EMAIL.value, NotificationChannel.IN_APP.value)


def order_for_payment(payment_id) -> Order | None:
    orders = current_domain.repository_for(Order)._dao.query.filter(payment_id=str(payment_id)).all().items
    return orders[0] if orders else None


class OrderMaterializer:
    def __init__(self, ledger: StockLedger | None = None, keys=None, dispatcher: NotificationDispatcher | None = None):
        self.ledger = ledger or StockLedger()
        self.keys = keys or get_key_store()
        self.dispatcher = dispatcher or NotificationDispatcher()

    def materialize(self, payment: Payment) -> Order:
        """Create the Order for ``payment`` exactly once.

        Raises:
            StockConflictError: stock could not be reserved (nothing persisted).
            NotFoundError: a purchased product no longer exists.
            IdempotencyViolation: another caller holds the claim and has not
                finished yet.
        """
        payment_id = str(payment.id)
        existing = order_for_payment(payment_id)
        if existing:
            logger.info("Order already materialized", payment_id=payment_id, order_id=str(existing.id))
            return existing

        claim_key = f"materialize:{payment_id}"
        if not self.keys.claim(claim_key, owner=uuid4().hex, ttl=CLAIM_TTL):
            existing = order_for_payment(payment_id)
            if existing:
                return existing
            raise IdempotencyViolation(f"Order for payment {payment_id} is already being materialized")

        try:
            order = self._build(payment)
        except Exception:
            self.keys.release(claim_key)
            raise

        self._confirm(order)
        return order

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _build(self, payment: Payment) -> Order:
        product_repo = current_domain.repository_for(Product)
        items_data = []
        requests = []
        for item in payment.items:
            try:
                product = product_repo.get(item.product_id)
            except ObjectNotFoundError:
                raise NotFoundError(f"Product {item.product_id} not found") from None

            size = item.size or DEFAULT_SIZE
            unit_price = item.unit_price if item.unit_price is not None else product.price
            reserved = 0 if product.is_preorder else item.quantity
            if reserved:
                requests.append(StockRequest(product_id=str(product.id), quantity=item.quantity, size=size))

            items_data.append(
                {
                    "product_id": str(product.id),
                    "size": size,
                    "quantity": item.quantity,
                    "unit_price": unit_price,
                    "snapshot": ProductSnapshot(
                        name=product.name,
                        description=product.description,
                        price=unit_price,
                        images=product.images,
                        category=product.category,
                    ),
                    "reserved_stock": reserved,
                }
            )

        reservations = self.ledger.bulk_reserve(requests)
        try:
            order = self._persist(payment, items_data)
        except Exception:
            self.ledger.release_all(reservations)
            raise

        payment.link_order(str(order.id))
        current_domain.repository_for(Payment).add(payment)

        logger.info(
            "Order materialized",
            order_id=str(order.id),
            order_number=order.order_number,
            payment_id=str(payment.id),
            items=len(items_data),
            reserved=len(reservations),
            total=order.pricing.total,
        )
        return order

    def _persist(self, payment: Payment, items_data: list[dict]) -> Order:
        metadata = payment.metadata_dict
        shipping = to_details(parse_shipping_info(metadata))
        pricing = compute_pricing(
            [(i["unit_price"], i["quantity"]) for i in items_data],
            shipping=shipping.cost or 0.0,
            discount=metadata.get("discount") or 0.0,
            currency=payment.currency or "MXN",
        )

        order = Order.place(
            order_number=next_order_number(),
            user_id=payment.user_id,
            items_data=items_data,
            pricing=pricing,
            shipping=shipping,
            payment_id=str(payment.id),
            customer_email=metadata.get("customer_email") or shipping.email,
            customer_name=metadata.get("customer_name") or shipping.recipient_name,
        )
        order.mark_paid(str(payment.id))
        current_domain.repository_for(Order).add(order)
        return order

    def _confirm(self, order: Order) -> None:
        contacts = {NotificationChannel.EMAIL.value: order.customer_email} if order.customer_email else None
        self.dispatcher.notify(
            order.user_id,
            NotificationType.ORDER_CONFIRMED.value,
            CONFIRMATION_CHANNELS,
            title=f"Order {order.order_number} confirmed",
            message=f"We received your payment. Total: {order.pricing.total:.2f} {order.pricing.currency}",
            data={"order_id": str(order.id), "order_number": order.order_number},
            contacts=contacts,
        )
