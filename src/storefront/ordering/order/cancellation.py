"""Order cancellation — command, handler and stock give-back."""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import NotFoundError
from storefront.inventory.ledger import StockLedger
from storefront.notifications.notification.dispatch import NotificationDispatcher
from storefront.notifications.notification.notification import NotificationChannel, NotificationType
from storefront.ordering.order.order import CancellationActor, Order
from storefront.shared.keys import get_key_store

logger = structlog.get_logger(__name__)


def release_reserved_stock(order: Order, ledger: StockLedger | None = None, keys=None) -> int:
    """Give back stock for every item still holding it; returns how many items were released.

    Each give-back first claims ``stock-release:<item id>`` in the key store.
    The claim outlives this call, so two cancellations working on separate
    copies of the same order release an item once between them: the loser
    only flips its ``stock_released`` flag.
    """
    ledger = ledger or StockLedger()
    keys = keys or get_key_store()
    released = 0
    for item in order.items_holding_stock():
        claim_key = f"stock-release:{item.id}"
        if not keys.claim(claim_key, owner=str(order.id)):
            logger.info("Stock already given back", order_id=str(order.id), item_id=str(item.id))
            order.mark_stock_released(item.id)
            continue

        try:
            ledger.release(item.product_id, item.size, item.reserved_stock)
        except NotFoundError:
            keys.release(claim_key)
            logger.error(
                "Stock counter missing on cancellation",
                order_id=str(order.id),
                product_id=str(item.product_id),
                size=item.size,
                quantity=item.reserved_stock,
            )
            continue
        order.mark_stock_released(item.id)
        released += 1
    return released


@storefront.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    cancelled_by = String(default=CancellationActor.CUSTOMER.value, max_length=20)
    user_id = Identifier()  # set for customer-initiated cancellations


@storefront.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if command.user_id and str(order.user_id) != str(command.user_id):
            raise ObjectNotFoundError(f"Order with id {command.order_id} does not exist")

        order.cancel(reason=command.reason, cancelled_by=command.cancelled_by)
        released = release_reserved_stock(order)
        repo.add(order)

        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            cancelled_by=command.cancelled_by,
            released_items=released,
        )

        NotificationDispatcher().notify(
            order.user_id,
            NotificationType.ORDER_CANCELLED.value,
            (NotificationChannel.EMAIL.value, NotificationChannel.IN_APP.value),
            title=f"Order {order.order_number} cancelled",
            message=command.reason,
            data={"order_id": str(order.id), "order_number": order.order_number},
            contacts={NotificationChannel.EMAIL.value: order.customer_email} if order.customer_email else None,
        )
        return order.status
