"""StockLedger — reserve / release / bulk-reserve against per-size counters.

Reservation is a conditional decrement in the stock store, so concurrent
checkouts for the same size can never push a level below zero. The ledger
does not deduplicate releases; order items carry a ``stock_released`` flag
for that.
"""

from dataclasses import dataclass

import structlog

from storefront.errors import BulkReservationError, InsufficientStock, NotFoundError, StockConflictError
from storefront.inventory.store import get_stock_store
from storefront.inventory.store.port import StockStore

logger = structlog.get_logger(__name__)

DEFAULT_SIZE = "unique"


@dataclass(frozen=True)
class Reservation:
    """A hold against one product size."""

    product_id: str
    size: str
    quantity: int


@dataclass(frozen=True)
class StockRequest:
    product_id: str
    quantity: int
    size: str = DEFAULT_SIZE


class StockLedger:
    def __init__(self, store: StockStore | None = None):
        self.store = store or get_stock_store()

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def available(self, product_id: str, size: str = DEFAULT_SIZE) -> int:
        return self.store.level(str(product_id), size) or 0

    def stock_for(self, product_id: str) -> dict[str, int]:
        return self.store.levels(str(product_id))

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def set_stock(self, product_id: str, size: str, quantity: int) -> None:
        if quantity < 0:
            raise StockConflictError(f"Stock for size {size} cannot be negative")
        self.store.set_level(str(product_id), size, quantity)
        logger.info("Stock level set", product_id=str(product_id), size=size, quantity=quantity)

    def reserve(self, product_id: str, size: str, quantity: int) -> Reservation:
        """Atomically take ``quantity`` units of ``size``.

        Raises:
            InsufficientStock: the size has fewer than ``quantity`` units (or
                no counter at all). Never retried.
        """
        product_id = str(product_id)
        size = size or DEFAULT_SIZE
        if quantity <= 0:
            raise StockConflictError(f"Quantity must be positive, got {quantity}")

        if not self.store.try_decrement(product_id, size, quantity):
            available = self.store.level(product_id, size) or 0
            logger.warning(
                "Stock reservation refused",
                product_id=product_id,
                size=size,
                available=available,
                required=quantity,
            )
            raise InsufficientStock(product_id, size, available, quantity)

        return Reservation(product_id=product_id, size=size, quantity=quantity)

    def release(self, product_id: str, size: str, quantity: int) -> None:
        """Put ``quantity`` units back.

        Raises:
            NotFoundError: no counter exists for the product/size.
        """
        product_id = str(product_id)
        size = size or DEFAULT_SIZE
        if not self.store.increment(product_id, size, quantity):
            raise NotFoundError(f"No stock counter for product {product_id} size {size}")
        logger.info("Stock released", product_id=product_id, size=size, quantity=quantity)

    def bulk_reserve(self, items: list[StockRequest]) -> list[Reservation]:
        """Reserve items in order; all or nothing.

        On the first failure every reservation already made in this batch is
        released and a BulkReservationError listing the failure is raised.
        """
        reservations: list[Reservation] = []
        for item in items:
            try:
                reservations.append(self.reserve(item.product_id, item.size, item.quantity))
            except StockConflictError as exc:
                self.release_all(reservations)
                raise BulkReservationError([str(exc)]) from exc
        return reservations

    def release_all(self, reservations: list[Reservation]) -> None:
        """Give back every reservation in a batch (compensation)."""
        for reservation in reservations:
            try:
                self.release(reservation.product_id, reservation.size, reservation.quantity)
            except NotFoundError:
                # Counter deleted mid-batch; nothing left to give back.
                logger.error(
                    "Compensating release failed",
                    product_id=reservation.product_id,
                    size=reservation.size,
                    quantity=reservation.quantity,
                )
        if reservations:
            logger.info("Bulk reservation compensated", released=len(reservations))
