"""SQLAlchemy stock store.

Reservation is one conditional UPDATE:

    UPDATE stock_levels SET available = available - :qty
     WHERE product_id = :pid AND size = :size AND available >= :qty

and ``rowcount`` tells whether it applied. Concurrent checkouts for the same
SKU/size are serialized by the database row lock.
"""

import structlog
from sqlalchemy import CheckConstraint, Column, Integer, MetaData, String, Table, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from storefront.inventory.store.port import StockStore

logger = structlog.get_logger(__name__)

metadata = MetaData()

stock_levels = Table(
    "stock_levels",
    metadata,
    Column("product_id", String(64), primary_key=True),
    Column("size", String(32), primary_key=True),
    Column("available", Integer, nullable=False, default=0),
    CheckConstraint("available >= 0", name="ck_stock_levels_available_non_negative"),
)


class SQLStockStore(StockStore):
    def __init__(self, engine: Engine):
        self.engine = engine
        metadata.create_all(engine)

    def _match(self, product_id: str, size: str):
        return (stock_levels.c.product_id == product_id) & (stock_levels.c.size == size)

    def try_decrement(self, product_id: str, size: str, quantity: int) -> bool:
        stmt = (
            update(stock_levels)
            .where(self._match(product_id, size))
            .where(stock_levels.c.available >= quantity)
            .values(available=stock_levels.c.available - quantity)
        )
        with self.engine.begin() as conn:
            return conn.execute(stmt).rowcount == 1

    def increment(self, product_id: str, size: str, quantity: int) -> bool:
        stmt = (
            update(stock_levels)
            .where(self._match(product_id, size))
            .values(available=stock_levels.c.available + quantity)
        )
        with self.engine.begin() as conn:
            return conn.execute(stmt).rowcount == 1

    def level(self, product_id: str, size: str) -> int | None:
        with self.engine.connect() as conn:
            return conn.execute(select(stock_levels.c.available).where(self._match(product_id, size))).scalar()

    def levels(self, product_id: str) -> dict[str, int]:
        stmt = select(stock_levels.c.size, stock_levels.c.available).where(stock_levels.c.product_id == product_id)
        with self.engine.connect() as conn:
            return {row.size: row.available for row in conn.execute(stmt)}

    def set_level(self, product_id: str, size: str, quantity: int) -> None:
        stmt = update(stock_levels).where(self._match(product_id, size)).values(available=quantity)
        with self.engine.begin() as conn:
            if conn.execute(stmt).rowcount == 1:
                return

        # First seed for this size; a concurrent insert loses on the primary
        # key and falls back to the update.
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(stock_levels).values(product_id=product_id, size=size, available=quantity))
        except IntegrityError:
            logger.debug("Stock level created concurrently", product_id=product_id, size=size)
            with self.engine.begin() as conn:
                conn.execute(stmt)
