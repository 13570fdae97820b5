"""SQLStockStore against an in-memory SQLite database."""

import pytest
from sqlalchemy import create_engine, event, insert
from sqlalchemy.pool import StaticPool

from storefront.errors import BulkReservationError, NotFoundError
from storefront.inventory.ledger import StockLedger, StockRequest
from storefront.inventory.store.sql_adapter import SQLStockStore, stock_levels


@pytest.fixture()
def store():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    return SQLStockStore(engine)


class TestSQLStockStore:
    def test_set_and_read_level(self, store):
        store.set_level("p1", "M", 4)
        assert store.level("p1", "M") == 4
        assert store.level("p1", "L") is None

    def test_set_level_overwrites(self, store):
        store.set_level("p1", "M", 4)
        store.set_level("p1", "M", 9)
        assert store.levels("p1") == {"M": 9}

    def test_conditional_decrement(self, store):
        store.set_level("p1", "M", 2)
        assert store.try_decrement("p1", "M", 2) is True
        assert store.try_decrement("p1", "M", 1) is False
        assert store.level("p1", "M") == 0

    def test_decrement_without_row(self, store):
        assert store.try_decrement("p1", "M", 1) is False

    def test_increment_requires_row(self, store):
        assert store.increment("p1", "M", 1) is False
        store.set_level("p1", "M", 0)
        assert store.increment("p1", "M", 3) is True
        assert store.level("p1", "M") == 3


class TestLedgerOnSQL:
    def test_bulk_reserve_compensates(self, store):
        ledger = StockLedger(store=store)
        ledger.set_stock("p1", "M", 3)
        ledger.set_stock("p2", "unique", 0)

        with pytest.raises(BulkReservationError):
            ledger.bulk_reserve([StockRequest("p1", 2, "M"), StockRequest("p2", 1)])

        assert ledger.available("p1", "M") == 3

    def test_release_unknown_counter(self, store):
        with pytest.raises(NotFoundError):
            StockLedger(store=store).release("p9", "M", 1)


class TestConcurrentSeed:
    def test_first_seed_racing_another_worker(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'stock.db'}"
        store = SQLStockStore(create_engine(url))
        rival = create_engine(url)
        raced = []

        @event.listens_for(store.engine, "before_cursor_execute")
        def seed_first(conn, cursor, statement, parameters, context, executemany):
            if statement.startswith("INSERT INTO stock_levels") and not raced:
                raced.append(True)
                with rival.begin() as other:
                    other.execute(insert(stock_levels).values(product_id="p1", size="M", available=7))

        store.set_level("p1", "M", 4)

        assert raced
        assert store.level("p1", "M") == 4
