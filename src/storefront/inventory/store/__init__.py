"""Stock store factory.

In-memory by default; STOCK_STORE=sql (with DATABASE_URL) uses conditional
SQL updates so several API workers can share the counters.
"""

import os

from storefront.inventory.store.port import StockStore

_stock_store: StockStore | None = None


def get_stock_store() -> StockStore:
    """Return the configured stock store (singleton)."""
    global _stock_store
    if _stock_store is None:
        adapter = os.environ.get("STOCK_STORE", "memory")
        if adapter == "memory":
            from storefront.inventory.store.memory_adapter import MemoryStockStore

            _stock_store = MemoryStockStore()
        elif adapter == "sql":
            from sqlalchemy import create_engine

            from storefront.inventory.store.sql_adapter import SQLStockStore

            _stock_store = SQLStockStore(create_engine(os.environ["DATABASE_URL"]))
        else:
            raise ValueError(f"Unknown stock store: {adapter}")
    return _stock_store


def set_stock_store(store: StockStore) -> None:
    """Override the active stock store (useful for tests)."""
    global _stock_store
    _stock_store = store


def reset_stock_store() -> None:
    """Reset the stock store singleton."""
    global _stock_store
    _stock_store = None
