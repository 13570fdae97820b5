"""In-process stock store. A single lock makes each check-and-decrement atomic."""

import threading

from storefront.inventory.store.port import StockStore


class MemoryStockStore(StockStore):
    def __init__(self):
        self._lock = threading.Lock()
        self._levels: dict[tuple[str, str], int] = {}

    def try_decrement(self, product_id: str, size: str, quantity: int) -> bool:
        key = (product_id, size)
        with self._lock:
            current = self._levels.get(key)
            if current is None or current < quantity:
                return False
            self._levels[key] = current - quantity
            return True

    def increment(self, product_id: str, size: str, quantity: int) -> bool:
        key = (product_id, size)
        with self._lock:
            if key not in self._levels:
                return False
            self._levels[key] += quantity
            return True

    def level(self, product_id: str, size: str) -> int | None:
        with self._lock:
            return self._levels.get((product_id, size))

    def levels(self, product_id: str) -> dict[str, int]:
        with self._lock:
            return {size: qty for (pid, size), qty in self._levels.items() if pid == product_id}

    def set_level(self, product_id: str, size: str, quantity: int) -> None:
        with self._lock:
            self._levels[(product_id, size)] = quantity

    def reset(self):
        """Drop all counters (useful between tests)."""
        with self._lock:
            self._levels.clear()
