"""Stock store port — per-(product, size) counters.

Every mutation is a single atomic operation at the storage layer. Callers
never read a level and write it back.
"""

from abc import ABC, abstractmethod


class StockStore(ABC):
    """Abstract interface for stock counter storage."""

    @abstractmethod
    def try_decrement(self, product_id: str, size: str, quantity: int) -> bool:
        """Decrement only if at least ``quantity`` is available.

        Returns True when the decrement was applied, False when the level
        was too low or the counter does not exist.
        """
        ...

    @abstractmethod
    def increment(self, product_id: str, size: str, quantity: int) -> bool:
        """Add ``quantity`` back. Returns False if the counter does not exist."""
        ...

    @abstractmethod
    def level(self, product_id: str, size: str) -> int | None:
        """Current level, or None if the counter does not exist."""
        ...

    @abstractmethod
    def levels(self, product_id: str) -> dict[str, int]:
        """All size levels for a product."""
        ...

    @abstractmethod
    def set_level(self, product_id: str, size: str, quantity: int) -> None:
        """Create or overwrite a counter (restock / seeding)."""
        ...
