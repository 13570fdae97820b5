"""Key store port — atomic counters and one-shot claims.

Backs the operations that must not race across workers: allocating the
next order-number sequence for a year, claiming the right to complete a
payment or materialize its order, and giving back one order item's stock.
"""

from abc import ABC, abstractmethod
from datetime import timedelta


class KeyStore(ABC):
    """Abstract interface for atomic key operations."""

    @abstractmethod
    def next_value(self, counter: str) -> int:
        """Atomically increment ``counter`` and return the new value (first call returns 1)."""
        ...

    @abstractmethod
    def claim(self, key: str, owner: str, ttl: timedelta | None = None) -> bool:
        """Insert ``key`` if absent. Returns True only for the caller that inserted it.

        With ``ttl``, a claim recorded more than ``ttl`` ago is treated as
        abandoned: exactly one caller takes it over and gets True.
        """
        ...

    @abstractmethod
    def owner_of(self, key: str) -> str | None:
        """Return the owner recorded for ``key``, or None."""
        ...

    @abstractmethod
    def release(self, key: str) -> None:
        """Remove a claim so the operation it guarded can be attempted again."""
        ...
