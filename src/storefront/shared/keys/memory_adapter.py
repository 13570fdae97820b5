"""In-process key store for development and tests."""

import threading
from datetime import UTC, datetime, timedelta

import structlog

from storefront.shared.keys.port import KeyStore

logger = structlog.get_logger(__name__)


class MemoryKeyStore(KeyStore):
    def __init__(self, clock=None):
        self.clock = clock or (lambda: datetime.now(UTC))
        self._lock = threading.Lock()
        self._counters: dict[str, int] = {}
        self._claims: dict[str, tuple[str, datetime]] = {}

    def next_value(self, counter: str) -> int:
        with self._lock:
            value = self._counters.get(counter, 0) + 1
            self._counters[counter] = value
            return value

    def claim(self, key: str, owner: str, ttl: timedelta | None = None) -> bool:
        now = self.clock()
        with self._lock:
            held = self._claims.get(key)
            if held is not None:
                if ttl is None or held[1] > now - ttl:
                    return False
                logger.warning("Stale claim taken over", key=key, previous_owner=held[0], owner=owner)
            self._claims[key] = (owner, now)
            return True

    def owner_of(self, key: str) -> str | None:
        with self._lock:
            held = self._claims.get(key)
            return held[0] if held else None

    def release(self, key: str) -> None:
        with self._lock:
            self._claims.pop(key, None)

    def reset(self):
        """Clear all counters and claims (useful between tests)."""
        with self._lock:
            self._counters.clear()
            self._claims.clear()
