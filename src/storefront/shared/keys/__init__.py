"""Key store factory — atomic counters and claims.

Uses the in-memory store by default; set KEY_STORE=sql (with DATABASE_URL)
to share counters and claims across processes.
"""

import os

from storefront.shared.keys.port import KeyStore

_key_store: KeyStore | None = None


def get_key_store() -> KeyStore:
    """Return the configured key store (singleton)."""
    global _key_store
    if _key_store is None:
        adapter = os.environ.get("KEY_STORE", "memory")
        if adapter == "memory":
            from storefront.shared.keys.memory_adapter import MemoryKeyStore

            _key_store = MemoryKeyStore()
        elif adapter == "sql":
            from sqlalchemy import create_engine

            from storefront.shared.keys.sql_adapter import SQLKeyStore

            _key_store = SQLKeyStore(create_engine(os.environ["DATABASE_URL"]))
        else:
            raise ValueError(f"Unknown key store: {adapter}")
    return _key_store


def set_key_store(store: KeyStore) -> None:
    """Override the active key store (useful for tests)."""
    global _key_store
    _key_store = store


def reset_key_store() -> None:
    """Reset the key store singleton."""
    global _key_store
    _key_store = None
