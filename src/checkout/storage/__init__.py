"""Local checkout cache factory.

Provides get_store() / set_store() to swap implementations:
- MemoryStore for development and testing (default)
- JsonFileStore when CHECKOUT_STORE=file (path from CHECKOUT_STORE_PATH)
"""

import os

from checkout.storage.port import KeyValueStore

_current_store: KeyValueStore | None = None


def get_store() -> KeyValueStore:
    """Return the configured local cache (singleton)."""
    global _current_store
    if _current_store is None:
        adapter = os.environ.get("CHECKOUT_STORE", "memory")
        if adapter == "memory":
            from checkout.storage.memory import MemoryStore

            _current_store = MemoryStore()
        elif adapter == "file":
            from checkout.storage.json_file import JsonFileStore

            _current_store = JsonFileStore(os.environ.get("CHECKOUT_STORE_PATH", ".checkout_cache.json"))
        else:
            raise ValueError(f"Unknown checkout store adapter: {adapter}")
    return _current_store


def set_store(store: KeyValueStore) -> None:
    """Override the active local cache (useful for tests)."""
    global _current_store
    _current_store = store


def reset_store() -> None:
    """Reset to the configured default store."""
    global _current_store
    _current_store = None
