"""Local checkout cache port (abstract interface).

The cache is a keyed store of JSON-serializable values. In local mode it is
the source of truth for the cart and the wallet, so the read-modify-write of
an order (debit, cashback credit, ledger append, cart removal) goes through
``update()`` and commits as one change.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable

CART_ITEMS_KEY = "cartItems"
WALLET_BALANCE_KEY = "walletBalance"
WALLET_LEDGER_KEY = "walletLedger"


class KeyValueStore(ABC):
    """Abstract local cache interface."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return a deep copy of the stored value, or ``default``."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a value under ``key``."""
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete ``key`` if present."""
        ...

    @abstractmethod
    def update(self, mutator: Callable[[dict], None]) -> None:
        """Apply ``mutator`` to a working copy of the whole store and commit it atomically.

        Readers observe either the state before or after the update, never a
        partial one. If the mutator raises, nothing is committed.
        """
        ...

    def clear(self) -> None:
        """Remove every key."""
        self.update(lambda data: data.clear())
