"""Checkout data source factory.

Provides get_remote_source() / set_remote_source() to swap the
backend-of-record adapter:
- RemoteDataSource for production (CHECKOUT_BACKEND_URL, CHECKOUT_BACKEND_TIMEOUT,
  CHECKOUT_AUTH_TOKEN, CHECKOUT_CUSTOMER_ID)
- FakeBackend for development and testing

The local cache adapter always wraps the active store.
"""

import os

from checkout.sources.local import LocalCacheDataSource
from checkout.sources.port import CheckoutDataSource
from checkout.storage import get_store

_current_remote: CheckoutDataSource | None = None


def get_remote_source() -> CheckoutDataSource:
    """Return the backend-of-record adapter. Defaults to RemoteDataSource."""
    global _current_remote
    if _current_remote is None:
        from checkout.sources.remote import DEFAULT_TIMEOUT, RemoteDataSource

        _current_remote = RemoteDataSource(
            base_url=os.environ.get("CHECKOUT_BACKEND_URL", "http://localhost:8000/api"),
            token=os.environ.get("CHECKOUT_AUTH_TOKEN"),
            customer_id=os.environ.get("CHECKOUT_CUSTOMER_ID"),
            timeout=float(os.environ.get("CHECKOUT_BACKEND_TIMEOUT", DEFAULT_TIMEOUT)),
        )
    return _current_remote


def set_remote_source(source: CheckoutDataSource) -> None:
    """Override the backend-of-record adapter (useful for tests)."""
    global _current_remote
    _current_remote = source


def reset_remote_source() -> None:
    """Reset to the default adapter."""
    global _current_remote
    _current_remote = None


def get_local_source() -> LocalCacheDataSource:
    return LocalCacheDataSource(get_store())


def source_for(kind: str) -> CheckoutDataSource:
    """Resolve the adapter a session selected at bootstrap. Never re-probes."""
    if kind == LocalCacheDataSource.kind:
        return get_local_source()
    if kind == "remote":
        return get_remote_source()
    raise ValueError(f"Unknown checkout data source: {kind}")
