import pytest

from checkout.sources import reset_remote_source, set_remote_source
from checkout.sources.fake_adapter import FakeBackend
from checkout.storage import reset_store, set_store
from checkout.storage.memory import MemoryStore


@pytest.fixture(autouse=True)
def _ctx(checkout_bed):
    with checkout_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture()
def store():
    """A fresh in-memory local cache, installed as the active store."""
    cache = MemoryStore()
    set_store(cache)
    yield cache
    reset_store()


@pytest.fixture()
def backend():
    """A reachable fake backend-of-record with an empty cart."""
    fake = FakeBackend()
    set_remote_source(fake)
    yield fake
    reset_remote_source()


@pytest.fixture()
def offline_backend(backend):
    backend.configure(reachable=False)
    return backend
