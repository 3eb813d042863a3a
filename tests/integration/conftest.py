"""Cross-domain fixtures: checkout talking to settlement over a real socket.

Both routers are served by one uvicorn process on a background thread, the
way ``app.py`` serves them, so the checkout flow reaches its backend-of-record
through the same event loop that handles its own requests.
"""

import socket
import threading
import time

import httpx
import pytest
import uvicorn
from fastapi import FastAPI, Request
from protean.integrations.fastapi import register_exception_handlers

from checkout.api.routes import register_checkout_exception_handlers
from checkout.api.routes import router as checkout_router
from checkout.sources import reset_remote_source, set_remote_source
from checkout.sources.remote import RemoteDataSource
from checkout.storage import reset_store, set_store
from checkout.storage.memory import MemoryStore
from settlement.api.routes import router as settlement_router

CUSTOMER = "cust-001"


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _single_process_app(checkout_domain, settlement_domain) -> FastAPI:
    route_domains = {
        "/checkout-sessions": checkout_domain,
        "/api": settlement_domain,
    }

    app = FastAPI()

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        for prefix, domain in route_domains.items():
            if request.url.path.startswith(prefix):
                with domain.domain_context():
                    return await call_next(request)
        return await call_next(request)

    app.include_router(checkout_router)
    app.include_router(settlement_router)
    register_exception_handlers(app)
    register_checkout_exception_handlers(app)
    return app


@pytest.fixture(scope="module")
def live_server(checkout_bed, settlement_bed):
    """Base URL of a uvicorn server hosting both bounded contexts."""
    port = _free_port()
    app = _single_process_app(checkout_bed.domain, settlement_bed.domain)
    server = uvicorn.Server(
        uvicorn.Config(app, host="127.0.0.1", port=port, log_level="warning", log_config=None)
    )
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()

    deadline = time.monotonic() + 10
    while not server.started:
        if not thread.is_alive() or time.monotonic() > deadline:
            raise RuntimeError("uvicorn did not start")
        time.sleep(0.05)

    yield f"http://127.0.0.1:{port}"

    server.should_exit = True
    thread.join(timeout=5)


@pytest.fixture(autouse=True)
def _ctx(checkout_bed, settlement_bed):
    """Run in the checkout context and wipe both domains' data afterwards."""
    with checkout_bed.domain_context():
        yield

    with settlement_bed.domain_context():
        pass


@pytest.fixture()
def store():
    cache = MemoryStore()
    set_store(cache)
    yield cache
    reset_store()


@pytest.fixture()
def http(live_server):
    """A storefront-side HTTP client for the live server."""
    with httpx.Client(base_url=live_server, headers={"X-Customer-Id": CUSTOMER}, timeout=10) as client:
        yield client


@pytest.fixture()
def backend_of_record(live_server):
    """The remote data source, pointed at the live settlement routes."""
    remote = RemoteDataSource(base_url=f"{live_server}/api", customer_id=CUSTOMER, timeout=10)
    set_remote_source(remote)
    yield remote
    reset_remote_source()
    remote.client.close()
