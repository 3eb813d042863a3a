"""Checkout bootstrap — command and handler.

Chooses the data source for the whole session, freezes the cart and the
wallet balance into a new CheckoutSession and returns its id.

Order of preference:
1. Backend-of-record, when the liveness probe and the cart fetch succeed.
2. Local cache otherwise.

A remote wallet failure alone keeps the remote source and falls back to the
cached balance. Connectivity problems are logged, never surfaced.
"""

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from checkout.domain import checkout
from checkout.errors import DataSourceError, EmptyCheckoutError
from checkout.session.session import CheckoutSession
from checkout.sources import get_local_source, get_remote_source
from checkout.sources.local import cached_wallet_balance

logger = structlog.get_logger(__name__)


@checkout.command(part_of="CheckoutSession")
class StartCheckout:
    """Open a checkout session for the current cart."""

    customer_id = Identifier()  # Informational; the backend identifies the customer itself


def _load_remote(remote):
    if not remote.probe():
        return None
    try:
        items = remote.fetch_cart()
    except DataSourceError as exc:
        logger.warning("checkout.remote_cart_unavailable", error=str(exc))
        return None

    local = get_local_source()
    try:
        balance = remote.fetch_wallet_balance()
    except DataSourceError as exc:
        balance = cached_wallet_balance(local.store)
        logger.warning("checkout.remote_wallet_unavailable", error=str(exc), cached_balance=balance)
    return items, balance


@checkout.command_handler(part_of=CheckoutSession)
class StartCheckoutHandler:
    @handle(StartCheckout)
    def start_checkout(self, command):
        remote = get_remote_source()
        loaded = _load_remote(remote)

        if loaded is not None:
            source = remote
            items, balance = loaded
        else:
            source = get_local_source()
            items = source.fetch_cart()
            balance = source.fetch_wallet_balance()
            logger.info("checkout.using_local_cache", item_count=len(items))

        if not items:
            logger.info("checkout.empty_cart", source=source.kind)
            raise EmptyCheckoutError("There is nothing to check out")

        session = CheckoutSession.start(source=source.kind, items=items, wallet_balance=balance)
        current_domain.repository_for(CheckoutSession).add(session)

        logger.info(
            "checkout.started",
            session_id=str(session.id),
            customer_id=command.customer_id,
            source=source.kind,
            item_count=len(items),
            wallet_balance=session.wallet_balance,
        )
        return str(session.id)
