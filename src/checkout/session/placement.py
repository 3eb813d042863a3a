"""Order placement — command and handler.

Submits the confirmed session through the data source chosen at bootstrap.
The session's idempotency key travels with every attempt so the backend can
deduplicate retries. A second submission for the same session is refused
while the first one is still running.

On failure the unit of work rolls back and the session stays in
Confirmation, ready to be retried.
"""

import threading
from contextlib import contextmanager

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from checkout.domain import checkout
from checkout.errors import SubmissionFailedError, SubmissionInProgressError
from checkout.session.session import CheckoutSession
from checkout.sources import source_for
from checkout.storage import get_store
from checkout.storage.port import WALLET_BALANCE_KEY

logger = structlog.get_logger(__name__)

_in_flight: set[str] = set()
_in_flight_lock = threading.Lock()


@contextmanager
def submission_guard(session_id: str):
    """Hold the per-session submission slot for the duration of the block."""
    with _in_flight_lock:
        if session_id in _in_flight:
            raise SubmissionInProgressError(f"An order for checkout {session_id} is already being placed")
        _in_flight.add(session_id)
    try:
        yield
    finally:
        with _in_flight_lock:
            _in_flight.discard(session_id)


@checkout.command(part_of="CheckoutSession")
class PlaceOrder:
    """Place the order for a confirmed checkout session."""

    session_id = Identifier(required=True)


@checkout.command_handler(part_of=CheckoutSession)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        repo = current_domain.repository_for(CheckoutSession)
        session_id = str(command.session_id)

        with submission_guard(session_id):
            session = repo.get(session_id)
            submission = session.build_submission()
            source = source_for(session.source)

            try:
                receipt = source.submit_order(submission)
            except SubmissionFailedError as exc:
                logger.warning(
                    "checkout.order_submission_failed",
                    session_id=session_id,
                    source=source.kind,
                    idempotency_key=submission.idempotency_key,
                    error=str(exc),
                )
                raise

            # The backend's post-order balance is authoritative
            if source.kind == "remote" and receipt.wallet_balance is not None:
                get_store().set(WALLET_BALANCE_KEY, receipt.wallet_balance)

            session.complete(receipt)
            repo.add(session)

        logger.info(
            "checkout.order_placed",
            session_id=session_id,
            order_id=receipt.order_id,
            source=receipt.source,
            grand_total=submission.client_grand_total,
            wallet_used=session.wallet_used,
            amount_paid_externally=session.amount_paid_externally,
        )
        return {
            "order_id": receipt.order_id,
            "source": receipt.source,
            "wallet_used": session.wallet_used,
            "amount_paid_externally": session.amount_paid_externally,
            "pending_cashback": session.pending_cashback,
            "wallet_balance": session.wallet_balance,
            "payment_action": receipt.payment_action,
        }
