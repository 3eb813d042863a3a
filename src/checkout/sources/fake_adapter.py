"""Configurable in-process backend-of-record for development and testing.

Behaves like RemoteDataSource without any network calls. Each endpoint can be
switched to fail at runtime, which is how the fallback paths are exercised.
"""

from uuid import uuid4

from checkout.errors import DataSourceError, SubmissionFailedError, SubmissionRejectedError
from checkout.sources.port import CheckoutDataSource, OrderReceipt, OrderSubmission
from shared.pricing.items import CartItem, parse_items


class FakeBackend(CheckoutDataSource):
    """Configurable fake backend-of-record."""

    kind = "remote"

    def __init__(self, items: list | None = None, wallet_balance: int = 0) -> None:
        self.items: list[CartItem] = parse_items(items or [])
        self.wallet_balance = wallet_balance
        self.reachable: bool = True
        self.cart_available: bool = True
        self.wallet_available: bool = True
        self.should_succeed: bool = True
        self.network_error: bool = False
        self.failure_reason: str = "Checkout failed"
        self.wallet_after: int | None = None
        self.payment_action: dict = {"type": "none"}
        self.calls: list[dict] = []

    def configure(self, **settings) -> None:
        """Configure fake behavior at runtime."""
        for name, value in settings.items():
            if not hasattr(self, name):
                raise AttributeError(f"FakeBackend has no setting {name!r}")
            if name == "items":
                value = parse_items(value)
            setattr(self, name, value)

    def probe(self) -> bool:
        self.calls.append({"method": "probe"})
        return self.reachable

    def fetch_cart(self) -> list[CartItem]:
        self.calls.append({"method": "fetch_cart"})
        if not (self.reachable and self.cart_available):
            raise DataSourceError("cart fetch failed")
        return list(self.items)

    def fetch_wallet_balance(self) -> int:
        self.calls.append({"method": "fetch_wallet_balance"})
        if not (self.reachable and self.wallet_available):
            raise DataSourceError("wallet fetch failed")
        return self.wallet_balance

    def submit_order(self, submission: OrderSubmission) -> OrderReceipt:
        self.calls.append(
            {
                "method": "submit_order",
                "payload": submission.to_payload(),
                "idempotency_key": submission.idempotency_key,
            }
        )
        if self.network_error:
            raise SubmissionFailedError("Checkout error: connection reset")
        if not self.should_succeed:
            raise SubmissionRejectedError(self.failure_reason, status_code=400)

        return OrderReceipt(
            order_id=f"ORD-{uuid4().hex[:8].upper()}",
            source=self.kind,
            wallet_balance=self.wallet_after,
            payment_action=self.payment_action,
        )
