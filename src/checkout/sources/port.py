"""Checkout data source port (abstract interface).

Defines the contract that both the backend-of-record adapter and the local
cache adapter implement, so the coordinator can pick one at bootstrap and use
it for the rest of the session without caring which it holds.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from shared.pricing.items import CartItem


@dataclass(frozen=True)
class OrderSubmission:
    """Everything sent when an order is placed.

    ``client_grand_total`` and ``client_cashback_estimate`` are advisory only.
    The settlement backend recomputes both and never charges or credits from
    the client's figures.
    """

    delivery_option: str
    shipping_info: dict | None
    payment_method: str
    payer_identifier: str | None
    wallet_applied: int
    items: tuple[CartItem, ...]
    client_grand_total: int
    client_cashback_estimate: int
    idempotency_key: str

    def to_payload(self) -> dict:
        return {
            "deliveryOption": self.delivery_option,
            "shippingInfo": self.shipping_info,
            "paymentMethod": self.payment_method,
            "mpesaPhone": self.payer_identifier,
            "walletApplied": self.wallet_applied,
            "items": [{"productId": item.id, "qty": item.quantity} for item in self.items],
            "clientGrandTotal": self.client_grand_total,
            "clientCashbackEstimate": self.client_cashback_estimate,
            "idempotencyKey": self.idempotency_key,
        }


@dataclass(frozen=True)
class OrderReceipt:
    """Result of a successful order submission."""

    order_id: str
    source: str
    wallet_balance: int | None = None
    payment_action: dict = field(default_factory=lambda: {"type": "none"})
    wallet_used: int | None = None  # What the source actually debited, when it reports it


class CheckoutDataSource(ABC):
    """Abstract checkout data source."""

    kind: str

    def probe(self) -> bool:
        """Liveness check. Sources without a liveness endpoint are always reachable."""
        return True

    @abstractmethod
    def fetch_cart(self) -> list[CartItem]:
        """Return the cart lines to check out."""
        ...

    @abstractmethod
    def fetch_wallet_balance(self) -> int:
        """Return the customer's spendable wallet balance."""
        ...

    @abstractmethod
    def submit_order(self, submission: OrderSubmission) -> OrderReceipt:
        """Place the order and return its receipt."""
        ...
