"""Local cache adapter — checkout without a reachable backend-of-record.

Not for production: orders are simulated locally. The wallet debit, the
cashback credit, the ledger entries and the cart removal are committed as a
single store update.
"""

import time
from datetime import UTC, datetime

import structlog

from checkout.sources.port import CheckoutDataSource, OrderReceipt, OrderSubmission
from checkout.storage.port import CART_ITEMS_KEY, WALLET_BALANCE_KEY, WALLET_LEDGER_KEY, KeyValueStore
from shared.pricing.items import CartItem, parse_items, to_decimal

logger = structlog.get_logger(__name__)


def local_order_number() -> str:
    """``FCL`` followed by the last six digits of the millisecond clock."""
    return f"FCL{str(time.time_ns() // 1_000_000)[-6:]}"


def cached_wallet_balance(store: KeyValueStore) -> int:
    balance = to_decimal(store.get(WALLET_BALANCE_KEY, 0))
    return int(balance) if balance is not None else 0


class LocalCacheDataSource(CheckoutDataSource):
    """Checkout data source backed by the local cache."""

    kind = "local"

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def fetch_cart(self) -> list[CartItem]:
        try:
            return parse_items(self.store.get(CART_ITEMS_KEY, []))
        except ValueError:
            logger.warning("checkout_cache.malformed_cart")
            return []

    def fetch_wallet_balance(self) -> int:
        return cached_wallet_balance(self.store)

    def submit_order(self, submission: OrderSubmission) -> OrderReceipt:
        order_number = local_order_number()
        credit = submission.client_cashback_estimate
        timestamp = datetime.now(UTC).isoformat()
        settled = {}

        def settle(data: dict) -> None:
            current = int(to_decimal(data.get(WALLET_BALANCE_KEY, 0)) or 0)
            # The cached balance may have dropped since the session froze it
            debit = min(submission.wallet_applied, max(0, current))
            new_balance = current - debit + credit

            ledger = data.get(WALLET_LEDGER_KEY)
            ledger = list(ledger) if isinstance(ledger, list) else []
            if debit > 0:
                ledger.append(
                    {"ts": timestamp, "type": "debit", "amount": debit, "reason": f"Order {order_number} payment"}
                )
            if credit > 0:
                ledger.append(
                    {"ts": timestamp, "type": "credit", "amount": credit, "reason": f"Order {order_number} cashback"}
                )

            data[WALLET_BALANCE_KEY] = new_balance
            data[WALLET_LEDGER_KEY] = ledger
            data.pop(CART_ITEMS_KEY, None)
            settled["balance"] = new_balance
            settled["debit"] = debit

        self.store.update(settle)

        logger.info(
            "checkout.local_order_placed",
            order_id=order_number,
            wallet_debited=settled["debit"],
            cashback_credited=credit,
        )
        return OrderReceipt(
            order_id=order_number,
            source=self.kind,
            wallet_balance=settled["balance"],
            wallet_used=settled["debit"],
        )
