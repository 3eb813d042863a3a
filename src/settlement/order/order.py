"""SettledOrder aggregate (CQRS) — the backend's record of a placed order.

All monetary fields are the backend's own computation. The client's grand
total and cashback estimate are stored next to them for auditing only.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean.fields import DateTime, Identifier, Integer, String, Text

from settlement.domain import settlement
from settlement.order.events import OrderSettled
from shared.pricing.engine import CheckoutTotals


class SettledOrderStatus(Enum):
    AWAITING_PAYMENT = "Awaiting_Payment"
    PAID = "Paid"


def new_order_number() -> str:
    return f"SO-{uuid4().hex[:10].upper()}"


@settlement.aggregate
class SettledOrder:
    order_number = String(required=True, max_length=50)
    customer_id = Identifier(required=True)
    idempotency_key = String(required=True, max_length=64)
    delivery_option = String(required=True, max_length=20)
    shipping_info = Text()  # JSON
    payment_method = String(required=True, max_length=20)
    payer_identifier = String(max_length=30)
    items = Text(required=True)  # JSON
    subtotal_excl_vat = Integer(default=0)
    vat_amount = Integer(default=0)
    delivery_fee = Integer(default=0)
    grand_total = Integer(default=0)
    wallet_applied = Integer(default=0)
    residual_payable = Integer(default=0)
    cashback = Integer(default=0)
    client_grand_total = Integer()
    client_cashback_estimate = Integer()
    wallet_balance_after = Integer(default=0)
    payment_action = Text()  # JSON
    status = String(choices=SettledOrderStatus, default=SettledOrderStatus.AWAITING_PAYMENT.value)
    settled_at = DateTime()

    @classmethod
    def settle(
        cls,
        customer_id,
        idempotency_key: str,
        delivery_option: str,
        shipping_info: dict | None,
        payment_method: str,
        payer_identifier: str | None,
        items: list[dict],
        totals: CheckoutTotals,
        client_grand_total: int | None = None,
        client_cashback_estimate: int | None = None,
    ):
        now = datetime.now(UTC)
        status = SettledOrderStatus.AWAITING_PAYMENT if totals.residual_payable > 0 else SettledOrderStatus.PAID
        return cls(
            order_number=new_order_number(),
            customer_id=customer_id,
            idempotency_key=idempotency_key,
            delivery_option=delivery_option,
            shipping_info=json.dumps(shipping_info) if shipping_info else None,
            payment_method=payment_method,
            payer_identifier=payer_identifier,
            items=json.dumps(items),
            subtotal_excl_vat=totals.subtotal_excl_vat,
            vat_amount=totals.vat_amount,
            delivery_fee=totals.delivery_fee,
            grand_total=totals.grand_total,
            wallet_applied=totals.wallet_applied,
            residual_payable=totals.residual_payable,
            cashback=totals.cashback,
            client_grand_total=client_grand_total,
            client_cashback_estimate=client_cashback_estimate,
            status=status.value,
            settled_at=now,
        )

    def record_outcome(self, wallet_balance_after: int, payment_action: dict) -> None:
        """Store what the customer was told, so a repeated request gets the same answer."""
        self.wallet_balance_after = wallet_balance_after
        self.payment_action = json.dumps(payment_action)
        self.raise_(
            OrderSettled(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                idempotency_key=self.idempotency_key,
                grand_total=self.grand_total,
                wallet_applied=self.wallet_applied,
                residual_payable=self.residual_payable,
                cashback=self.cashback,
                status=self.status,
                settled_at=self.settled_at,
            )
        )

    def response(self) -> dict:
        return {
            "orderId": self.order_number,
            "walletDelta": self.wallet_balance_after,
            "mpesaAction": json.loads(self.payment_action) if self.payment_action else {"type": "none"},
        }
