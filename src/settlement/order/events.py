"""Domain events for the SettledOrder aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from settlement.domain import settlement


@settlement.event(part_of="SettledOrder")
class OrderSettled:
    """An order was accepted and the wallet movements were applied."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    idempotency_key = String(required=True)
    grand_total = Integer(required=True)
    wallet_applied = Integer(required=True)
    residual_payable = Integer(required=True)
    cashback = Integer(required=True)
    status = String(required=True)
    settled_at = DateTime(required=True)
