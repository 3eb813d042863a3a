"""Domain events for the Wallet aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from settlement.domain import settlement


@settlement.event(part_of="Wallet")
class WalletCredited:
    """Funds were added to the spendable balance."""

    __version__ = 1

    customer_id = Identifier(required=True)
    amount = Integer(required=True)
    balance = Integer(required=True)
    description = String(max_length=255)
    credited_at = DateTime(required=True)


@settlement.event(part_of="Wallet")
class WalletDebited:
    """Funds were spent from the balance to pay for an order."""

    __version__ = 1

    customer_id = Identifier(required=True)
    order_number = String(required=True)
    amount = Integer(required=True)
    balance = Integer(required=True)
    debited_at = DateTime(required=True)


@settlement.event(part_of="Wallet")
class CashbackHeld:
    """Cashback for an order was recorded as pending."""

    __version__ = 1

    customer_id = Identifier(required=True)
    order_number = String(required=True)
    amount = Integer(required=True)
    pending_cashback = Integer(required=True)


@settlement.event(part_of="Wallet")
class CashbackReleased:
    """Pending cashback for an order became spendable."""

    __version__ = 1

    customer_id = Identifier(required=True)
    order_number = String(required=True)
    amount = Integer(required=True)
    balance = Integer(required=True)
    released_at = DateTime(required=True)
