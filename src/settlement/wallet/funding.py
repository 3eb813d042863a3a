"""Wallet funding — top-ups and cashback release."""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from settlement.domain import settlement
from settlement.wallet.wallet import Wallet


def load_wallet(customer_id) -> Wallet:
    """Fetch the customer's wallet, or a fresh empty one."""
    try:
        return current_domain.repository_for(Wallet).get(customer_id)
    except ObjectNotFoundError:
        return Wallet.open(customer_id)


@settlement.command(part_of="Wallet")
class AddFunds:
    customer_id = Identifier(required=True)
    amount = Integer(required=True, min_value=1)
    description = String(max_length=255, default="Wallet top-up")


@settlement.command(part_of="Wallet")
class ReleaseCashback:
    """Make an order's pending cashback spendable."""

    customer_id = Identifier(required=True)
    order_number = String(required=True, max_length=50)


@settlement.command_handler(part_of=Wallet)
class WalletFundingHandler:
    @handle(AddFunds)
    def add_funds(self, command):
        wallet = load_wallet(command.customer_id)
        wallet.credit(command.amount, command.description or "Wallet top-up")
        current_domain.repository_for(Wallet).add(wallet)
        return wallet.balance

    @handle(ReleaseCashback)
    def release_cashback(self, command):
        wallet = current_domain.repository_for(Wallet).get(command.customer_id)
        released = wallet.release_cashback(command.order_number)
        current_domain.repository_for(Wallet).add(wallet)
        return released
