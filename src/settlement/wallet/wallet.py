"""Wallet aggregate (CQRS) — a customer's stored-value balance.

The spendable ``balance`` and the not-yet-spendable ``pending_cashback`` are
kept apart: cashback earned on an order is held until the order is released
(delivered or paid), then moved into the balance exactly once. Every movement
is recorded as a WalletTransaction.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from settlement.domain import settlement
from settlement.wallet.events import CashbackHeld, CashbackReleased, WalletCredited, WalletDebited


class TransactionType(Enum):
    DEBIT = "debit"
    CREDIT = "credit"
    CASHBACK_HELD = "cashback_held"
    CASHBACK_RELEASED = "cashback_released"


@settlement.entity(part_of="Wallet")
class WalletTransaction:
    transaction_type = String(choices=TransactionType, required=True)
    amount = Integer(required=True, min_value=0)
    description = String(max_length=255)
    order_number = String(max_length=50)
    created_at = DateTime()

    def to_wire(self) -> dict:
        return {
            "type": self.transaction_type,
            "amount": self.amount,
            "description": self.description,
            "orderNumber": self.order_number,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@settlement.aggregate
class Wallet:
    customer_id = Identifier(identifier=True, required=True)
    balance = Integer(default=0, min_value=0)
    pending_cashback = Integer(default=0, min_value=0)
    transactions = HasMany(WalletTransaction)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def open(cls, customer_id):
        now = datetime.now(UTC)
        return cls(customer_id=customer_id, balance=0, pending_cashback=0, created_at=now, updated_at=now)

    def _record(self, transaction_type: TransactionType, amount: int, description: str, order_number=None):
        now = datetime.now(UTC)
        self.add_transactions(
            WalletTransaction(
                transaction_type=transaction_type.value,
                amount=amount,
                description=description,
                order_number=order_number,
                created_at=now,
            )
        )
        self.updated_at = now
        return now

    def credit(self, amount: int, description: str = "Wallet top-up") -> None:
        if amount is None or amount <= 0:
            raise ValidationError({"amount": ["Credit amount must be positive"]})

        self.balance += amount
        credited_at = self._record(TransactionType.CREDIT, amount, description)
        self.raise_(
            WalletCredited(
                customer_id=str(self.customer_id),
                amount=amount,
                balance=self.balance,
                description=description,
                credited_at=credited_at,
            )
        )

    def debit(self, amount: int, order_number: str) -> None:
        if amount is None or amount <= 0:
            raise ValidationError({"amount": ["Debit amount must be positive"]})
        if amount > self.balance:
            raise ValidationError({"amount": ["Insufficient wallet balance"]})

        self.balance -= amount
        debited_at = self._record(TransactionType.DEBIT, amount, f"Order {order_number} payment", order_number)
        self.raise_(
            WalletDebited(
                customer_id=str(self.customer_id),
                order_number=order_number,
                amount=amount,
                balance=self.balance,
                debited_at=debited_at,
            )
        )

    def hold_cashback(self, amount: int, order_number: str) -> None:
        if amount is None or amount <= 0:
            raise ValidationError({"amount": ["Cashback amount must be positive"]})

        self.pending_cashback += amount
        self._record(TransactionType.CASHBACK_HELD, amount, f"Order {order_number} cashback (pending)", order_number)
        self.raise_(
            CashbackHeld(
                customer_id=str(self.customer_id),
                order_number=order_number,
                amount=amount,
                pending_cashback=self.pending_cashback,
            )
        )

    def _transactions_for(self, order_number: str, transaction_type: TransactionType):
        return [
            t
            for t in self.transactions
            if t.order_number == order_number and t.transaction_type == transaction_type.value
        ]

    def release_cashback(self, order_number: str) -> int:
        """Move an order's held cashback into the balance. Returns the amount released."""
        held = sum(t.amount for t in self._transactions_for(order_number, TransactionType.CASHBACK_HELD))
        if not held:
            raise ValidationError({"order_number": [f"No cashback is pending for order {order_number}"]})
        if self._transactions_for(order_number, TransactionType.CASHBACK_RELEASED):
            raise ValidationError({"order_number": [f"Cashback for order {order_number} was already released"]})

        self.pending_cashback = max(0, self.pending_cashback - held)
        self.balance += held
        released_at = self._record(TransactionType.CASHBACK_RELEASED, held, f"Order {order_number} cashback", order_number)
        self.raise_(
            CashbackReleased(
                customer_id=str(self.customer_id),
                order_number=order_number,
                amount=held,
                balance=self.balance,
                released_at=released_at,
            )
        )
        return held
