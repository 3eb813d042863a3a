"""CheckoutSession aggregate (CQRS) — one customer's pass through checkout.

The cart and the wallet balance are frozen into the session at bootstrap and
never change afterwards; every monetary figure is derived from them on demand
by the pricing engine.

State Machine:
    SHIPPING → PAYMENT → CONFIRMATION → COMPLETE
    PAYMENT → SHIPPING, CONFIRMATION → PAYMENT (back)
    SHIPPING/PAYMENT/CONFIRMATION → ABANDONED

Moving forward is guarded: delivery needs a complete address, a positive
M-Pesa balance needs the payer's phone and the terms must be accepted.
COMPLETE is irreversible.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text, ValueObject

from checkout.domain import checkout
from checkout.session.events import CheckoutAbandoned, CheckoutStarted, CheckoutStepChanged, OrderPlaced
from checkout.sources.port import OrderReceipt, OrderSubmission
from shared.pricing.engine import CheckoutTotals, quote
from shared.pricing.items import CartItem, DeliveryOption, parse_items


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class CheckoutStep(Enum):
    SHIPPING = "Shipping"
    PAYMENT = "Payment"
    CONFIRMATION = "Confirmation"
    COMPLETE = "Complete"
    ABANDONED = "Abandoned"


class PaymentMethod(Enum):
    MPESA = "mpesa"
    CARD = "card"
    BANK = "bank"


AVAILABLE_PAYMENT_METHODS = {PaymentMethod.MPESA}

# Methods that need the payer's identifier (the M-Pesa phone) to collect a balance
PAYER_IDENTIFIER_METHODS = {PaymentMethod.MPESA}

REQUIRED_SHIPPING_FIELDS = ("first_name", "last_name", "email", "phone", "address", "city")

_VALID_TRANSITIONS = {
    CheckoutStep.SHIPPING: {CheckoutStep.PAYMENT, CheckoutStep.ABANDONED},
    CheckoutStep.PAYMENT: {CheckoutStep.SHIPPING, CheckoutStep.CONFIRMATION, CheckoutStep.ABANDONED},
    CheckoutStep.CONFIRMATION: {CheckoutStep.PAYMENT, CheckoutStep.COMPLETE, CheckoutStep.ABANDONED},
    CheckoutStep.COMPLETE: set(),  # Terminal
    CheckoutStep.ABANDONED: set(),  # Terminal
}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@checkout.value_object(part_of="CheckoutSession")
class ShippingInfo:
    """Where a delivery goes. Only required when delivery is chosen."""

    first_name = String(max_length=100)
    last_name = String(max_length=100)
    email = String(max_length=254)
    phone = String(max_length=30)
    address = String(max_length=255)
    city = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(max_length=100, default="Kenya")

    def missing_fields(self) -> list[str]:
        return [name for name in REQUIRED_SHIPPING_FIELDS if not (getattr(self, name) or "").strip()]

    def to_wire(self) -> dict:
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "postalCode": self.postal_code,
            "country": self.country,
        }


_SHIPPING_FIELDS = REQUIRED_SHIPPING_FIELDS + ("postal_code", "country")


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@checkout.aggregate
class CheckoutSession:
    source = String(max_length=10, required=True)  # remote | local
    items = Text(required=True)  # JSON: frozen cart lines
    wallet_balance = Integer(default=0)
    delivery_option = String(choices=DeliveryOption, default=DeliveryOption.PICKUP.value)
    shipping_info = ValueObject(ShippingInfo)
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.MPESA.value)
    payer_identifier = String(max_length=30)
    wallet_requested = String(max_length=50)  # Raw user input
    terms_accepted = Boolean(default=False)
    step = String(choices=CheckoutStep, default=CheckoutStep.SHIPPING.value)
    idempotency_key = String(max_length=64)
    order_id = Identifier()
    wallet_used = Integer()
    amount_paid_externally = Integer()
    pending_cashback = Integer()
    payment_action = Text()  # JSON
    created_at = DateTime()
    updated_at = DateTime()
    completed_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def start(cls, source: str, items: list[CartItem], wallet_balance: int = 0):
        """Freeze a fetched cart and wallet balance into a new session."""
        if not items:
            raise ValidationError({"items": ["Cannot check out an empty cart"]})

        now = datetime.now(UTC)
        session = cls(
            source=source,
            items=json.dumps([item.to_dict() for item in items]),
            wallet_balance=max(0, int(wallet_balance or 0)),
            step=CheckoutStep.SHIPPING.value,
            created_at=now,
            updated_at=now,
        )
        session.raise_(
            CheckoutStarted(
                session_id=str(session.id),
                source=source,
                item_count=len(items),
                wallet_balance=session.wallet_balance,
                started_at=now,
            )
        )
        return session

    # -------------------------------------------------------------------
    # Derived state
    # -------------------------------------------------------------------
    def cart_items(self) -> list[CartItem]:
        return parse_items(json.loads(self.items) if self.items else [])

    def quote(self) -> CheckoutTotals:
        return quote(
            self.cart_items(),
            self.delivery_option,
            wallet_balance=self.wallet_balance,
            wallet_requested=self.wallet_requested,
        )

    @property
    def is_delivery(self) -> bool:
        return self.delivery_option == DeliveryOption.DELIVERY.value

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _assert_step(self, *allowed: CheckoutStep, action: str) -> None:
        current = CheckoutStep(self.step)
        if current not in allowed:
            names = " or ".join(step.value for step in allowed)
            raise ValidationError({"step": [f"Cannot {action} during the {current.value} step (only {names})"]})

    def _transition(self, target: CheckoutStep) -> None:
        current = CheckoutStep(self.step)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"step": [f"Cannot transition from {current.value} to {target.value}"]})

        self.step = target.value
        self.updated_at = datetime.now(UTC)
        self.raise_(
            CheckoutStepChanged(
                session_id=str(self.id),
                from_step=current.value,
                to_step=target.value,
            )
        )

    # -------------------------------------------------------------------
    # Shipping step
    # -------------------------------------------------------------------
    def select_delivery_option(self, option: str) -> None:
        self._assert_step(CheckoutStep.SHIPPING, action="change the delivery option")
        try:
            chosen = DeliveryOption(str(option).strip().lower())
        except ValueError:
            raise ValidationError({"delivery_option": [f"Unknown delivery option: {option}"]}) from None

        self.delivery_option = chosen.value
        self.updated_at = datetime.now(UTC)

    def update_shipping_info(self, **fields) -> None:
        """Merge the supplied shipping fields into the current address."""
        self._assert_step(CheckoutStep.SHIPPING, action="edit shipping information")
        unknown = set(fields) - set(_SHIPPING_FIELDS)
        if unknown:
            raise ValidationError({"shipping_info": [f"Unknown shipping fields: {', '.join(sorted(unknown))}"]})

        current = self.shipping_info
        merged = {name: getattr(current, name) if current else None for name in _SHIPPING_FIELDS}
        merged.update({name: value for name, value in fields.items() if value is not None})
        if not merged.get("country"):
            merged.pop("country")

        self.shipping_info = ShippingInfo(**merged)
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Payment step
    # -------------------------------------------------------------------
    def select_payment_method(self, method: str, payer_identifier: str | None = None) -> None:
        self._assert_step(CheckoutStep.PAYMENT, action="change the payment method")
        try:
            chosen = PaymentMethod(str(method).strip().lower())
        except ValueError:
            raise ValidationError({"payment_method": [f"Unknown payment method: {method}"]}) from None
        if chosen not in AVAILABLE_PAYMENT_METHODS:
            raise ValidationError({"payment_method": [f"{chosen.value} payments are not available yet"]})

        self.payment_method = chosen.value
        self.payer_identifier = payer_identifier.strip() if payer_identifier else None
        self.updated_at = datetime.now(UTC)

    def request_wallet_amount(self, amount) -> None:
        """Record what the customer typed. The applied amount is always derived."""
        self._assert_step(CheckoutStep.PAYMENT, action="change the wallet amount")
        self.wallet_requested = None if amount is None else str(amount)[:50]
        self.updated_at = datetime.now(UTC)

    def accept_terms(self, accepted: bool) -> None:
        self._assert_step(CheckoutStep.PAYMENT, action="accept the terms")
        self.terms_accepted = bool(accepted)
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------
    def advance(self) -> None:
        """Move to the next step if the current one is complete."""
        current = CheckoutStep(self.step)

        if current == CheckoutStep.SHIPPING:
            if self.is_delivery:
                missing = self.shipping_info.missing_fields() if self.shipping_info else list(REQUIRED_SHIPPING_FIELDS)
                if missing:
                    raise ValidationError({"shipping_info": ["Please fill in all required fields for delivery."]})
            self._transition(CheckoutStep.PAYMENT)

        elif current == CheckoutStep.PAYMENT:
            method = PaymentMethod(self.payment_method)
            if method in PAYER_IDENTIFIER_METHODS and self.quote().residual_payable > 0 and not self.payer_identifier:
                raise ValidationError(
                    {
                        "payer_identifier": [
                            "Please enter your M-Pesa phone number (required to pay the remaining amount)."
                        ]
                    }
                )
            if not self.terms_accepted:
                raise ValidationError({"terms_accepted": ["Please accept the terms and conditions."]})
            self._transition(CheckoutStep.CONFIRMATION)
            self.idempotency_key = f"chk_{uuid4().hex}"

        else:
            raise ValidationError({"step": [f"Cannot advance from the {current.value} step"]})

    def go_back(self) -> str | None:
        """Step back. From shipping the flow exits to the cart; returns that path."""
        current = CheckoutStep(self.step)
        if current == CheckoutStep.SHIPPING:
            self.abandon()
            return "/cart"
        if current == CheckoutStep.PAYMENT:
            self._transition(CheckoutStep.SHIPPING)
        elif current == CheckoutStep.CONFIRMATION:
            self._transition(CheckoutStep.PAYMENT)
            self.idempotency_key = None
        else:
            raise ValidationError({"step": [f"Cannot go back from the {current.value} step"]})
        return None

    def abandon(self) -> None:
        current = CheckoutStep(self.step)
        self._transition(CheckoutStep.ABANDONED)
        self.raise_(
            CheckoutAbandoned(
                session_id=str(self.id),
                abandoned_at_step=current.value,
                abandoned_at=self.updated_at,
            )
        )

    # -------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------
    def build_submission(self) -> OrderSubmission:
        """Assemble the order for submission, reusing this confirmation's idempotency key."""
        self._assert_step(CheckoutStep.CONFIRMATION, action="place the order")
        totals = self.quote()
        method = PaymentMethod(self.payment_method)

        return OrderSubmission(
            delivery_option=self.delivery_option,
            shipping_info=self.shipping_info.to_wire() if self.is_delivery and self.shipping_info else None,
            payment_method=method.value,
            payer_identifier=self.payer_identifier if method in PAYER_IDENTIFIER_METHODS else None,
            wallet_applied=totals.wallet_applied,
            items=tuple(self.cart_items()),
            client_grand_total=totals.grand_total,
            client_cashback_estimate=totals.cashback,
            idempotency_key=self.idempotency_key,
        )

    def complete(self, receipt: OrderReceipt) -> None:
        """Record the placed order. There is no way back from here."""
        totals = self.quote()
        wallet_used = totals.wallet_applied if receipt.wallet_used is None else receipt.wallet_used
        self._transition(CheckoutStep.COMPLETE)

        self.order_id = receipt.order_id
        self.wallet_used = wallet_used
        self.amount_paid_externally = totals.grand_total - wallet_used
        self.pending_cashback = totals.cashback
        self.payment_action = json.dumps(receipt.payment_action or {"type": "none"})
        if receipt.wallet_balance is not None:
            self.wallet_balance = receipt.wallet_balance
        self.completed_at = self.updated_at

        self.raise_(
            OrderPlaced(
                session_id=str(self.id),
                order_id=receipt.order_id,
                source=receipt.source,
                idempotency_key=self.idempotency_key,
                grand_total=totals.grand_total,
                wallet_used=self.wallet_used,
                amount_paid_externally=self.amount_paid_externally,
                pending_cashback=totals.cashback,
                placed_at=self.completed_at,
            )
        )
