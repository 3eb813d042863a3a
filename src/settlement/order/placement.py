"""Order placement — command and handler.

The backend never trusts the storefront's figures. It prices the customer's
stored cart itself, clamps the requested wallet amount against the real
balance, then debits the wallet, holds the cashback as pending and clears
the cart in one unit of work.

A repeated idempotency key returns the original answer without touching the
wallet again.
"""

import json
from uuid import uuid4

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from settlement.cart.cart import CustomerCart
from settlement.cart.management import load_cart
from settlement.domain import settlement
from settlement.errors import CartMismatchError
from settlement.order.order import SettledOrder
from settlement.wallet.funding import load_wallet
from settlement.wallet.wallet import Wallet
from shared.pricing.engine import quote, round_money
from shared.pricing.items import DeliveryOption, parse_items, to_decimal

logger = structlog.get_logger(__name__)

REQUIRED_SHIPPING_KEYS = ("firstName", "lastName", "email", "phone", "address", "city")

SUPPORTED_PAYMENT_METHODS = {"mpesa"}


@settlement.command(part_of="SettledOrder")
class PlaceOrder:
    customer_id = Identifier(required=True)
    idempotency_key = String(required=True, max_length=64)
    delivery_option = String(required=True, max_length=20)
    shipping_info = Text()  # JSON object
    payment_method = String(required=True, max_length=20)
    payer_identifier = String(max_length=30)
    wallet_requested = String(max_length=50)
    items = Text(required=True)  # JSON array of {productId, qty}
    client_grand_total = Float()
    client_cashback_estimate = Float()


def _advisory(value) -> int | None:
    number = to_decimal(value)
    return round_money(number) if number is not None else None


def _submitted_quantities(raw_items: str) -> dict[str, int]:
    try:
        items = parse_items(json.loads(raw_items))
    except ValueError as exc:
        raise ValidationError({"items": [f"Malformed order lines: {exc}"]}) from exc

    quantities: dict[str, int] = {}
    for item in items:
        quantities[item.id] = quantities.get(item.id, 0) + item.quantity
    return quantities


def _parse_delivery_option(value: str) -> DeliveryOption:
    try:
        return DeliveryOption(str(value).strip().lower())
    except ValueError:
        raise ValidationError({"delivery_option": [f"Unknown delivery option: {value}"]}) from None


def _payment_action(order_number: str, amount: int, phone: str | None) -> dict:
    if amount <= 0:
        return {"type": "none"}
    return {
        "type": "stk_push",
        "checkoutId": f"ws_CO_{order_number}_{uuid4().hex[:8]}",
        "amount": amount,
        "phone": phone,
    }


@settlement.command_handler(part_of=SettledOrder)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        customer_id = str(command.customer_id)
        order_repo = current_domain.repository_for(SettledOrder)

        existing = order_repo._dao.query.filter(
            customer_id=customer_id,
            idempotency_key=command.idempotency_key,
        ).all()
        if existing.items:
            order = existing.items[0]
            logger.info(
                "settlement.duplicate_order",
                customer_id=customer_id,
                order_number=order.order_number,
                idempotency_key=command.idempotency_key,
            )
            return order.response()

        cart = load_cart(customer_id)
        cart_items = cart.cart_items()
        if not cart_items:
            raise ValidationError({"items": ["Your cart is empty"]})
        if _submitted_quantities(command.items) != cart.quantities():
            raise CartMismatchError("Your cart has changed. Please review your order and try again.")

        delivery = _parse_delivery_option(command.delivery_option)
        shipping = json.loads(command.shipping_info) if command.shipping_info else None
        if delivery is DeliveryOption.DELIVERY:
            shipping = shipping if isinstance(shipping, dict) else {}
            missing = [key for key in REQUIRED_SHIPPING_KEYS if not str(shipping.get(key) or "").strip()]
            if missing:
                raise ValidationError({"shipping_info": ["Please fill in all required fields for delivery."]})
        else:
            shipping = None

        method = str(command.payment_method).strip().lower()
        if method not in SUPPORTED_PAYMENT_METHODS:
            raise ValidationError({"payment_method": [f"{command.payment_method} payments are not available"]})

        wallet = load_wallet(customer_id)
        totals = quote(
            cart_items,
            delivery,
            wallet_balance=wallet.balance,
            wallet_requested=command.wallet_requested,
        )

        payer = (command.payer_identifier or "").strip() or None
        if totals.residual_payable > 0 and not payer:
            raise ValidationError(
                {"payer_identifier": ["Please enter your M-Pesa phone number (required to pay the remaining amount)."]}
            )

        client_grand_total = _advisory(command.client_grand_total)
        client_cashback = _advisory(command.client_cashback_estimate)
        if client_grand_total is not None and client_grand_total != totals.grand_total:
            logger.warning(
                "settlement.client_total_mismatch",
                customer_id=customer_id,
                client_grand_total=client_grand_total,
                grand_total=totals.grand_total,
            )
        if client_cashback is not None and client_cashback != totals.cashback:
            logger.warning(
                "settlement.client_cashback_mismatch",
                customer_id=customer_id,
                client_cashback_estimate=client_cashback,
                cashback=totals.cashback,
            )

        order = SettledOrder.settle(
            customer_id=customer_id,
            idempotency_key=command.idempotency_key,
            delivery_option=delivery.value,
            shipping_info=shipping,
            payment_method=method,
            payer_identifier=payer,
            items=[item.to_dict() for item in cart_items],
            totals=totals,
            client_grand_total=client_grand_total,
            client_cashback_estimate=client_cashback,
        )

        if totals.wallet_applied > 0:
            wallet.debit(totals.wallet_applied, order.order_number)
        if totals.cashback > 0:
            wallet.hold_cashback(totals.cashback, order.order_number)
        cart.clear()

        order.record_outcome(
            wallet_balance_after=wallet.balance,
            payment_action=_payment_action(order.order_number, totals.residual_payable, payer),
        )

        order_repo.add(order)
        current_domain.repository_for(Wallet).add(wallet)
        current_domain.repository_for(CustomerCart).add(cart)

        logger.info(
            "settlement.order_settled",
            customer_id=customer_id,
            order_number=order.order_number,
            grand_total=totals.grand_total,
            wallet_applied=totals.wallet_applied,
            residual_payable=totals.residual_payable,
            cashback_pending=totals.cashback,
        )
        return order.response()
