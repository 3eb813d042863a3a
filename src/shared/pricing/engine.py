"""Checkout pricing engine — VAT, delivery fee, wallet and cashback math.

Every function here is pure and deterministic: the same cart always prices
the same way, on the client and on the settlement backend. Amounts are whole
minor currency units (ints). Stored prices are VAT-inclusive, so the
VAT-exclusive unit price is derived per item and VAT is rounded once on the
aggregate subtotal.

Rounding is half-away-from-zero to the nearest whole minor unit.
"""

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from shared.pricing.items import CartItem, DeliveryClass, DeliveryOption, to_decimal

VAT_RATE = Decimal("0.16")

DELIVERY_FEES = {
    DeliveryClass.SMALL: 15000,
    DeliveryClass.MEDIUM: 30000,
    DeliveryClass.BULKY: 60000,
}


@dataclass(frozen=True)
class VatBreakdown:
    subtotal_excl_vat: int
    vat_amount: int
    items_total_inc_vat: int


@dataclass(frozen=True)
class CheckoutTotals:
    """All monetary figures shown at checkout."""

    subtotal_excl_vat: int
    vat_amount: int
    items_total_inc_vat: int
    delivery_fee: int
    grand_total: int
    wallet_applied: int
    residual_payable: int
    cashback: int

    def to_dict(self) -> dict:
        return asdict(self)


def round_money(value: Decimal | int | float) -> int:
    """Round to a whole minor unit, half away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def exclusive_unit_price(item: CartItem) -> int:
    return round_money(item.price / (1 + VAT_RATE))


def compute_vat_breakdown(items: Iterable[CartItem]) -> VatBreakdown:
    subtotal = sum((exclusive_unit_price(item) * item.quantity for item in items), 0)
    vat_amount = round_money(subtotal * VAT_RATE)
    return VatBreakdown(
        subtotal_excl_vat=subtotal,
        vat_amount=vat_amount,
        items_total_inc_vat=subtotal + vat_amount,
    )


def _delivery_option(value: DeliveryOption | str) -> DeliveryOption:
    if isinstance(value, DeliveryOption):
        return value
    return DeliveryOption(str(value).strip().lower())


def highest_delivery_class(items: Iterable[CartItem]) -> DeliveryClass:
    highest = DeliveryClass.SMALL
    for item in items:
        if item.delivery_class is DeliveryClass.BULKY:
            return DeliveryClass.BULKY
        if item.delivery_class.rank > highest.rank:
            highest = item.delivery_class
    return highest


def compute_delivery_fee(items: Iterable[CartItem], delivery_option: DeliveryOption | str) -> int:
    """Pickup is free. Delivery is priced once per cart by its highest delivery class."""
    if _delivery_option(delivery_option) is DeliveryOption.PICKUP:
        return 0
    return DELIVERY_FEES[highest_delivery_class(items)]


def compute_cashback(items: Iterable[CartItem]) -> int:
    """Cashback is earned on the VAT-exclusive price, rounded per line."""
    return sum(
        (
            round_money(Decimal(exclusive_unit_price(item)) * item.quantity * item.effective_cashback_percent / 100)
            for item in items
        ),
        0,
    )


def compute_grand_total(items_total_inc_vat: int, delivery_fee: int) -> int:
    return items_total_inc_vat + delivery_fee


def compute_wallet_application(requested_amount: Any, wallet_balance: int, grand_total: int) -> int:
    """Clamp a raw wallet request into ``[0, min(balance, grand_total)]``.

    ``requested_amount`` is user input: anything that does not parse as a
    finite number counts as zero.
    """
    requested = to_decimal(requested_amount)
    requested = max(0, round_money(requested)) if requested is not None else 0
    ceiling = max(0, min(int(wallet_balance or 0), grand_total))
    return min(requested, ceiling)


def compute_residual_payable(grand_total: int, wallet_applied: int) -> int:
    return max(0, grand_total - wallet_applied)


def quote(
    items: Iterable[CartItem],
    delivery_option: DeliveryOption | str,
    wallet_balance: int = 0,
    wallet_requested: Any = None,
) -> CheckoutTotals:
    """Price a cart end to end."""
    items = list(items)
    breakdown = compute_vat_breakdown(items)
    delivery_fee = compute_delivery_fee(items, delivery_option)
    grand_total = compute_grand_total(breakdown.items_total_inc_vat, delivery_fee)
    wallet_applied = compute_wallet_application(wallet_requested, wallet_balance, grand_total)

    return CheckoutTotals(
        subtotal_excl_vat=breakdown.subtotal_excl_vat,
        vat_amount=breakdown.vat_amount,
        items_total_inc_vat=breakdown.items_total_inc_vat,
        delivery_fee=delivery_fee,
        grand_total=grand_total,
        wallet_applied=wallet_applied,
        residual_payable=compute_residual_payable(grand_total, wallet_applied),
        cashback=compute_cashback(items),
    )
