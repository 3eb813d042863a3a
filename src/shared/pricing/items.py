"""Cart line read model shared by the checkout client and the settlement backend.

Cart lines are owned by whichever cart holds them (the backend-of-record or
the local cache). Pricing only ever reads them, so they are immutable.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

DEFAULT_CASHBACK_PERCENT = Decimal("5")


class DeliveryClass(Enum):
    SMALL = "small"
    MEDIUM = "medium"
    BULKY = "bulky"

    @property
    def rank(self) -> int:
        return _CLASS_RANK[self]

    @classmethod
    def parse(cls, value: Any) -> "DeliveryClass":
        """Case-insensitive lookup. Missing or unknown classes are small."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.SMALL


_CLASS_RANK = {
    DeliveryClass.SMALL: 0,
    DeliveryClass.MEDIUM: 1,
    DeliveryClass.BULKY: 2,
}


class DeliveryOption(Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


def to_decimal(value: Any) -> Decimal | None:
    """Parse a numeric-looking value, or return None when it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    else:
        try:
            number = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
    if not number.is_finite():
        return None
    return number


def _quantity(value: Any) -> int:
    number = to_decimal(value)
    if number is None or number < 1 or number != number.to_integral_value():
        return 1
    return int(number)


@dataclass(frozen=True)
class CartItem:
    """A single cart line. ``price`` is the VAT-inclusive unit price."""

    id: str
    name: str = ""
    price: Decimal = Decimal("0")
    quantity: int = 1
    delivery_class: DeliveryClass = DeliveryClass.SMALL
    cashback_percent: Decimal | None = None

    @property
    def effective_cashback_percent(self) -> Decimal:
        if self.cashback_percent is None:
            return DEFAULT_CASHBACK_PERCENT
        return self.cashback_percent

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        """Build a line from a wire or cache dict (camelCase or snake_case keys)."""
        if not isinstance(data, dict):
            raise ValueError(f"Cart item must be an object, got {type(data).__name__}")
        identifier = data.get("id", data.get("productId", data.get("product_id")))
        if identifier is None:
            raise ValueError("Cart item is missing an id")

        cashback = data.get("cashbackPercent", data.get("cashback_percent"))

        return cls(
            id=str(identifier),
            name=str(data.get("name") or ""),
            price=to_decimal(data.get("price")) or Decimal("0"),
            quantity=_quantity(data.get("quantity", data.get("qty"))),
            delivery_class=DeliveryClass.parse(data.get("deliveryClass", data.get("delivery_class"))),
            cashback_percent=to_decimal(cashback) if cashback is not None else None,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "price": _plain_number(self.price),
            "quantity": self.quantity,
            "deliveryClass": self.delivery_class.value,
            "cashbackPercent": None if self.cashback_percent is None else _plain_number(self.cashback_percent),
        }


def _plain_number(value: Decimal) -> int | float:
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def parse_items(raw_items: Any) -> list[CartItem]:
    """Parse a list of cart line dicts. Anything that is not a list yields no items."""
    if not isinstance(raw_items, list):
        return []
    return [item if isinstance(item, CartItem) else CartItem.from_dict(item) for item in raw_items]
