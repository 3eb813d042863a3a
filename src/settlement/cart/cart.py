"""CustomerCart aggregate (CQRS) — the server-side cart the storefront checks out.

One cart per customer, keyed by the customer id. Lines are kept as a JSON
array in the storefront's wire shape so they round-trip unchanged through
``GET /cart``.
"""

import json
from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, Text

from settlement.domain import settlement
from shared.pricing.items import CartItem, parse_items


@settlement.aggregate
class CustomerCart:
    customer_id = Identifier(identifier=True, required=True)
    items = Text()  # JSON array of cart lines
    updated_at = DateTime()

    @classmethod
    def create(cls, customer_id):
        return cls(customer_id=customer_id, items=json.dumps([]), updated_at=datetime.now(UTC))

    def cart_items(self) -> list[CartItem]:
        return parse_items(json.loads(self.items) if self.items else [])

    def replace_items(self, items: list[CartItem]) -> None:
        self.items = json.dumps([item.to_dict() for item in items])
        self.updated_at = datetime.now(UTC)

    def clear(self) -> None:
        self.replace_items([])

    def quantities(self) -> dict[str, int]:
        """Total quantity per product id."""
        totals: dict[str, int] = {}
        for item in self.cart_items():
            totals[item.id] = totals.get(item.id, 0) + item.quantity
        return totals
