"""Cart management — command and handler.

The storefront replaces the whole cart on every save.
"""

import json

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Text
from protean.utils.globals import current_domain

from settlement.cart.cart import CustomerCart
from settlement.domain import settlement
from shared.pricing.items import parse_items


def load_cart(customer_id) -> CustomerCart:
    """Fetch the customer's cart, or an empty unsaved one."""
    try:
        return current_domain.repository_for(CustomerCart).get(customer_id)
    except ObjectNotFoundError:
        return CustomerCart.create(customer_id)


@settlement.command(part_of="CustomerCart")
class SaveCart:
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON array of cart lines


@settlement.command_handler(part_of=CustomerCart)
class SaveCartHandler:
    @handle(SaveCart)
    def save_cart(self, command):
        items = parse_items(json.loads(command.items))
        cart = load_cart(command.customer_id)
        cart.replace_items(items)
        current_domain.repository_for(CustomerCart).add(cart)
        return [item.to_dict() for item in items]
