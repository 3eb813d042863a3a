"""Domain events for the CheckoutSession aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from checkout.domain import checkout


@checkout.event(part_of="CheckoutSession")
class CheckoutStarted:
    """A cart was frozen into a new checkout session."""

    __version__ = 1

    session_id = Identifier(required=True)
    source = String(required=True)
    item_count = Integer(required=True)
    wallet_balance = Integer(required=True)
    started_at = DateTime(required=True)


@checkout.event(part_of="CheckoutSession")
class CheckoutStepChanged:
    """The session moved between checkout steps."""

    __version__ = 1

    session_id = Identifier(required=True)
    from_step = String(required=True)
    to_step = String(required=True)


@checkout.event(part_of="CheckoutSession")
class OrderPlaced:
    """The order was accepted by the backend-of-record or simulated locally."""

    __version__ = 1

    session_id = Identifier(required=True)
    order_id = String(required=True)
    source = String(required=True)
    idempotency_key = String(required=True)
    grand_total = Integer(required=True)
    wallet_used = Integer(required=True)
    amount_paid_externally = Integer(required=True)
    pending_cashback = Integer(required=True)
    placed_at = DateTime(required=True)


@checkout.event(part_of="CheckoutSession")
class CheckoutAbandoned:
    """The customer left the flow before placing the order."""

    __version__ = 1

    session_id = Identifier(required=True)
    abandoned_at_step = String(required=True)
    abandoned_at = DateTime(required=True)
