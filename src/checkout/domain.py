"""Checkout bounded context — pricing and settlement of a customer's cart.

Drives the three-step checkout flow (shipping, payment, confirmation) over a
cart fetched once from the backend-of-record or, when it is unreachable, from
the local cache, and submits the resulting order idempotently.
"""

import structlog
from protean.domain import Domain

checkout = Domain(name="checkout")

logger = structlog.get_logger(__name__)
