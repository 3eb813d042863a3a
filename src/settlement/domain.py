"""Settlement bounded context — the backend-of-record for carts, wallets and orders.

Recomputes every checkout total authoritatively, deduplicates order
submissions by idempotency key and keeps the wallet ledger, including
cashback that is held until the delivery/return window closes.
"""

import structlog
from protean.domain import Domain

settlement = Domain(name="settlement")

logger = structlog.get_logger(__name__)
