"""Backend-of-record adapter — talks to the settlement service over HTTP.

Contract:
    GET  /health    → 200 when the backend is reachable
    GET  /cart      → {"items": [CartItem, ...]}
    GET  /wallet    → {"balance": number, ...}
    POST /checkout  → 2xx {"orderId", "walletDelta"?, "mpesaAction"?}
                      non-2xx {"message": "..."}

The bearer token, when configured, is attached to every request.
"""

import math

import httpx
import structlog

from checkout.errors import DataSourceError, SubmissionFailedError, SubmissionRejectedError
from checkout.sources.port import CheckoutDataSource, OrderReceipt, OrderSubmission
from shared.pricing.items import CartItem, parse_items, to_decimal

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 5.0


class RemoteDataSource(CheckoutDataSource):
    """Checkout data source backed by the settlement service."""

    kind = "remote"

    def __init__(
        self,
        base_url: str = "",
        client: httpx.Client | None = None,
        token: str | None = None,
        customer_id: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if customer_id:
            headers["X-Customer-Id"] = customer_id

        if client is None:
            client = httpx.Client(base_url=base_url, timeout=timeout)
        client.headers.update(headers)
        self.client = client

    def probe(self) -> bool:
        """Liveness check. Never raises."""
        try:
            response = self.client.get("/health")
        except httpx.HTTPError as exc:
            logger.warning("checkout.backend_unreachable", error=str(exc))
            return False
        if not response.is_success:
            logger.warning("checkout.backend_unhealthy", status_code=response.status_code)
            return False
        return True

    def _get_json(self, path: str) -> dict:
        try:
            response = self.client.get(path)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise DataSourceError(f"GET {path} failed: {exc}") from exc
        if not isinstance(body, dict):
            raise DataSourceError(f"GET {path} returned an unexpected payload")
        return body

    def fetch_cart(self) -> list[CartItem]:
        body = self._get_json("/cart")
        try:
            return parse_items(body.get("items"))
        except ValueError as exc:
            raise DataSourceError(f"Malformed cart payload: {exc}") from exc

    def fetch_wallet_balance(self) -> int:
        body = self._get_json("/wallet")
        balance = to_decimal(body.get("balance"))
        if balance is None:
            raise DataSourceError("Wallet payload has no numeric balance")
        return int(balance)

    def submit_order(self, submission: OrderSubmission) -> OrderReceipt:
        try:
            response = self.client.post(
                "/checkout",
                json=submission.to_payload(),
                headers={"Idempotency-Key": submission.idempotency_key},
            )
        except httpx.HTTPError as exc:
            raise SubmissionFailedError(f"Checkout error: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if not response.is_success or data.get("error"):
            message = data.get("message") or data.get("error") or "Checkout failed"
            raise SubmissionRejectedError(str(message), status_code=response.status_code)

        if not data.get("orderId"):
            raise SubmissionFailedError("Checkout error: response carried no order id")

        wallet_delta = data.get("walletDelta")
        wallet_balance = None
        if (
            isinstance(wallet_delta, (int, float))
            and not isinstance(wallet_delta, bool)
            and math.isfinite(wallet_delta)
        ):
            wallet_balance = int(wallet_delta)

        return OrderReceipt(
            order_id=str(data["orderId"]),
            source=self.kind,
            wallet_balance=wallet_balance,
            payment_action=data.get("mpesaAction") or {"type": "none"},
        )
