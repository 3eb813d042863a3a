"""Pydantic request/response schemas for the Checkout API.

These are external contracts (anti-corruption layer) — separate from
internal Protean commands.
"""

from typing import Any

from pydantic import BaseModel


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class StartCheckoutRequest(BaseModel):
    customer_id: str | None = None


class SelectDeliveryRequest(BaseModel):
    delivery_option: str  # pickup, delivery

    model_config = {"json_schema_extra": {"examples": [{"delivery_option": "delivery"}]}}


class UpdateShippingRequest(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    postal_code: str | None = None
    country: str | None = None


class SelectPaymentRequest(BaseModel):
    payment_method: str  # mpesa, card, bank
    payer_identifier: str | None = None

    model_config = {
        "json_schema_extra": {"examples": [{"payment_method": "mpesa", "payer_identifier": "254700000000"}]}
    }


class WalletAmountRequest(BaseModel):
    amount: Any = None  # Raw user input; clamped by the pricing engine


class AcceptTermsRequest(BaseModel):
    accepted: bool = True


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class SessionIdResponse(BaseModel):
    session_id: str


class StepResponse(BaseModel):
    step: str
    redirect: str | None = None


class TotalsSchema(BaseModel):
    subtotal_excl_vat: int
    vat_amount: int
    items_total_inc_vat: int
    delivery_fee: int
    grand_total: int
    wallet_applied: int
    residual_payable: int
    cashback: int


class CheckoutSessionResponse(BaseModel):
    session_id: str
    source: str
    step: str
    items: list[dict]
    wallet_balance: int
    delivery_option: str
    shipping_info: dict | None = None
    payment_method: str
    payer_identifier: str | None = None
    wallet_requested: str | None = None
    terms_accepted: bool
    totals: TotalsSchema
    order_id: str | None = None
    payment_action: dict | None = None


class OrderPlacedResponse(BaseModel):
    order_id: str
    source: str
    wallet_used: int
    amount_paid_externally: int
    pending_cashback: int
    wallet_balance: int
    payment_action: dict


class StatusResponse(BaseModel):
    status: str = "ok"
