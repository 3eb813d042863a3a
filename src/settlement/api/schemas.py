"""Pydantic request/response schemas for the Settlement API.

These are the storefront's wire contracts, so fields are camelCase on the
wire and snake_case in Python.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class CartItemSchema(CamelModel):
    id: str
    name: str = ""
    price: float = Field(default=0, ge=0)
    quantity: int = Field(default=1, ge=1)
    delivery_class: str = "small"
    cashback_percent: float | None = Field(default=None, ge=0)


class SaveCartRequest(CamelModel):
    items: list[CartItemSchema]

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [
                        {"id": "p1", "name": "Kettle", "price": 1160, "quantity": 2, "deliveryClass": "medium"},
                    ]
                }
            ]
        }
    }


class CartResponse(CamelModel):
    items: list[CartItemSchema]


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------
class WalletTransactionSchema(CamelModel):
    type: str
    amount: int
    description: str | None = None
    order_number: str | None = None
    created_at: str | None = None


class WalletResponse(CamelModel):
    balance: int
    pending_cashback: int
    transactions: list[WalletTransactionSchema] = []


class AddFundsRequest(CamelModel):
    amount: int = Field(gt=0)
    description: str | None = None


class ReleaseCashbackResponse(CamelModel):
    order_number: str
    released: int
    balance: int


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class OrderLineSchema(CamelModel):
    product_id: str
    qty: int = 1


class CheckoutRequest(CamelModel):
    delivery_option: str
    shipping_info: dict | None = None
    payment_method: str
    mpesa_phone: str | None = None
    wallet_applied: Any = None  # Raw; the backend clamps it
    items: list[OrderLineSchema]
    client_grand_total: float | None = None
    client_cashback_estimate: float | None = None
    idempotency_key: str | None = None


class CheckoutResponse(CamelModel):
    order_id: str
    wallet_delta: int
    mpesa_action: dict


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class SettledOrderSchema(CamelModel):
    """A placed order as the backend recorded it."""

    order_number: str
    status: str
    delivery_option: str
    shipping_info: dict | None = None
    payment_method: str
    payer_identifier: str | None = None
    items: list[CartItemSchema]
    subtotal_excl_vat: int
    vat_amount: int
    delivery_fee: int
    grand_total: int
    wallet_applied: int
    residual_payable: int
    cashback: int
    mpesa_action: dict
    settled_at: str | None = None


class OrderListResponse(CamelModel):
    orders: list[SettledOrderSchema]
