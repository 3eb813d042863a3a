"""FastAPI routes for the Settlement domain — the storefront's backend-of-record.

The caller is identified by the ``X-Customer-Id`` header. Checkout failures
answer with ``{"message": ...}`` so the storefront can show them verbatim.
"""

import json

from fastapi import APIRouter, Header
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from settlement.api.schemas import (
    AddFundsRequest,
    CartResponse,
    CheckoutRequest,
    CheckoutResponse,
    OrderListResponse,
    ReleaseCashbackResponse,
    SaveCartRequest,
    SettledOrderSchema,
    WalletResponse,
)
from settlement.cart.management import SaveCart, load_cart
from settlement.errors import CartMismatchError
from settlement.order.order import SettledOrder
from settlement.order.placement import PlaceOrder
from settlement.wallet.funding import AddFunds, ReleaseCashback
from settlement.wallet.wallet import Wallet

router = APIRouter(prefix="/api", tags=["settlement"])

DEFAULT_CUSTOMER = "guest"


def _wallet_view(customer_id: str) -> WalletResponse:
    try:
        wallet = current_domain.repository_for(Wallet).get(customer_id)
    except ObjectNotFoundError:
        return WalletResponse(balance=0, pending_cashback=0, transactions=[])

    transactions = sorted(wallet.transactions, key=lambda t: t.created_at)
    return WalletResponse(
        balance=wallet.balance,
        pending_cashback=wallet.pending_cashback,
        transactions=[t.to_wire() for t in transactions],
    )


def _customer_orders(customer_id: str, **filters) -> list[SettledOrder]:
    orders = current_domain.repository_for(SettledOrder)._dao.query.filter(customer_id=customer_id, **filters).all()
    return sorted(orders.items, key=lambda order: order.settled_at, reverse=True)


def _order_view(order: SettledOrder) -> SettledOrderSchema:
    return SettledOrderSchema(
        order_number=order.order_number,
        status=order.status,
        delivery_option=order.delivery_option,
        shipping_info=json.loads(order.shipping_info) if order.shipping_info else None,
        payment_method=order.payment_method,
        payer_identifier=order.payer_identifier,
        items=json.loads(order.items),
        subtotal_excl_vat=order.subtotal_excl_vat,
        vat_amount=order.vat_amount,
        delivery_fee=order.delivery_fee,
        grand_total=order.grand_total,
        wallet_applied=order.wallet_applied,
        residual_payable=order.residual_payable,
        cashback=order.cashback,
        mpesa_action=order.response()["mpesaAction"],
        settled_at=order.settled_at.isoformat() if order.settled_at else None,
    )


def _first_message(messages: dict) -> str:
    for errors in messages.values():
        if errors:
            return str(errors[0])
    return "Checkout failed"


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
@router.get("/cart", response_model=CartResponse)
async def get_cart(x_customer_id: str = Header(default=DEFAULT_CUSTOMER)) -> CartResponse:
    """Return the customer's saved cart (empty if none)."""
    cart = load_cart(x_customer_id)
    return CartResponse(items=[item.to_dict() for item in cart.cart_items()])


@router.put("/cart", response_model=CartResponse)
async def save_cart(body: SaveCartRequest, x_customer_id: str = Header(default=DEFAULT_CUSTOMER)) -> CartResponse:
    """Replace the customer's cart."""
    command = SaveCart(
        customer_id=x_customer_id,
        items=json.dumps([item.model_dump(by_alias=True) for item in body.items]),
    )
    items = current_domain.process(command, asynchronous=False)
    return CartResponse(items=items)


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------
@router.get("/wallet", response_model=WalletResponse)
async def get_wallet(x_customer_id: str = Header(default=DEFAULT_CUSTOMER)) -> WalletResponse:
    return _wallet_view(x_customer_id)


@router.post("/wallet/add-funds", response_model=WalletResponse)
async def add_funds(body: AddFundsRequest, x_customer_id: str = Header(default=DEFAULT_CUSTOMER)) -> WalletResponse:
    """Top up the wallet."""
    command = AddFunds(customer_id=x_customer_id, **body.model_dump(exclude_none=True))
    current_domain.process(command, asynchronous=False)
    return _wallet_view(x_customer_id)


@router.get("/orders", response_model=OrderListResponse)
async def list_orders(x_customer_id: str = Header(default=DEFAULT_CUSTOMER)) -> OrderListResponse:
    """The caller's orders, newest first."""
    return OrderListResponse(orders=[_order_view(order) for order in _customer_orders(x_customer_id)])


@router.get("/orders/{order_number}", response_model=SettledOrderSchema)
async def get_order(order_number: str, x_customer_id: str = Header(default=DEFAULT_CUSTOMER)) -> SettledOrderSchema:
    """One of the caller's orders. Other customers' orders are not found."""
    orders = _customer_orders(x_customer_id, order_number=order_number)
    if not orders:
        raise ObjectNotFoundError(f"Order {order_number} not found")
    return _order_view(orders[0])


@router.post("/orders/{order_number}/release-cashback", response_model=ReleaseCashbackResponse)
async def release_cashback(
    order_number: str,
    x_customer_id: str = Header(default=DEFAULT_CUSTOMER),
) -> ReleaseCashbackResponse:
    """Make an order's pending cashback spendable."""
    command = ReleaseCashback(customer_id=x_customer_id, order_number=order_number)
    released = current_domain.process(command, asynchronous=False)
    return ReleaseCashbackResponse(
        order_number=order_number,
        released=released,
        balance=_wallet_view(x_customer_id).balance,
    )


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
@router.post("/checkout", status_code=201, response_model=CheckoutResponse)
async def checkout(
    body: CheckoutRequest,
    x_customer_id: str = Header(default=DEFAULT_CUSTOMER),
    idempotency_key: str | None = Header(default=None),
):
    """Place an order. Repeating the same idempotency key returns the original order."""
    key = idempotency_key or body.idempotency_key
    if not key:
        return JSONResponse(status_code=400, content={"message": "An idempotency key is required"})

    try:
        command = PlaceOrder(
            customer_id=x_customer_id,
            idempotency_key=key,
            delivery_option=body.delivery_option,
            shipping_info=json.dumps(body.shipping_info) if body.shipping_info else None,
            payment_method=body.payment_method,
            payer_identifier=body.mpesa_phone,
            wallet_requested=None if body.wallet_applied is None else str(body.wallet_applied)[:50],
            items=json.dumps([line.model_dump(by_alias=True) for line in body.items]),
            client_grand_total=body.client_grand_total,
            client_cashback_estimate=body.client_cashback_estimate,
        )
        result = current_domain.process(command, asynchronous=False)
    except CartMismatchError as exc:
        return JSONResponse(status_code=409, content={"message": str(exc)})
    except ValidationError as exc:
        return JSONResponse(status_code=400, content={"message": _first_message(exc.messages)})

    return CheckoutResponse.model_validate(result)
