"""FastAPI routes for the Checkout domain — one checkout session per customer visit."""

import functools
import json

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from protean.utils.globals import current_domain

from checkout.api.schemas import (
    AcceptTermsRequest,
    CheckoutSessionResponse,
    OrderPlacedResponse,
    SelectDeliveryRequest,
    SelectPaymentRequest,
    SessionIdResponse,
    StartCheckoutRequest,
    StatusResponse,
    StepResponse,
    UpdateShippingRequest,
    WalletAmountRequest,
)
from checkout.domain import checkout
from checkout.errors import EmptyCheckoutError, SubmissionFailedError, SubmissionInProgressError
from checkout.session.bootstrap import StartCheckout
from checkout.session.navigation import (
    AbandonCheckout,
    AcceptTerms,
    AdvanceStep,
    GoBack,
    RequestWalletAmount,
    SelectDeliveryOption,
    SelectPaymentMethod,
    UpdateShippingInfo,
)
from checkout.session.placement import PlaceOrder
from checkout.session.session import CheckoutSession

router = APIRouter(prefix="/checkout-sessions", tags=["checkout"])


def _in_checkout_context(endpoint):
    """Run a sync endpoint inside the checkout domain context.

    Checkout commands make blocking calls to the backend-of-record, so the
    endpoints are plain functions that FastAPI runs on its threadpool, never
    on the event loop. The context is pushed on the worker thread itself.
    """

    @functools.wraps(endpoint)
    def wrapper(*args, **kwargs):
        with checkout.domain_context():
            return endpoint(*args, **kwargs)

    return wrapper


def _session_view(session: CheckoutSession) -> CheckoutSessionResponse:
    shipping = session.shipping_info
    return CheckoutSessionResponse(
        session_id=str(session.id),
        source=session.source,
        step=session.step,
        items=[item.to_dict() for item in session.cart_items()],
        wallet_balance=session.wallet_balance,
        delivery_option=session.delivery_option,
        shipping_info=shipping.to_dict() if shipping else None,
        payment_method=session.payment_method,
        payer_identifier=session.payer_identifier,
        wallet_requested=session.wallet_requested,
        terms_accepted=bool(session.terms_accepted),
        totals=session.quote().to_dict(),
        order_id=session.order_id,
        payment_action=json.loads(session.payment_action) if session.payment_action else None,
    )


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------
@router.post("", status_code=201, response_model=SessionIdResponse)
@_in_checkout_context
def start_checkout(body: StartCheckoutRequest | None = None) -> SessionIdResponse:
    """Open a checkout session for the current cart."""
    command = StartCheckout(customer_id=body.customer_id if body else None)
    session_id = current_domain.process(command, asynchronous=False)
    return SessionIdResponse(session_id=session_id)


@router.get("/{session_id}", response_model=CheckoutSessionResponse)
@_in_checkout_context
def get_checkout(session_id: str) -> CheckoutSessionResponse:
    """Return the session with freshly computed totals."""
    session = current_domain.repository_for(CheckoutSession).get(session_id)
    return _session_view(session)


@router.post("/{session_id}/abandon", response_model=StatusResponse)
@_in_checkout_context
def abandon_checkout(session_id: str) -> StatusResponse:
    current_domain.process(AbandonCheckout(session_id=session_id), asynchronous=False)
    return StatusResponse(status="abandoned")


# ---------------------------------------------------------------------------
# Step edits
# ---------------------------------------------------------------------------
@router.put("/{session_id}/delivery", response_model=StatusResponse)
@_in_checkout_context
def select_delivery(session_id: str, body: SelectDeliveryRequest) -> StatusResponse:
    command = SelectDeliveryOption(session_id=session_id, delivery_option=body.delivery_option)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.put("/{session_id}/shipping", response_model=StatusResponse)
@_in_checkout_context
def update_shipping(session_id: str, body: UpdateShippingRequest) -> StatusResponse:
    command = UpdateShippingInfo(session_id=session_id, **body.model_dump(exclude_none=True))
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.put("/{session_id}/payment", response_model=StatusResponse)
@_in_checkout_context
def select_payment(session_id: str, body: SelectPaymentRequest) -> StatusResponse:
    command = SelectPaymentMethod(
        session_id=session_id,
        payment_method=body.payment_method,
        payer_identifier=body.payer_identifier,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.put("/{session_id}/wallet", response_model=StatusResponse)
@_in_checkout_context
def request_wallet_amount(session_id: str, body: WalletAmountRequest) -> StatusResponse:
    amount = None if body.amount is None else str(body.amount)[:50]
    current_domain.process(RequestWalletAmount(session_id=session_id, amount=amount), asynchronous=False)
    return StatusResponse()


@router.put("/{session_id}/terms", response_model=StatusResponse)
@_in_checkout_context
def accept_terms(session_id: str, body: AcceptTermsRequest) -> StatusResponse:
    current_domain.process(AcceptTerms(session_id=session_id, accepted=body.accepted), asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------
@router.post("/{session_id}/next", response_model=StepResponse)
@_in_checkout_context
def next_step(session_id: str) -> StepResponse:
    step = current_domain.process(AdvanceStep(session_id=session_id), asynchronous=False)
    return StepResponse(step=step)


@router.post("/{session_id}/back", response_model=StepResponse)
@_in_checkout_context
def previous_step(session_id: str) -> StepResponse:
    redirect = current_domain.process(GoBack(session_id=session_id), asynchronous=False)
    session = current_domain.repository_for(CheckoutSession).get(session_id)
    return StepResponse(step=session.step, redirect=redirect)


# ---------------------------------------------------------------------------
# Order placement
# ---------------------------------------------------------------------------
@router.post("/{session_id}/orders", status_code=201, response_model=OrderPlacedResponse)
@_in_checkout_context
def place_order(session_id: str) -> OrderPlacedResponse:
    """Place the order. Safe to retry: the same idempotency key is reused."""
    result = current_domain.process(PlaceOrder(session_id=session_id), asynchronous=False)
    return OrderPlacedResponse(**result)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
async def _empty_checkout(request: Request, exc: EmptyCheckoutError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"message": str(exc), "redirect": exc.redirect_to})


async def _submission_in_progress(request: Request, exc: SubmissionInProgressError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"message": str(exc)})


async def _submission_failed(request: Request, exc: SubmissionFailedError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"message": str(exc)})


def register_checkout_exception_handlers(app: FastAPI) -> None:
    """Map checkout failures that are not validation errors onto HTTP responses."""
    app.add_exception_handler(EmptyCheckoutError, _empty_checkout)
    app.add_exception_handler(SubmissionInProgressError, _submission_in_progress)
    app.add_exception_handler(SubmissionFailedError, _submission_failed)
