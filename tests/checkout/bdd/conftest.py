"""Shared BDD fixtures and step definitions for the Checkout domain."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then, when

from checkout.errors import EmptyCheckoutError
from checkout.session.bootstrap import StartCheckout
from checkout.session.navigation import AcceptTerms, AdvanceStep, RequestWalletAmount, SelectPaymentMethod
from checkout.session.placement import PlaceOrder
from checkout.session.session import CheckoutSession, CheckoutStep
from checkout.storage.port import WALLET_BALANCE_KEY
from shared.pricing.items import CartItem


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for captured checkout errors."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('a checkout for a {price:d} item of class "{delivery_class}" with a wallet balance of {balance:d}'),
    target_fixture="session",
)
def _checkout_for_item(price, delivery_class, balance):
    session = CheckoutSession.start(
        source="remote",
        items=[CartItem.from_dict({"id": "p1", "price": price, "deliveryClass": delivery_class})],
        wallet_balance=balance,
    )
    session._events.clear()
    return session


@given("the backend is unreachable")
def _backend_unreachable(backend):
    backend.configure(reachable=False)


@given("the local cart cache is empty")
def _local_cart_empty(store):
    store.clear()


@given(parsers.cfparse("the backend holds a cart with a {price:d} item and a wallet balance of {balance:d}"))
def _backend_cart(backend, store, price, balance):
    backend.configure(items=[{"id": "p1", "price": price}], wallet_balance=balance)


@given(parsers.cfparse("the cached wallet balance is {balance:d}"))
def _cached_balance(store, balance):
    store.set(WALLET_BALANCE_KEY, balance)


@given(parsers.cfparse("the backend will report a wallet balance of {balance:d} after the order"))
def _backend_wallet_after(backend, balance):
    backend.configure(wallet_after=balance)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("delivery is chosen")
def _choose_delivery(session):
    session.select_delivery_option("delivery")


@when(parsers.cfparse('the customer asks to use "{amount}" from the wallet'))
def _request_wallet(session, amount):
    if session.step == CheckoutStep.SHIPPING.value:
        session.advance()
    session.request_wallet_amount(amount)


@when("the customer starts checkout")
def _start_checkout(error):
    try:
        current_domain.process(StartCheckout(), asynchronous=False)
    except EmptyCheckoutError as exc:
        error["exc"] = exc


@when(parsers.cfparse('the customer places the order using "{amount}" from the wallet'))
def _place_order_with_wallet(amount):
    session_id = current_domain.process(StartCheckout(), asynchronous=False)
    current_domain.process(AdvanceStep(session_id=session_id), asynchronous=False)
    current_domain.process(
        SelectPaymentMethod(session_id=session_id, payment_method="mpesa", payer_identifier="254700000001"),
        asynchronous=False,
    )
    current_domain.process(RequestWalletAmount(session_id=session_id, amount=amount), asynchronous=False)
    current_domain.process(AcceptTerms(session_id=session_id, accepted=True), asynchronous=False)
    current_domain.process(AdvanceStep(session_id=session_id), asynchronous=False)
    current_domain.process(PlaceOrder(session_id=session_id), asynchronous=False)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the subtotal excluding VAT is {amount:d}"))
def _subtotal(session, amount):
    assert session.quote().subtotal_excl_vat == amount


@then(parsers.cfparse("the VAT is {amount:d}"))
def _vat(session, amount):
    assert session.quote().vat_amount == amount


@then(parsers.cfparse("the items total including VAT is {amount:d}"))
def _items_total(session, amount):
    assert session.quote().items_total_inc_vat == amount


@then(parsers.cfparse("the delivery fee is {amount:d}"))
def _delivery_fee(session, amount):
    assert session.quote().delivery_fee == amount


@then(parsers.cfparse("the grand total is {amount:d}"))
def _grand_total(session, amount):
    assert session.quote().grand_total == amount


@then(parsers.cfparse("the wallet applied is {amount:d}"))
def _wallet_applied(session, amount):
    assert session.quote().wallet_applied == amount


@then(parsers.cfparse("the residual payable is {amount:d}"))
def _residual(session, amount):
    assert session.quote().residual_payable == amount


@then(parsers.cfparse('the customer is sent back to "{path}"'))
def _redirected(error, path):
    assert isinstance(error["exc"], EmptyCheckoutError)
    assert error["exc"].redirect_to == path


@then("no order is submitted")
def _no_submission(backend):
    assert not [call for call in backend.calls if call["method"] == "submit_order"]
    assert current_domain.repository_for(CheckoutSession)._dao.query.all().items == []


@then(parsers.cfparse("the cached wallet balance is {balance:d}"))
def _cached_balance_is(store, balance):
    assert store.get(WALLET_BALANCE_KEY) == balance
