"""Checkout commands against the real settlement routes over HTTP.

The checkout side runs in the test thread; the settlement side answers from
the live server, so every field crosses the wire exactly as in production.
"""

import pytest
from protean import current_domain

from checkout.errors import SubmissionRejectedError
from checkout.session.bootstrap import StartCheckout
from checkout.session.navigation import (
    AcceptTerms,
    AdvanceStep,
    RequestWalletAmount,
    SelectDeliveryOption,
    SelectPaymentMethod,
    UpdateShippingInfo,
)
from checkout.session.placement import PlaceOrder
from checkout.session.session import CheckoutSession, CheckoutStep
from checkout.storage.port import WALLET_BALANCE_KEY

_ITEMS = [
    {"id": "p1", "name": "Kettle", "price": 1000, "quantity": 2, "deliveryClass": "small"},
    {"id": "p2", "name": "Mug", "price": 500, "quantity": 1, "deliveryClass": "small"},
]

_ADDRESS = {
    "first_name": "Wanjiru",
    "last_name": "Kamau",
    "email": "wanjiru@example.com",
    "phone": "254700000001",
    "address": "12 Moi Avenue",
    "city": "Nairobi",
}


@pytest.fixture()
def seeded(http):
    http.put("/api/cart", json={"items": _ITEMS})
    http.post("/api/wallet/add-funds", json={"amount": 1500})


def _process(command):
    return current_domain.process(command, asynchronous=False)


def _confirmed_session(wallet_amount="800", delivery=False):
    session_id = _process(StartCheckout())
    if delivery:
        _process(SelectDeliveryOption(session_id=session_id, delivery_option="delivery"))
        _process(UpdateShippingInfo(session_id=session_id, **_ADDRESS))
    _process(AdvanceStep(session_id=session_id))
    _process(SelectPaymentMethod(session_id=session_id, payment_method="mpesa", payer_identifier="254711111111"))
    _process(RequestWalletAmount(session_id=session_id, amount=wallet_amount))
    _process(AcceptTerms(session_id=session_id, accepted=True))
    _process(AdvanceStep(session_id=session_id))
    return session_id


def _load(session_id):
    return current_domain.repository_for(CheckoutSession).get(session_id)


@pytest.mark.usefixtures("store", "seeded")
class TestBootstrapFromBackend:
    def test_cart_and_balance_come_from_the_backend(self, backend_of_record):
        session = _load(_process(StartCheckout()))
        assert session.source == "remote"
        assert session.wallet_balance == 1500
        assert [(item.id, item.quantity) for item in session.cart_items()] == [("p1", 2), ("p2", 1)]


@pytest.mark.usefixtures("store", "seeded")
class TestPlacementAgainstBackend:
    def test_backend_records_what_checkout_quoted(self, http, backend_of_record):
        session_id = _confirmed_session()
        result = _process(PlaceOrder(session_id=session_id))
        totals = _load(session_id).quote()

        order = http.get(f"/api/orders/{result['order_id']}").json()
        assert order["grandTotal"] == totals.grand_total == 2500
        assert order["walletApplied"] == result["wallet_used"] == 800
        assert order["residualPayable"] == result["amount_paid_externally"] == 1700
        assert order["cashback"] == result["pending_cashback"]
        assert order["payerIdentifier"] == "254711111111"
        assert order["paymentMethod"] == "mpesa"

    def test_session_survives_the_round_trip(self, backend_of_record):
        session_id = _confirmed_session()
        result = _process(PlaceOrder(session_id=session_id))

        session = _load(session_id)
        assert session.step == CheckoutStep.COMPLETE.value
        assert session.order_id == result["order_id"]

    def test_payment_action_carries_the_phone(self, backend_of_record):
        result = _process(PlaceOrder(session_id=_confirmed_session()))
        action = result["payment_action"]
        assert action["type"] == "stk_push"
        assert action["amount"] == 1700
        assert action["phone"] == "254711111111"

    def test_wallet_delta_replaces_the_cached_balance(self, store, http, backend_of_record):
        store.set(WALLET_BALANCE_KEY, 99999)
        _process(PlaceOrder(session_id=_confirmed_session()))

        wallet = http.get("/api/wallet").json()
        assert wallet["balance"] == 700
        assert store.get(WALLET_BALANCE_KEY) == 700

    def test_wallet_covering_everything_needs_no_stk_push(self, http, backend_of_record):
        http.post("/api/wallet/add-funds", json={"amount": 5000})
        result = _process(PlaceOrder(session_id=_confirmed_session(wallet_amount="100000")))
        assert result["amount_paid_externally"] == 0
        assert result["payment_action"]["type"] == "none"

    def test_delivery_address_crosses_the_wire(self, http, backend_of_record):
        session_id = _confirmed_session(wallet_amount="0", delivery=True)
        result = _process(PlaceOrder(session_id=session_id))

        order = http.get(f"/api/orders/{result['order_id']}").json()
        assert order["deliveryOption"] == "delivery"
        assert order["shippingInfo"]["firstName"] == "Wanjiru"
        assert order["shippingInfo"]["city"] == "Nairobi"
        assert order["grandTotal"] == _load(session_id).quote().grand_total


@pytest.mark.usefixtures("store", "seeded")
class TestIdempotentRetry:
    def test_resubmitting_the_same_order_settles_once(self, http, backend_of_record):
        session_id = _confirmed_session()
        submission = _load(session_id).build_submission()

        first = backend_of_record.submit_order(submission)
        second = backend_of_record.submit_order(submission)

        assert second.order_id == first.order_id
        assert len(http.get("/api/orders").json()["orders"]) == 1
        debits = [t for t in http.get("/api/wallet").json()["transactions"] if t["type"] == "debit"]
        assert [t["amount"] for t in debits] == [800]


@pytest.mark.usefixtures("store", "seeded")
class TestBackendRejections:
    def test_changed_cart_is_rejected_with_the_backend_message(self, http, backend_of_record):
        session_id = _confirmed_session()
        http.put("/api/cart", json={"items": _ITEMS[:1]})

        with pytest.raises(SubmissionRejectedError) as exc:
            _process(PlaceOrder(session_id=session_id))

        assert str(exc.value).startswith("Your cart has changed")
        assert exc.value.status_code == 409
        assert _load(session_id).step == CheckoutStep.CONFIRMATION.value
        assert http.get("/api/wallet").json()["balance"] == 1500

    def test_emptied_cart_is_rejected(self, http, backend_of_record):
        session_id = _confirmed_session()
        http.put("/api/cart", json={"items": []})

        with pytest.raises(SubmissionRejectedError) as exc:
            _process(PlaceOrder(session_id=session_id))

        assert str(exc.value) == "Your cart is empty"
        assert exc.value.status_code == 400
