"""Integration tests for the Checkout API via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean.integrations.fastapi import register_exception_handlers

from checkout.api.routes import register_checkout_exception_handlers, router
from checkout.storage.port import WALLET_BALANCE_KEY

_CART = [{"id": "p1", "name": "Kettle", "price": 1000, "quantity": 1, "deliveryClass": "medium"}]

_ADDRESS = {
    "first_name": "Wanjiru",
    "last_name": "Kamau",
    "email": "wanjiru@example.com",
    "phone": "254700000001",
    "address": "12 Moi Avenue",
    "city": "Nairobi",
}


@pytest.fixture()
def client(store, backend):
    app = FastAPI()
    app.include_router(router)
    register_exception_handlers(app)
    register_checkout_exception_handlers(app)
    return TestClient(app)


def _start(client, backend, items=_CART, wallet_balance=1500):
    backend.configure(items=items, wallet_balance=wallet_balance)
    response = client.post("/checkout-sessions", json={})
    assert response.status_code == 201
    return response.json()["session_id"]


def _to_confirmation(client, session_id, wallet_amount=None):
    assert client.post(f"/checkout-sessions/{session_id}/next").status_code == 200
    client.put(
        f"/checkout-sessions/{session_id}/payment",
        json={"payment_method": "mpesa", "payer_identifier": "254700000001"},
    )
    if wallet_amount is not None:
        client.put(f"/checkout-sessions/{session_id}/wallet", json={"amount": wallet_amount})
    client.put(f"/checkout-sessions/{session_id}/terms", json={"accepted": True})
    response = client.post(f"/checkout-sessions/{session_id}/next")
    assert response.json()["step"] == "Confirmation"


class TestStartCheckoutAPI:
    def test_start_returns_session(self, client, backend):
        session_id = _start(client, backend)
        body = client.get(f"/checkout-sessions/{session_id}").json()
        assert body["step"] == "Shipping"
        assert body["source"] == "remote"
        assert body["wallet_balance"] == 1500
        assert body["items"][0]["id"] == "p1"

    def test_start_without_body(self, client, backend):
        backend.configure(items=_CART)
        assert client.post("/checkout-sessions").status_code == 201

    def test_empty_cart_redirects(self, client, offline_backend):
        response = client.post("/checkout-sessions", json={})
        assert response.status_code == 409
        assert response.json()["redirect"] == "/cart"

    def test_unknown_session_is_404(self, client):
        assert client.get("/checkout-sessions/does-not-exist").status_code == 404


class TestTotalsAPI:
    def test_live_totals_follow_delivery_choice(self, client, backend):
        session_id = _start(client, backend)
        before = client.get(f"/checkout-sessions/{session_id}").json()["totals"]
        assert before["grand_total"] == 1000
        assert before["delivery_fee"] == 0

        client.put(f"/checkout-sessions/{session_id}/delivery", json={"delivery_option": "delivery"})
        after = client.get(f"/checkout-sessions/{session_id}").json()["totals"]
        assert after["delivery_fee"] == 30000
        assert after["grand_total"] == 31000

    def test_wallet_amount_is_clamped(self, client, backend):
        session_id = _start(client, backend, wallet_balance=300)
        client.post(f"/checkout-sessions/{session_id}/next")
        client.put(f"/checkout-sessions/{session_id}/wallet", json={"amount": 9999})
        totals = client.get(f"/checkout-sessions/{session_id}").json()["totals"]
        assert totals["wallet_applied"] == 300
        assert totals["residual_payable"] == 700


class TestNavigationAPI:
    def test_delivery_without_address_is_400(self, client, backend):
        session_id = _start(client, backend)
        client.put(f"/checkout-sessions/{session_id}/delivery", json={"delivery_option": "delivery"})
        response = client.post(f"/checkout-sessions/{session_id}/next")
        assert response.status_code == 400

    def test_delivery_with_address_advances(self, client, backend):
        session_id = _start(client, backend)
        client.put(f"/checkout-sessions/{session_id}/delivery", json={"delivery_option": "delivery"})
        client.put(f"/checkout-sessions/{session_id}/shipping", json=_ADDRESS)
        response = client.post(f"/checkout-sessions/{session_id}/next")
        assert response.status_code == 200
        assert response.json()["step"] == "Payment"
        shipping = client.get(f"/checkout-sessions/{session_id}").json()["shipping_info"]
        assert shipping["city"] == "Nairobi"
        assert shipping["country"] == "Kenya"

    def test_back_from_shipping_redirects_to_cart(self, client, backend):
        session_id = _start(client, backend)
        response = client.post(f"/checkout-sessions/{session_id}/back")
        assert response.json() == {"step": "Abandoned", "redirect": "/cart"}

    def test_abandon(self, client, backend):
        session_id = _start(client, backend)
        response = client.post(f"/checkout-sessions/{session_id}/abandon")
        assert response.json()["status"] == "abandoned"
        assert client.get(f"/checkout-sessions/{session_id}").json()["step"] == "Abandoned"

    def test_card_payments_are_400(self, client, backend):
        session_id = _start(client, backend)
        client.post(f"/checkout-sessions/{session_id}/next")
        response = client.put(f"/checkout-sessions/{session_id}/payment", json={"payment_method": "card"})
        assert response.status_code == 400


class TestPlaceOrderAPI:
    def test_place_order(self, client, backend, store):
        backend.configure(wallet_after=743, payment_action={"type": "stk_push", "amount": 200})
        session_id = _start(client, backend)
        _to_confirmation(client, session_id, wallet_amount="800")

        response = client.post(f"/checkout-sessions/{session_id}/orders")
        assert response.status_code == 201
        body = response.json()
        assert body["wallet_used"] == 800
        assert body["amount_paid_externally"] == 200
        assert body["pending_cashback"] == 43
        assert body["wallet_balance"] == 743
        assert body["payment_action"]["type"] == "stk_push"
        assert store.get(WALLET_BALANCE_KEY) == 743

        session = client.get(f"/checkout-sessions/{session_id}").json()
        assert session["step"] == "Complete"
        assert session["order_id"] == body["order_id"]

    def test_rejected_order_is_502_with_message(self, client, backend):
        session_id = _start(client, backend)
        _to_confirmation(client, session_id)
        backend.configure(should_succeed=False, failure_reason="Out of stock")

        response = client.post(f"/checkout-sessions/{session_id}/orders")
        assert response.status_code == 502
        assert response.json()["message"] == "Out of stock"
        assert client.get(f"/checkout-sessions/{session_id}").json()["step"] == "Confirmation"

    def test_place_before_confirmation_is_400(self, client, backend):
        session_id = _start(client, backend)
        assert client.post(f"/checkout-sessions/{session_id}/orders").status_code == 400
