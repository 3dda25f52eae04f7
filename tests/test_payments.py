"""
Tests for the subscription checkout endpoints.
"""
from types import SimpleNamespace

import pytest
import stripe

from watchtracker.services import stripe_invoice_service

CHECKOUT_BODY = {
    "email": "buyer@example.com",
    "firstName": "Alex",
    "lastName": "Trader",
    "selectedPlan": "monthly",
}


@pytest.fixture
def checkout_calls(monkeypatch):
    calls = []

    def fake_checkout(**kwargs):
        calls.append(kwargs)
        return {"sessionId": "cs_test_1", "url": "https://checkout.stripe.com/c/cs_test_1"}

    monkeypatch.setattr(stripe_invoice_service, "create_subscription_checkout", fake_checkout)
    return calls


def test_create_checkout_session(client, checkout_calls):
    response = client.post("/api/payments/create-checkout-session", json=CHECKOUT_BODY)

    assert response.status_code == 200
    assert response.json() == {"sessionId": "cs_test_1", "url": "https://checkout.stripe.com/c/cs_test_1"}
    assert checkout_calls[0]["discount"] == 0
    assert checkout_calls[0]["promo_code"] is None


@pytest.mark.parametrize("plan, discount", [("monthly", 10), ("yearly", 130)])
def test_promo_code_applies_plan_discount(client, checkout_calls, plan, discount):
    body = dict(CHECKOUT_BODY, selectedPlan=plan, promoCode=" operandi2024 ")

    response = client.post("/api/payments/create-checkout-session", json=body)

    assert response.status_code == 200
    assert checkout_calls[0]["discount"] == discount
    assert checkout_calls[0]["promo_code"] == "OPERANDI2024"


def test_invalid_promo_code(client, checkout_calls):
    body = dict(CHECKOUT_BODY, promoCode="FREEWATCH")

    response = client.post("/api/payments/create-checkout-session", json=body)

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid promo code"}
    assert checkout_calls == []


@pytest.mark.parametrize("overrides, message", [
    ({"email": "nope"}, "Valid email is required"),
    ({"firstName": " "}, "First name is required"),
    ({"lastName": None}, "Last name is required"),
    ({"selectedPlan": "weekly"}, "Valid plan selection is required"),
])
def test_checkout_validation(client, checkout_calls, overrides, message):
    body = dict(CHECKOUT_BODY, **overrides)

    response = client.post("/api/payments/create-checkout-session", json=body)

    assert response.status_code == 400
    assert response.json()["error"] == message


def test_checkout_without_platform_key(client, monkeypatch):
    monkeypatch.setattr(stripe_invoice_service, "STRIPE_SECRET_KEY", None)

    response = client.post("/api/payments/create-checkout-session", json=CHECKOUT_BODY)

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to create checkout session"
    assert "STRIPE_SECRET_KEY" in response.json()["message"]


def test_checkout_success(client, monkeypatch):
    session = SimpleNamespace(
        payment_status="paid",
        customer_email="buyer@example.com",
        metadata={"firstName": "Alex", "lastName": "Trader", "plan": "yearly"},
    )
    monkeypatch.setattr(stripe_invoice_service, "retrieve_checkout_session", lambda session_id: session)

    response = client.post("/api/payments/success", json={"sessionId": "cs_test_1"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "message": "Payment successful",
        "customer": {"email": "buyer@example.com", "firstName": "Alex", "lastName": "Trader", "plan": "yearly"},
    }


def test_checkout_success_unpaid(client, monkeypatch):
    session = SimpleNamespace(payment_status="unpaid", customer_email=None, metadata={})
    monkeypatch.setattr(stripe_invoice_service, "retrieve_checkout_session", lambda session_id: session)

    response = client.post("/api/payments/success", json={"sessionId": "cs_test_1"})

    assert response.status_code == 400
    assert response.json() == {"error": "Payment not completed", "status": "unpaid"}


def test_checkout_success_stripe_error(client, monkeypatch):
    def fail(session_id):
        raise stripe.InvalidRequestError("No such checkout.session", param="id")

    monkeypatch.setattr(stripe_invoice_service, "retrieve_checkout_session", fail)

    response = client.post("/api/payments/success", json={"sessionId": "cs_missing"})

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to process payment confirmation"


def test_checkout_success_requires_session_id(client):
    response = client.post("/api/payments/success", json={"sessionId": "  "})

    assert response.status_code == 400
    assert response.json()["error"] == "Session ID is required"
