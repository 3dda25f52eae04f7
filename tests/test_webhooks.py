"""
Tests for the Stripe and Square webhook receivers.
"""
import base64
import hashlib
import hmac
import json
import time
from datetime import date

import pytest

from conftest import create_user
from watchtracker.core import config
from watchtracker.db.models.invoice import Invoice
from watchtracker.db.models.user import User
from watchtracker.services.webhook_handlers import verify_square_signature

STRIPE_SECRET = "whsec_test"
SQUARE_KEY = "square-signature-key"
SQUARE_URL = "http://testserver/api/webhooks/square"


def stripe_event(event_type, obj):
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}


def stripe_signature(payload: str, secret: str = STRIPE_SECRET) -> str:
    timestamp = int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def square_signature(body: str, url: str = SQUARE_URL, key: str = SQUARE_KEY) -> str:
    digest = hmac.new(key.encode(), (url + body).encode(), hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


@pytest.fixture
def invoice(db, user):
    invoice = Invoice(user_id=user.id, stripe_invoice_id="in_hook", square_invoice_id="sq_inv_1",
                      status="open", total_amount=1200, payment_intent="pi_hook")
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    return invoice


def reload(db, invoice):
    db.expire_all()
    return db.query(Invoice).filter(Invoice.id == invoice.id).first()


def test_invoice_paid(client, db, invoice):
    event = stripe_event("invoice.payment_succeeded", {
        "id": "in_hook",
        "amount_paid": 120000,
        "status_transitions": {"paid_at": 1704067200},
    })

    response = client.post("/api/webhooks/stripe", json=event)

    assert response.status_code == 200
    assert response.json() == {"received": True}
    stored = reload(db, invoice)
    assert stored.status == "paid"
    assert stored.amount_paid == 1200
    assert stored.paid_at is not None


def test_invoice_payment_failed(client, db, invoice):
    event = stripe_event("invoice.payment_failed", {
        "id": "in_hook",
        "attempt_count": 2,
        "last_payment_error": {"message": "Insufficient funds"},
    })

    client.post("/api/webhooks/stripe", json=event)

    stored = reload(db, invoice)
    assert stored.status == "payment_failed"
    assert stored.last_payment_error == "Insufficient funds"
    assert stored.payment_attempt_count == 2


@pytest.mark.parametrize("event_type, obj, expected", [
    ("invoice.finalized", {"id": "in_hook", "hosted_invoice_url": "https://pay/in_hook"}, "open"),
    ("invoice.updated", {"id": "in_hook", "status": "uncollectible"}, "uncollectible"),
    ("invoice.voided", {"id": "in_hook"}, "void"),
    ("payment_intent.succeeded", {"id": "pi_hook", "amount_received": 120000}, "paid"),
    ("payment_intent.payment_failed", {"id": "pi_hook", "last_payment_error": {"message": "Declined"}},
     "payment_failed"),
])
def test_invoice_status_events(client, db, invoice, event_type, obj, expected):
    response = client.post("/api/webhooks/stripe", json=stripe_event(event_type, obj))

    assert response.status_code == 200
    assert reload(db, invoice).status == expected


def test_unknown_invoice_is_ignored(client, db, invoice):
    response = client.post("/api/webhooks/stripe", json=stripe_event("invoice.voided", {"id": "in_other"}))

    assert response.status_code == 200
    assert reload(db, invoice).status == "open"


def test_unhandled_event_type_is_acknowledged(client, db):
    response = client.post("/api/webhooks/stripe", json=stripe_event("charge.refunded", {"id": "ch_1"}))

    assert response.status_code == 200
    assert response.json() == {"received": True}


def test_invalid_json(client, db):
    response = client.post("/api/webhooks/stripe", content=b"not json",
                           headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid payload"}


@pytest.mark.parametrize("stripe_status, expected", [
    ("past_due", "past_due"),
    ("canceled", "canceled"),
    ("trialing", "active"),
])
def test_subscription_events(client, db, stripe_status, expected):
    subscriber = create_user(db, "subscriber", subscription_tier="platinum", subscription_status="active",
                             stripe_subscription_id="sub_123")
    event = stripe_event("customer.subscription.updated", {
        "id": "sub_123",
        "status": stripe_status,
        "current_period_end": 1735603200,
    })

    client.post("/api/webhooks/stripe", json=event)

    db.expire_all()
    stored = db.query(User).filter(User.id == subscriber.id).first()
    assert stored.subscription_status == expected
    assert stored.subscription_end_date == date(2024, 12, 31)


def test_signed_stripe_webhook(client, db, invoice, monkeypatch):
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRET", STRIPE_SECRET)
    payload = json.dumps(stripe_event("invoice.voided", {"id": "in_hook"}))

    response = client.post(
        "/api/webhooks/stripe",
        content=payload,
        headers={"Stripe-Signature": stripe_signature(payload), "Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert reload(db, invoice).status == "void"


def test_stripe_webhook_bad_signature(client, db, invoice, monkeypatch):
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRET", STRIPE_SECRET)
    payload = json.dumps(stripe_event("invoice.voided", {"id": "in_hook"}))

    response = client.post(
        "/api/webhooks/stripe",
        content=payload,
        headers={"Stripe-Signature": stripe_signature(payload, "whsec_wrong"), "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid signature"}
    assert reload(db, invoice).status == "open"


def square_event(status, public_url=None):
    invoice = {"id": "sq_inv_1", "status": status}
    if public_url:
        invoice["public_url"] = public_url
    return {"type": "invoice.payment_made", "event_id": "sq_evt_1",
            "data": {"id": "sq_inv_1", "object": {"invoice": invoice}}}


def test_square_invoice_paid(client, db, invoice):
    response = client.post("/api/webhooks/square", json=square_event("PAID", "https://squareup.com/pay/1"))

    assert response.status_code == 200
    stored = reload(db, invoice)
    assert stored.status == "paid"
    assert stored.hosted_invoice_url == "https://squareup.com/pay/1"
    assert stored.amount_paid == 1200
    assert stored.paid_at is not None


def test_square_payment_event_is_acknowledged(client, db):
    response = client.post("/api/webhooks/square", json={"type": "payment.created", "data": {"id": "pay_1"}})

    assert response.status_code == 200


def test_signed_square_webhook(client, db, invoice, monkeypatch):
    monkeypatch.setattr(config, "SQUARE_WEBHOOK_SIGNATURE_KEY", SQUARE_KEY)
    body = json.dumps(square_event("CANCELED"))

    response = client.post(
        "/api/webhooks/square",
        content=body,
        headers={"x-square-hmacsha256-signature": square_signature(body), "Content-Type": "application/json"},
    )

    assert response.status_code == 200
    assert reload(db, invoice).status == "void"


def test_square_webhook_bad_signature(client, db, invoice, monkeypatch):
    monkeypatch.setattr(config, "SQUARE_WEBHOOK_SIGNATURE_KEY", SQUARE_KEY)
    body = json.dumps(square_event("PAID"))

    response = client.post(
        "/api/webhooks/square",
        content=body,
        headers={"x-square-hmacsha256-signature": "bogus", "Content-Type": "application/json"},
    )

    assert response.status_code == 401
    assert reload(db, invoice).status == "open"


def test_verify_square_signature_accepts_body_only_form():
    body = b'{"type": "invoice.updated"}'
    digest = base64.b64encode(hmac.new(SQUARE_KEY.encode(), body, hashlib.sha256).digest()).decode()

    assert verify_square_signature(body, digest, SQUARE_KEY, SQUARE_URL)
    assert not verify_square_signature(body, None, SQUARE_KEY, SQUARE_URL)
    assert not verify_square_signature(body, digest, "other-key", SQUARE_URL)
