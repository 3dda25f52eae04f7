"""
Invoice endpoint tests with the Stripe calls replaced by in-memory fakes.
"""
from types import SimpleNamespace

import pytest
import stripe

from conftest import bearer
from watchtracker.db.models.contact import Contact
from watchtracker.db.models.invoice import Invoice
from watchtracker.db.models.watch import Watch
from watchtracker.services import stripe_invoice_service


def stripe_invoice(invoice_id="in_123", status="open", **fields):
    defaults = {
        "id": invoice_id,
        "status": status,
        "hosted_invoice_url": f"https://invoice.stripe.com/i/{invoice_id}",
        "invoice_pdf": f"https://invoice.stripe.com/i/{invoice_id}/pdf",
        "payment_intent": "pi_123",
        "amount_paid": 0,
        "status_transitions": SimpleNamespace(paid_at=None, finalized_at=1704067200),
    }
    defaults.update(fields)
    return SimpleNamespace(**defaults)


class FakeStripe:
    """Records calls made through ``stripe_invoice_service``."""

    def __init__(self):
        self.customers = []
        self.invoices = []
        self.sent = []
        self.voided = []
        self.remote_status = "open"
        self.fail_with = None

    def _maybe_fail(self):
        if self.fail_with:
            raise self.fail_with

    def resolve_customer(self, api_key, email=None, name=None, phone=None, address=None, existing_customer_id=None):
        self._maybe_fail()
        self.customers.append({"api_key": api_key, "email": email, "name": name,
                               "existing_customer_id": existing_customer_id})
        return SimpleNamespace(id=existing_customer_id or "cus_new")

    def create_and_finalize_invoice(self, api_key, customer_id, items, collection_method=None, due_date=None,
                                    description=None, metadata=None):
        self.invoices.append({"customer_id": customer_id, "items": items, "collection_method": collection_method,
                              "due_date": due_date, "metadata": metadata})
        return stripe_invoice()

    def retrieve_invoice(self, api_key, invoice_id):
        self._maybe_fail()
        return stripe_invoice(invoice_id, status=self.remote_status)

    def send_invoice(self, api_key, invoice_id):
        self._maybe_fail()
        self.sent.append(invoice_id)
        return stripe_invoice(invoice_id)

    def void_invoice(self, api_key, invoice_id):
        self._maybe_fail()
        self.voided.append(invoice_id)
        return stripe_invoice(invoice_id, status="void")


@pytest.fixture
def fake_stripe(monkeypatch):
    fake = FakeStripe()
    for name in ("resolve_customer", "create_and_finalize_invoice", "retrieve_invoice",
                 "send_invoice", "void_invoice"):
        monkeypatch.setattr(stripe_invoice_service, name, getattr(fake, name))
    return fake


@pytest.fixture
def stripe_user(db, user):
    user.stripe_secret_key = "sk_test_user"
    user.stripe_publishable_key = "pk_test_user"
    db.commit()
    return user


@pytest.fixture
def local_invoice(db, stripe_user):
    invoice = Invoice(user_id=stripe_user.id, stripe_invoice_id="in_local", status="open", total_amount=500)
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    return invoice


INVOICE_BODY = {
    "customerInfo": {"name": "Jane Doe", "email": "jane@example.com"},
    "items": [
        {"description": "Rolex Submariner", "price": 11200, "quantity": 1},
        {"description": "Strap", "price": 50.5, "quantity": 2},
    ],
}


def test_list_without_keys(client, auth_headers):
    response = client.get("/api/invoices", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"invoices": [], "message": "Set Stripe API Keys to use this feature"}


def test_stripe_config(client, stripe_user, auth_headers):
    response = client.get("/api/invoices/stripe-config", headers=auth_headers)

    assert response.json() == {
        "hasStripeConfig": True,
        "publishableKey": "pk_test_user",
        "message": "Stripe configured",
    }


def test_create_requires_keys(client, auth_headers, fake_stripe):
    response = client.post("/api/invoices", json=INVOICE_BODY, headers=auth_headers)

    assert response.status_code == 400
    assert response.json() == {"error": "Set Stripe API Keys to use this feature", "requiresStripeConfig": True}
    assert fake_stripe.invoices == []


def test_create_invoice(client, stripe_user, auth_headers, fake_stripe, db):
    response = client.post("/api/invoices", json=INVOICE_BODY, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["invoice"]["id"] == "in_123"
    assert data["invoice"]["total"] == 11301
    assert data["invoice"]["status"] == "open"
    assert data["invoice"]["customer"]["name"] == "Manual Customer"
    assert data["invoiceUrl"] == "https://invoice.stripe.com/i/in_123"
    assert data["customer"] == {"id": "cus_new", "email": "jane@example.com", "name": "Jane Doe"}
    assert data["collectionMethod"] == "charge_automatically"
    assert "hosted invoice URL" in data["message"]

    call = fake_stripe.invoices[0]
    assert call["customer_id"] == "cus_new"
    assert call["metadata"]["source"] == "manual_entry"
    assert [item["price"] for item in call["items"]] == [11200, 50.5]
    assert fake_stripe.customers[0]["api_key"] == "sk_test_user"

    stored = db.query(Invoice).filter(Invoice.id == data["localInvoiceId"]).first()
    assert stored.payment_intent == "pi_123"
    assert [item.total_amount for item in stored.items] == [11200, 101]


def test_create_invoice_for_contact_saves_customer(client, stripe_user, auth_headers, fake_stripe, db):
    contact = Contact(user_id=stripe_user.id, first_name="Jane", last_name="Doe", email="jane@example.com",
                      stripe_customer_id="cus_saved")
    db.add(contact)
    db.commit()

    body = dict(INVOICE_BODY, contactId=contact.id, collectionMethod="send_invoice", dueDate="2030-01-31")
    response = client.post("/api/invoices", json=body, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["invoice"]["customer"]["name"] == "Jane Doe"
    assert "Send Invoice" in response.json()["message"]
    assert fake_stripe.customers[0]["existing_customer_id"] == "cus_saved"
    assert fake_stripe.invoices[0]["metadata"]["source"] == "existing_contact"
    assert str(fake_stripe.invoices[0]["due_date"]) == "2030-01-31"


@pytest.mark.parametrize("overrides, message", [
    ({"items": []}, "Customer information and items are required"),
    ({"customerInfo": None}, "Customer information and items are required"),
    ({"collectionMethod": "send_invoice"}, "If sending an invoice to the client, you must specify a due date."),
    ({"collectionMethod": "send_invoice", "dueDate": "2030-01-31", "customerInfo": {"name": "No Email"}},
     "If sending an invoice to the client, you must specify an email address."),
    ({"contactId": 9999}, "Invalid contact selected"),
    ({"items": [{"description": "Ghost", "price": 10, "watch_id": 9999}]}, "Invalid watch selected"),
])
def test_create_invoice_validation(client, stripe_user, auth_headers, fake_stripe, overrides, message):
    body = dict(INVOICE_BODY, **overrides)

    response = client.post("/api/invoices", json=body, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"] == message
    assert fake_stripe.invoices == []


def test_create_invoice_rejects_foreign_watch(client, stripe_user, auth_headers, fake_stripe, db, other_user):
    watch = Watch(user_id=other_user.id, brand="Rolex", model="GMT", reference_number="126710BLRO")
    db.add(watch)
    db.commit()

    body = dict(INVOICE_BODY, items=[{"description": "GMT", "price": 15000, "watch_id": watch.id}])
    response = client.post("/api/invoices", json=body, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid watch selected"


def test_create_invoice_stripe_failure(client, stripe_user, auth_headers, fake_stripe, db):
    fake_stripe.fail_with = stripe.StripeError("Your card was declined")

    response = client.post("/api/invoices", json=INVOICE_BODY, headers=auth_headers)

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to create invoice"
    assert "declined" in response.json()["details"]
    assert db.query(Invoice).count() == 0


def test_list_invoices_syncs_status(client, local_invoice, auth_headers, fake_stripe):
    fake_stripe.remote_status = "paid"

    response = client.get("/api/invoices", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert response.json()["invoices"][0]["status"] == "paid"


def test_get_invoice_keeps_local_copy_when_stripe_fails(client, local_invoice, auth_headers, fake_stripe):
    fake_stripe.fail_with = stripe.StripeError("Stripe is down")

    response = client.get("/api/invoices/in_local", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["invoice"]["status"] == "open"
    assert response.json()["items"] == []


def test_get_invoice_not_found(client, stripe_user, auth_headers, fake_stripe):
    response = client.get("/api/invoices/in_missing", headers=auth_headers)

    assert response.status_code == 404
    assert response.json() == {"error": "Invoice not found"}


def test_invoice_is_private(client, local_invoice, db, other_user, fake_stripe):
    other_user.stripe_secret_key = "sk_test_other"
    db.commit()

    response = client.get("/api/invoices/in_local", headers=bearer(other_user))

    assert response.status_code == 404


def test_send_invoice(client, local_invoice, auth_headers, fake_stripe):
    response = client.post("/api/invoices/in_local/send", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["message"] == "Invoice sent successfully"
    assert fake_stripe.sent == ["in_local"]


def test_void_invoice(client, local_invoice, auth_headers, fake_stripe):
    response = client.post("/api/invoices/in_local/void", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["message"] == "Invoice voided successfully"
    assert response.json()["invoice"]["status"] == "void"
    assert fake_stripe.voided == ["in_local"]


def test_void_invoice_failure(client, local_invoice, auth_headers, fake_stripe):
    fake_stripe.fail_with = stripe.InvalidRequestError("Invoice is already paid", param=None)

    response = client.post("/api/invoices/in_local/void", headers=auth_headers)

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to void invoice"}
