"""
Tests for the Operandi Challenge signup flow and its admin review endpoints.
"""
import pytest

from conftest import PASSWORD, create_user
from watchtracker.core.security import verify_password
from watchtracker.db.models.promo_signup import PromoSignup
from watchtracker.db.models.user import User

SIGNUP = {
    "fullName": "Jane Smith",
    "email": "Jane.Smith@Example.com",
    "phone": "+1 (555) 123-4567",
    "businessName": "Smith Horology",
    "referralSource": "Instagram",
    "experienceLevel": "intermediate",
    "interests": ["Rolex", "Patek Philippe"],
    "comments": "Looking forward to it",
}


def add_signup(db, email="jane.smith@example.com", status="pending", **fields):
    signup = PromoSignup(full_name=fields.pop("full_name", "Jane Smith"), email=email,
                         business_name=fields.pop("business_name", "Smith Horology"), status=status, **fields)
    db.add(signup)
    db.commit()
    db.refresh(signup)
    return signup


def test_signup(client, mailer, db):
    response = client.post("/api/promo/operandi-challenge", json=SIGNUP)

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert "Operandi Challenge" in data["message"]

    signup = db.query(PromoSignup).filter(PromoSignup.id == data["signupId"]).first()
    assert signup.email == "jane.smith@example.com"
    assert signup.interests == "Rolex, Patek Philippe"
    assert signup.status == "pending"

    assert len(mailer.outbox) == 1
    notification = mailer.outbox[0]
    assert notification["to"] == "admin@100ktracker.com"
    assert notification["subject"] == "New Operandi Challenge Signup: Jane Smith"
    assert "Smith Horology" in notification["text"]


def test_signup_reports_every_validation_error(client, db):
    response = client.post(
        "/api/promo/operandi-challenge",
        json={"fullName": "J", "email": "nope", "phone": "call me", "businessName": ""},
    )

    assert response.status_code == 400
    assert response.json() == {
        "error": "Validation failed",
        "details": [
            "Full name must be at least 2 characters long",
            "Valid email address is required",
            "Invalid phone number format",
            "Business name must be at least 2 characters long",
        ],
    }


def test_signup_duplicate_email(client, db):
    add_signup(db)

    response = client.post("/api/promo/operandi-challenge", json=SIGNUP)

    assert response.status_code == 409
    assert response.json()["error"] == "Email already registered for this promotion"


def test_signup_email_with_existing_account(client, db):
    create_user(db, "janes", "jane.smith@example.com")

    response = client.post("/api/promo/operandi-challenge", json=SIGNUP)

    assert response.status_code == 409
    assert response.json()["error"] == "Email already has an account"


def test_signup_rate_limited(client, db):
    statuses = [client.post("/api/promo/operandi-challenge", json=SIGNUP).status_code for _ in range(4)]

    assert statuses == [201, 409, 409, 429]


def test_admin_endpoints_require_admin(client, auth_headers):
    response = client.get("/api/promo/admin/signups", headers=auth_headers)

    assert response.status_code == 403


def test_list_signups_summary(client, db, admin_headers):
    add_signup(db, "a@example.com")
    add_signup(db, "b@example.com", status="approved")
    add_signup(db, "c@example.com", status="rejected")

    response = client.get("/api/promo/admin/signups", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["summary"] == {"total": 3, "pending": 1, "approved": 1, "rejected": 1}
    assert [s["email"] for s in data["signups"]] == ["c@example.com", "b@example.com", "a@example.com"]


def test_list_signups_filtered(client, db, admin_headers):
    add_signup(db, "a@example.com")
    add_signup(db, "b@example.com", status="approved")

    response = client.get("/api/promo/admin/signups", params={"status": "pending"}, headers=admin_headers)

    data = response.json()
    assert data["filter"] == {"status": "pending"}
    assert data["count"] == 1
    assert data["signups"][0]["email"] == "a@example.com"


def test_get_signup(client, db, admin_headers):
    signup = add_signup(db)

    assert client.get(f"/api/promo/admin/signups/{signup.id}", headers=admin_headers).json()["signup"]["id"] == signup.id
    assert client.get("/api/promo/admin/signups/999", headers=admin_headers).status_code == 404


def test_update_signup_status(client, db, admin_headers):
    signup = add_signup(db)

    response = client.put(
        f"/api/promo/admin/signups/{signup.id}",
        json={"status": "rejected", "adminNotes": "Not a dealer"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Signup status updated to rejected"
    assert response.json()["signup"]["admin_notes"] == "Not a dealer"


def test_update_signup_invalid_status(client, db, admin_headers):
    signup = add_signup(db)

    response = client.put(f"/api/promo/admin/signups/{signup.id}", json={"status": "maybe"}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid status. Must be: pending, approved, or rejected"}


def test_create_account_from_signup(client, db, mailer, admin_headers):
    signup = add_signup(db)

    response = client.post(f"/api/promo/admin/signups/{signup.id}/create-account", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "User account created successfully"
    assert data["account"]["username"] == "janesmith"
    assert data["signup"]["status"] == "approved"
    assert data["emailSent"] is True

    user = db.query(User).filter(User.id == data["account"]["userId"]).first()
    assert user.subscription_tier == "operandi"
    assert user.subscription_price == 80
    assert user.full_name == "Jane Smith"
    assert user.temporary_password is True
    assert verify_password(data["account"]["temporaryPassword"], user.hashed_password)

    assert mailer.outbox[0]["to"] == "jane.smith@example.com"
    assert data["account"]["temporaryPassword"] in mailer.outbox[0]["text"]


def test_create_account_with_supplied_password(client, db, admin_headers):
    signup = add_signup(db)

    response = client.post(
        f"/api/promo/admin/signups/{signup.id}/create-account",
        json={"temporaryPassword": PASSWORD},
        headers=admin_headers,
    )

    assert response.json()["account"]["temporaryPassword"] == PASSWORD


def test_create_account_requires_pending_signup(client, db, admin_headers):
    signup = add_signup(db, status="approved")

    response = client.post(f"/api/promo/admin/signups/{signup.id}/create-account", headers=admin_headers)

    assert response.status_code == 400
    assert response.json() == {"error": "Can only create accounts for pending signups", "currentStatus": "approved"}


@pytest.mark.parametrize("username, email, error", [
    ("janesmith", "other@example.com", "Username already exists"),
    ("someoneelse", "jane.smith@example.com", "Email already has an account"),
])
def test_create_account_conflicts(client, db, admin_headers, username, email, error):
    create_user(db, username, email)
    signup = add_signup(db)

    response = client.post(f"/api/promo/admin/signups/{signup.id}/create-account", headers=admin_headers)

    assert response.status_code == 409
    assert response.json()["error"] == error
