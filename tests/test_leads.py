"""
Integration tests for sales leads and reminder stats.
"""
from datetime import date, timedelta

import pytest

from conftest import bearer
from watchtracker.db.models.contact import Contact
from watchtracker.db.models.lead import Lead


@pytest.fixture
def contact(db, user):
    contact = Contact(user_id=user.id, first_name="Jane", last_name="Doe")
    db.add(contact)
    db.commit()
    db.refresh(contact)
    return contact


def add_lead(db, user, title, **fields):
    lead = Lead(user_id=user.id, title=title, **fields)
    db.add(lead)
    db.commit()
    db.refresh(lead)
    return lead


def test_create_lead(client, auth_headers, contact):
    response = client.post(
        "/api/leads",
        json={
            "title": "  Hulk Submariner  ",
            "contact_id": contact.id,
            "watch_reference": "116610LV",
            "reminder_date": "2030-05-01",
        },
        headers=auth_headers,
    )

    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Hulk Submariner"
    assert data["status"] == "Monitoring"
    assert data["contact_name"] == "Jane Doe"
    assert data["reminder_date"] == "2030-05-01"


@pytest.mark.parametrize("body, message", [
    ({}, "Title is required"),
    ({"title": "  "}, "Title is required"),
    ({"title": "Daytona", "status": "Sold"}, "Valid status is required"),
    ({"title": "Daytona", "reminder_date": "05/01/2030"}, "Reminder date must be in YYYY-MM-DD format"),
])
def test_create_lead_validation(client, auth_headers, body, message):
    response = client.post("/api/leads", json=body, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"] == message


def test_create_lead_rejects_foreign_contact(client, auth_headers, db, other_user):
    foreign = Contact(user_id=other_user.id, first_name="Not mine")
    db.add(foreign)
    db.commit()

    response = client.post("/api/leads", json={"title": "Daytona", "contact_id": foreign.id}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid contact selected"}


def test_list_leads_filters(client, auth_headers, db, user, contact):
    yesterday = date.today() - timedelta(days=1)
    add_lead(db, user, "Overdue", reminder_date=yesterday, contact_id=contact.id)
    add_lead(db, user, "No reminder", status="Contacted")
    add_lead(db, user, "Later", reminder_date=date.today() + timedelta(days=30))

    everything = client.get("/api/leads", headers=auth_headers).json()
    assert [lead["title"] for lead in everything["leads"]] == ["Later", "No reminder", "Overdue"]
    assert everything["pagination"]["total"] == 3

    contacted = client.get("/api/leads", params={"status": "Contacted"}, headers=auth_headers).json()
    assert [lead["title"] for lead in contacted["leads"]] == ["No reminder"]

    with_reminder = client.get("/api/leads", params={"has_reminder": "true"}, headers=auth_headers).json()
    assert {lead["title"] for lead in with_reminder["leads"]} == {"Overdue", "Later"}

    overdue = client.get("/api/leads", params={"overdue": "true"}, headers=auth_headers).json()
    assert [lead["title"] for lead in overdue["leads"]] == ["Overdue"]

    by_contact = client.get("/api/leads", params={"contact_id": contact.id}, headers=auth_headers).json()
    assert [lead["contact_name"] for lead in by_contact["leads"]] == ["Jane Doe"]


def test_lead_stats(client, auth_headers, db, user, other_user):
    today = date.today()
    add_lead(db, user, "Overdue", reminder_date=today - timedelta(days=2))
    add_lead(db, user, "Today", reminder_date=today, status="Negotiating")
    add_lead(db, user, "This week", reminder_date=today + timedelta(days=7))
    add_lead(db, user, "Next month", reminder_date=today + timedelta(days=30), status="Negotiating")
    add_lead(db, other_user, "Someone else's", reminder_date=today)

    response = client.get("/api/leads/stats", headers=auth_headers)

    assert response.status_code == 200
    stats = response.json()
    assert stats["total"] == 4
    assert stats["by_status"]["Monitoring"] == 2
    assert stats["by_status"]["Negotiating"] == 2
    assert stats["by_status"]["Deal Finalized"] == 0
    assert stats["overdue_reminders"] == 1
    assert stats["today_reminders"] == 1
    assert stats["upcoming_reminders"] == 2


def test_update_lead_status(client, auth_headers, db, user):
    lead = add_lead(db, user, "Daytona")

    response = client.patch(f"/api/leads/{lead.id}/status", json={"status": "Offer Accepted"},
                            headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["status"] == "Offer Accepted"


@pytest.mark.parametrize("body", [{}, {"status": "Lost"}, {"status": None}])
def test_update_lead_status_validation(client, auth_headers, db, user, body):
    lead = add_lead(db, user, "Daytona")

    response = client.patch(f"/api/leads/{lead.id}/status", json=body, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error"] == "Valid status is required"


def test_update_lead(client, auth_headers, db, user):
    lead = add_lead(db, user, "Daytona", notes="first call")

    response = client.put(
        f"/api/leads/{lead.id}",
        json={"title": "Daytona Panda", "status": "Follow Up"},
        headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["title"] == "Daytona Panda"
    assert response.json()["status"] == "Follow Up"
    assert response.json()["notes"] is None


def test_leads_are_private(client, db, user, other_user):
    lead = add_lead(db, user, "Daytona")

    assert client.get(f"/api/leads/{lead.id}", headers=bearer(other_user)).status_code == 404
    assert client.delete(f"/api/leads/{lead.id}", headers=bearer(other_user)).status_code == 404


def test_delete_lead(client, auth_headers, db, user):
    lead = add_lead(db, user, "Daytona")

    response = client.delete(f"/api/leads/{lead.id}", headers=auth_headers)

    assert response.json() == {"message": "Lead deleted successfully"}
    assert client.get(f"/api/leads/{lead.id}", headers=auth_headers).status_code == 404


def test_deleting_contact_unlinks_lead(client, auth_headers, db, user, contact):
    lead = add_lead(db, user, "Daytona", contact_id=contact.id)

    client.delete(f"/api/contacts/{contact.id}", headers=auth_headers)

    response = client.get(f"/api/leads/{lead.id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["contact_id"] is None
    assert response.json()["contact_name"] is None
