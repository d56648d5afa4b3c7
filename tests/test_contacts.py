from datetime import timedelta

import pytest

from app.auth.permissions import RoleName
from app.contacts import intake
from app.errors import RateLimitError
from app.models.contact import Contact
from app.schemas.contact import ContactIn
from app.utils.clock import utcnow


def _message(n=1, **overrides):
    data = {
        "name": "Jane Doe",
        "email": f"jane{n}@example.com",
        "subject": "Quote request",
        "message": "Hi, I would like a quote for a new website.",
    }
    data.update(overrides)
    return data


@pytest.fixture()
def manager_headers(make_user, headers_for):
    return headers_for(make_user(RoleName.ADMIN))


@pytest.fixture()
def make_contact(db):
    def _make(status="new", **fields):
        contact = Contact(
            name=fields.pop("name", "Jane Doe"),
            email=fields.pop("email", "jane@example.com"),
            subject=fields.pop("subject", "Hello"),
            message=fields.pop("message", "Just saying hi"),
            status=status,
            ip_address=fields.pop("ip_address", "10.0.0.1"),
            **fields,
        )
        db.add(contact)
        db.commit()
        db.refresh(contact)
        return contact
    return _make


def test_public_submission_is_stored(client, db):
    res = client.post(
        "/contact",
        json=_message(phone="+351 900 000 000", company="ACME"),
        headers={"referer": "https://example.com/contact", "accept-language": "pt-PT", "user-agent": "pytest"},
    )
    assert res.status_code == 201
    body = res.json()
    assert set(body["data"]) == {"id", "created_at"}

    contact = db.get(Contact, body["data"]["id"])
    assert contact.status == "new"
    assert contact.ip_address == "testclient"
    assert contact.user_agent == "pytest"
    assert contact.meta == {"referrer": "https://example.com/contact", "accept_language": "pt-PT"}


def test_submission_validation(client):
    res = client.post("/contact", json=_message(email="not-an-email", message="x" * 5001))
    assert res.status_code == 422
    errors = res.json()["errors"]
    assert "email" in errors and "message" in errors


def test_fourth_message_from_same_ip_within_hour_is_rejected(client, db):
    for n in range(3):
        assert client.post("/contact", json=_message(n)).status_code == 201
    res = client.post("/contact", json=_message(99))
    assert res.status_code == 429
    assert res.json()["success"] is False
    assert db.query(Contact).count() == 3


def test_old_messages_do_not_count_toward_ip_limit(client, make_contact):
    for _ in range(3):
        make_contact(ip_address="testclient", created_at=utcnow() - timedelta(hours=2))
    assert client.post("/contact", json=_message()).status_code == 201


def test_email_limit_per_day(db):
    body = ContactIn(**_message(7))
    for n in range(5):
        intake.submit(db, body, ip_address=f"192.168.0.{n}", user_agent=None)
    with pytest.raises(RateLimitError):
        intake.submit(db, body, ip_address="192.168.0.50", user_agent=None)


def test_spam_keyword_flags_message(client, db):
    res = client.post("/contact", json=_message(message="Claim your VIAGRA prize now"))
    assert res.status_code == 201
    assert db.get(Contact, res.json()["data"]["id"]).status == "spam"


def test_contacts_require_permission(client, editor_headers, make_contact):
    contact = make_contact()
    assert client.get("/contacts", headers=editor_headers).status_code == 200
    assert client.patch(f"/contacts/{contact.id}/mark-read", headers=editor_headers).status_code == 403
    assert client.delete(f"/contacts/{contact.id}", headers=editor_headers).status_code == 403
    assert client.get("/contacts").status_code == 401


def test_show_marks_new_contact_as_read(client, manager_headers, make_contact):
    contact = make_contact()
    data = client.get(f"/contacts/{contact.id}", headers=manager_headers).json()["data"]
    assert data["status"] == "read"
    assert data["read_at"] is not None
    assert data["is_unread"] is False


def test_replied_backfills_read_and_reset_clears(client, manager_headers, make_contact):
    contact = make_contact()
    data = client.patch(f"/contacts/{contact.id}/mark-replied", headers=manager_headers).json()["data"]
    assert data["status"] == "replied"
    assert data["read_at"] is not None
    assert data["replied_at"] is not None

    data = client.patch(f"/contacts/{contact.id}/mark-new", headers=manager_headers).json()["data"]
    assert data["status"] == "new"
    assert data["read_at"] is None
    assert data["replied_at"] is None


def test_disallowed_transitions_are_rejected(client, manager_headers, make_contact):
    archived = make_contact(status="archived")
    assert client.patch(f"/contacts/{archived.id}/mark-read", headers=manager_headers).status_code == 422
    assert client.patch(f"/contacts/{archived.id}/mark-replied", headers=manager_headers).status_code == 422

    fresh = make_contact()
    assert client.patch(f"/contacts/{fresh.id}/mark-new", headers=manager_headers).status_code == 422
    assert client.patch(f"/contacts/{fresh.id}/mark-spam", headers=manager_headers).status_code == 200
    assert client.patch(f"/contacts/{fresh.id}/archive", headers=manager_headers).status_code == 200


def test_update_status_with_notes(client, manager_headers, make_contact):
    contact = make_contact()
    res = client.put(f"/contacts/{contact.id}", json={"status": "replied", "notes": "Sent a quote"},
                     headers=manager_headers)
    assert res.status_code == 200
    data = res.json()["data"]
    assert data["status"] == "replied"
    assert data["metadata"]["notes"] == "Sent a quote"
    assert data["metadata"]["updated_by"]

    res = client.put(f"/contacts/{contact.id}", json={"status": "read"}, headers=manager_headers)
    assert res.status_code == 422


def test_bulk_skips_disallowed_transitions(client, manager_headers, make_contact, db):
    ids = [make_contact().id, make_contact(status="archived").id]
    res = client.post("/contacts/bulk-action", json={"action": "mark_read", "contact_ids": ids},
                      headers=manager_headers)
    assert res.json()["message"] == "1 contact(s) marked as read"
    db.expire_all()
    assert [db.get(Contact, i).status for i in ids] == ["read", "archived"]

    res = client.post("/contacts/bulk-action", json={"action": "delete", "contact_ids": ids},
                      headers=manager_headers)
    assert res.json()["message"] == "2 contact(s) deleted"


def test_list_meta_and_filters(client, manager_headers, make_contact):
    make_contact(subject="Quote")
    make_contact(status="spam", subject="Casino")
    res = client.get("/contacts", params={"status": "spam"}, headers=manager_headers).json()
    assert [c["subject"] for c in res["data"]] == ["Casino"]
    assert res["meta"]["total_contacts"] == 2
    assert res["meta"]["new_contacts"] == 1
    assert res["meta"]["spam_contacts"] == 1

    res = client.get("/contacts", params={"search": "quote"}, headers=manager_headers).json()
    assert [c["subject"] for c in res["data"]] == ["Quote"]


def test_stats(client, manager_headers, make_contact):
    now = utcnow()
    make_contact(status="replied", subject="Quote", created_at=now - timedelta(hours=10), replied_at=now)
    make_contact(subject="Quote")
    make_contact(subject="Support")
    stats = client.get("/contacts-stats", headers=manager_headers).json()["data"]
    assert stats["total_contacts"] == 3
    assert stats["unread_contacts"] == 2
    assert stats["response_rate"] == 33.3
    assert stats["avg_response_time"] == 10
    assert stats["top_subjects"] == {"Quote": 2, "Support": 1}
    assert stats["recent_contacts"]["this_week"] == 3


def test_export_rows(client, manager_headers, make_contact):
    make_contact(message="m" * 150)
    res = client.get("/contacts-export", headers=manager_headers).json()
    header, row = res["data"]
    assert header[0] == "ID" and header[-1] == "Replied"
    assert row[6] == "m" * 100 + "..."
    assert row[7] == "New"
    assert row[10] == ""
    assert res["meta"]["total_exported"] == 1


@pytest.mark.parametrize("rows, flagged", [(3, False), (4, True)])
def test_spam_screen_counts_recent_messages_from_ip(db, make_contact, rows, flagged):
    contacts = [make_contact(email=f"sender{n}@example.com", ip_address="10.9.9.9") for n in range(rows)]
    assert intake.is_potential_spam(db, contacts[-1]) is flagged


@pytest.mark.parametrize("rows, flagged", [(5, False), (6, True)])
def test_spam_screen_counts_recent_messages_from_email(db, make_contact, rows, flagged):
    contacts = [make_contact(email="busy@example.com", ip_address=f"10.8.0.{n}") for n in range(rows)]
    assert intake.is_potential_spam(db, contacts[-1]) is flagged


def test_spam_screen_ignores_messages_outside_window(db, make_contact):
    for _ in range(4):
        make_contact(ip_address="10.7.7.7", created_at=utcnow() - timedelta(hours=2))
    assert intake.is_potential_spam(db, make_contact(ip_address="10.7.7.7")) is False
