import pytest

from thisisme.core.exceptions import ExternalServiceError
from thisisme.modules.network.schemas import normalize_phone
from tests.conftest import auth_headers


@pytest.fixture
def owner(make_user):
    return make_user("owner@example.com")


@pytest.fixture
def person(db, owner):
    return db.seed(
        "user_networks",
        owner_id=owner["id"],
        person_name="Grandma",
        pending_chapter_invitations=["chapter-1"],
    )


def invite_body(person, **overrides):
    body = {
        "person_id": person["id"],
        "person_name": "Grandma",
        "relationship": "Grandmother",
        "method": "both",
        "email": "gran@example.com",
        "phone": "07700 900123",
    }
    body.update(overrides)
    return body


def test_normalize_phone():
    assert normalize_phone("07700 900123") == "+447700900123"
    assert normalize_phone("+1 (555) 123-4567") == "+15551234567"
    assert normalize_phone("") is None
    with pytest.raises(ValueError):
        normalize_phone("12345")


def test_add_person_links_registered_user(client, make_user, owner):
    existing = make_user("friend@example.com")
    response = client.post(
        "/api/v1/network",
        json={"person_name": "Friend", "person_email": "Friend@example.com"},
        headers=auth_headers(owner),
    )
    assert response.status_code == 201
    assert response.json()["person_user_id"] == existing["id"]


def test_other_users_contact_is_forbidden(client, make_user, person):
    stranger = make_user("stranger@example.com")
    assert client.get(f"/api/v1/network/{person['id']}", headers=auth_headers(stranger)).status_code == 403
    assert client.get("/api/v1/network/missing", headers=auth_headers(stranger)).status_code == 404


def test_delete_person_untags_memories(client, db, owner, person):
    db.seed("memory_tags", memory_id="m1", tagged_person_id=person["id"])
    assert client.delete(f"/api/v1/network/{person['id']}", headers=auth_headers(owner)).status_code == 204
    assert db.rows("memory_tags") == []


def test_invite_sends_both_channels(client, db, notifier, owner, person):
    response = client.post("/api/v1/network/invite", json=invite_body(person), headers=auth_headers(owner))
    assert response.status_code == 200
    body = response.json()
    assert body["sent_via"] == ["email", "sms"]
    assert body["invited_chapters"] == ["chapter-1"]

    invitation = db.rows("pending_invitations")[0]
    assert invitation["invite_code"] == body["invite_code"]
    assert invitation["invitee_phone"] == "+447700900123"
    assert invitation["status"] == "pending"
    notifier.send_invitation_sms.assert_called_once_with("+447700900123", "owner@example.com", body["invite_code"])

    contact = db.rows("user_networks")[0]
    assert contact["invitation_status"] == "sent"
    assert contact["person_email"] == "gran@example.com"


def test_invite_partial_failure_still_succeeds(client, db, notifier, owner, person):
    notifier.send_invitation_sms.side_effect = ExternalServiceError("twilio", "down")
    response = client.post("/api/v1/network/invite", json=invite_body(person), headers=auth_headers(owner))
    assert response.status_code == 200
    assert response.json()["sent_via"] == ["email"]
    assert response.json()["failed"] == ["sms"]
    assert len(db.rows("pending_invitations")) == 1


def test_invite_total_failure_removes_invitation(client, db, notifier, owner, person):
    notifier.send_invitation_email.side_effect = ExternalServiceError("resend", "down")
    notifier.send_invitation_sms.side_effect = ExternalServiceError("twilio", "down")
    response = client.post("/api/v1/network/invite", json=invite_body(person), headers=auth_headers(owner))
    assert response.status_code == 502
    assert db.rows("pending_invitations") == []
    assert db.rows("user_networks")[0].get("invitation_status") is None


@pytest.mark.parametrize("overrides", [
    {"method": "sms", "phone": None},
    {"method": "email", "email": None},
    {"method": "fax"},
    {"phone": "123"},
    {"person_name": ""},
    {"relationship": "  "},
])
def test_invite_rejects_bad_request_with_400(client, db, notifier, owner, person, overrides):
    response = client.post(
        "/api/v1/network/invite", json=invite_body(person, **overrides), headers=auth_headers(owner)
    )
    assert response.status_code == 400
    assert db.rows("pending_invitations") == []
    notifier.send_invitation_email.assert_not_called()
