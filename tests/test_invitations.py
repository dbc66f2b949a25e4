from datetime import datetime, timedelta, timezone

import pytest

from tests.conftest import auth_headers


def _future(days=5):
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


@pytest.fixture
def invitee(make_user):
    return make_user("gran@example.com", phone="+447700900123")


@pytest.fixture
def invitation(db):
    person = db.seed("user_networks", owner_id="inviter", person_name="Gran")
    return db.seed(
        "pending_invitations",
        inviter_id="inviter",
        person_id=person["id"],
        invitee_email="gran@example.com",
        invite_code="ABCD2345",
        invited_chapters=["chapter-1", "chapter-2"],
        status="pending",
        expires_at=_future(),
    )


def test_redeem_adds_collaborator_memberships(client, db, invitee, invitation):
    db.seed("timezone_members", timezone_id="chapter-2", user_id=invitee["id"], role="MEMBER")
    response = client.post(
        "/api/v1/auth/redeem-invite", json={"invite_code": "abcd-2345"}, headers=auth_headers(invitee)
    )
    assert response.status_code == 200
    assert response.json()["chapters_added"] == ["chapter-1"]
    roles = {(m["timezone_id"], m["role"]) for m in db.rows("timezone_members") if m["user_id"] == invitee["id"]}
    assert ("chapter-1", "collaborator") in roles

    stored = db.rows("pending_invitations")[0]
    assert stored["status"] == "accepted"
    assert stored["accepted_by_user_id"] == invitee["id"]
    assert db.rows("user_networks")[0]["person_user_id"] == invitee["id"]


def test_redeem_twice_by_same_user(client, invitee, invitation):
    headers = auth_headers(invitee)
    client.post("/api/v1/auth/redeem-invite", json={"invite_code": "ABCD2345"}, headers=headers)
    again = client.post("/api/v1/auth/redeem-invite", json={"invite_code": "ABCD2345"}, headers=headers)
    assert again.status_code == 400
    assert again.json()["detail"] == "You have already redeemed this invite code"


def test_redeem_used_by_someone_else(client, invitee, invitation, make_user):
    client.post("/api/v1/auth/redeem-invite", json={"invite_code": "ABCD2345"}, headers=auth_headers(invitee))
    other = make_user("other@example.com")
    response = client.post("/api/v1/auth/redeem-invite", json={"invite_code": "ABCD2345"}, headers=auth_headers(other))
    assert response.status_code == 400
    assert response.json()["detail"] == "This invite code has been used by someone else"


@pytest.mark.parametrize("changes, detail", [
    ({"status": "cancelled"}, "This invitation has been cancelled"),
    ({"status": "expired"}, "This invite code has expired"),
    ({"expires_at": "2000-01-01T00:00:00+00:00"}, "This invite code has expired"),
    ({"invited_chapters": []}, "This invitation does not include any chapters"),
])
def test_redeem_rejections(client, invitee, invitation, changes, detail):
    invitation.update(changes)
    response = client.post("/api/v1/auth/redeem-invite", json={"invite_code": "ABCD2345"}, headers=auth_headers(invitee))
    assert response.status_code == 400
    assert response.json()["detail"] == detail


def test_redeem_unknown_code(client, invitee):
    response = client.post("/api/v1/auth/redeem-invite", json={"invite_code": "ZZZZ9999"}, headers=auth_headers(invitee))
    assert response.status_code == 404


def test_process_invitations_matches_email_or_phone(client, db, invitee, invitation):
    db.seed(
        "pending_invitations",
        invitee_phone="+447700900123",
        invite_code="PHONE234",
        invited_chapters=["chapter-3"],
        status="pending",
        expires_at=_future(),
    )
    db.seed(
        "pending_invitations",
        invitee_email="gran@example.com",
        invite_code="OLDCODE2",
        invited_chapters=["chapter-4"],
        status="pending",
        expires_at="2000-01-01T00:00:00+00:00",
    )
    response = client.post("/api/v1/auth/process-invitation", headers=auth_headers(invitee))
    assert response.status_code == 200
    body = response.json()
    assert body["processed"] == 2
    assert sorted(body["chapters_added"]) == ["chapter-1", "chapter-2", "chapter-3"]
    statuses = {i["invite_code"]: i["status"] for i in db.rows("pending_invitations")}
    assert statuses == {"ABCD2345": "accepted", "PHONE234": "accepted", "OLDCODE2": "pending"}


def test_process_invitations_links_memory_invites_sent_before_signup(client, db, invitee):
    db.seed("memory_collaborations", memory_id="m1", invited_email="gran@example.com", status="pending", permissions=["view"])
    db.seed("memory_collaborations", memory_id="m2", invited_email="someone@example.com", status="pending", permissions=[])
    response = client.post("/api/v1/auth/process-invitation", headers=auth_headers(invitee))
    assert response.json()["memory_invitations"] == 1
    linked = {c["memory_id"]: c.get("collaborator_id") for c in db.rows("memory_collaborations")}
    assert linked == {"m1": invitee["id"], "m2": None}
    assert db.rows("memory_collaborations")[0]["status"] == "pending"
