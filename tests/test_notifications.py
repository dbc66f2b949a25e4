import pytest

from tests.conftest import auth_headers


@pytest.fixture
def user(db, make_user):
    user = make_user()
    for i, read in enumerate([False, False, True]):
        db.seed(
            "notifications",
            id=f"n{i}",
            user_id=user["id"],
            type="TIMEZONE_INVITATION",
            title=f"Invite {i}",
            is_read=read,
            created_at=f"2024-01-0{i + 1}T00:00:00+00:00",
        )
    db.seed("notifications", user_id="someone-else", type="X", title="Not yours", is_read=False)
    return user


def test_list_returns_newest_first_with_unread_count(client, user):
    body = client.get("/api/v1/notifications", headers=auth_headers(user)).json()
    assert [n["id"] for n in body["notifications"]] == ["n2", "n1", "n0"]
    assert body["unread_count"] == 2


def test_mark_selected_read(client, db, user):
    response = client.post(
        "/api/v1/notifications/mark-read", json={"notification_ids": ["n0"]}, headers=auth_headers(user)
    )
    assert response.json()["updated"] == 1
    assert client.get("/api/v1/notifications", headers=auth_headers(user)).json()["unread_count"] == 1


def test_mark_all_read_only_touches_own_rows(client, db, user):
    response = client.post("/api/v1/notifications/mark-read", json={"mark_all_read": True}, headers=auth_headers(user))
    assert response.json()["updated"] == 2
    other = [n for n in db.rows("notifications") if n["user_id"] == "someone-else"][0]
    assert other["is_read"] is False


def test_mark_read_requires_a_selection(client, user):
    response = client.post("/api/v1/notifications/mark-read", json={}, headers=auth_headers(user))
    assert response.status_code == 400
