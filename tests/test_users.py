from datetime import datetime, timedelta, timezone

from tests.conftest import auth_headers


def test_profile_roundtrip(client, make_user):
    user = make_user("me@example.com", birth_year=1975)
    profile = client.get("/api/v1/user/profile", headers=auth_headers(user)).json()
    assert profile["email"] == "me@example.com"
    assert profile["birth_year"] == 1975

    response = client.put(
        "/api/v1/user/profile",
        json={"birth_year": 1980, "phone": "07700 900123"},
        headers=auth_headers(user),
    )
    assert response.status_code == 200
    assert response.json()["birth_year"] == 1980
    assert response.json()["phone"] == "+447700900123"


def test_profile_update_validation(client, make_user):
    user = make_user()
    assert client.put("/api/v1/user/profile", json={"birth_year": 1850}, headers=auth_headers(user)).status_code == 400
    assert client.put("/api/v1/user/profile", json={"phone": "12"}, headers=auth_headers(user)).status_code == 400
    assert client.put("/api/v1/user/profile", json={}, headers=auth_headers(user)).status_code == 400


def test_premium_status_free_user(client, make_user):
    user = make_user()
    body = client.get("/api/v1/user/premium-status", headers=auth_headers(user)).json()
    assert body["is_premium"] is False
    assert body["tier"] == "free"
    assert set(body["features"].values()) == {False}


def test_premium_status_active_and_lapsed(client, make_user):
    later = (datetime.now(timezone.utc) + timedelta(days=20)).isoformat()
    active = make_user("paid@example.com", is_premium=True, subscription_tier="premium", subscription_expires_at=later)
    body = client.get("/api/v1/user/premium-status", headers=auth_headers(active)).json()
    assert body["is_premium"] is True
    assert body["tier"] == "premium"
    assert body["features"]["voice_transcription"] is True

    earlier = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    lapsed = make_user("lapsed@example.com", is_premium=True, subscription_tier="premium", subscription_expires_at=earlier)
    body = client.get("/api/v1/user/premium-status", headers=auth_headers(lapsed)).json()
    assert body["is_premium"] is False
    assert body["tier"] == "free"
