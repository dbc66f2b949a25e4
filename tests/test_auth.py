from datetime import datetime, timezone

from thisisme.core.security import hash_password, verify_token
from tests.conftest import auth_headers

REGISTER = {
    "email": "New@Example.com",
    "password": "Secret123",
    "confirm_password": "Secret123",
    "full_name": "New User",
}


def test_register_creates_user_and_default_chapter(client, db):
    response = client.post("/api/v1/auth/register", json=REGISTER)
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["user"]["email"] == "new@example.com"
    assert verify_token(body["token"])["userId"] == body["user"]["id"]
    assert "auth-token" in response.cookies

    user_row = db.rows("users")[0]
    assert user_row["password_hash"] != "Secret123"
    chapters = db.rows("timezones")
    assert len(chapters) == 1
    assert chapters[0]["type"] == "PRIVATE"
    assert chapters[0]["creator_id"] == body["user"]["id"]
    assert db.rows("timezone_members")[0]["role"] == "CREATOR"


def test_register_rejects_weak_password(client):
    response = client.post("/api/v1/auth/register", json={**REGISTER, "password": "weak", "confirm_password": "weak"})
    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "Invalid input"


def test_register_rejects_mismatched_passwords(client):
    response = client.post("/api/v1/auth/register", json={**REGISTER, "confirm_password": "Secret124"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Passwords do not match"


def test_register_duplicate_email(client, make_user):
    make_user("new@example.com")
    response = client.post("/api/v1/auth/register", json=REGISTER)
    assert response.status_code == 409


def test_login(client, make_user):
    make_user("login@example.com", password_hash=hash_password("Secret123"))
    response = client.post("/api/v1/auth/login", json={"email": "LOGIN@example.com", "password": "Secret123"})
    assert response.status_code == 200
    assert response.json()["message"] == "Login successful"
    assert "auth-token" in response.cookies


def test_login_wrong_password_and_unknown_user_look_the_same(client, make_user):
    make_user("login@example.com", password_hash=hash_password("Secret123"))
    wrong = client.post("/api/v1/auth/login", json={"email": "login@example.com", "password": "Secret999"})
    unknown = client.post("/api/v1/auth/login", json={"email": "ghost@example.com", "password": "Secret123"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json() == {"detail": "Invalid credentials"}


def test_logout_clears_cookie(client):
    response = client.post("/api/v1/auth/logout")
    assert response.status_code == 200
    assert "auth-token" in response.headers.get("set-cookie", "")


def test_me_returns_profile(client, make_user):
    user = make_user("me@example.com")
    response = client.get("/api/v1/auth/me", headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json()["email"] == "me@example.com"


def test_onboard_sets_birth_year(client, db, make_user):
    user = make_user()
    response = client.post("/api/v1/auth/onboard", json={"birth_year": 1985}, headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json()["birth_year"] == 1985
    assert db.rows("users")[0]["birth_year"] == 1985


def test_onboard_rejects_out_of_range_years(client, make_user):
    user = make_user()
    next_year = datetime.now(timezone.utc).year + 1
    for year in (1899, next_year):
        response = client.post("/api/v1/auth/onboard", json={"birth_year": year}, headers=auth_headers(user))
        assert response.status_code == 400
