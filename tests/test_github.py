import hashlib
import hmac
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException

from thisisme.config import settings
from thisisme.core.security import GITHUB_STATE_PURPOSE, create_purpose_token
from thisisme.modules.github.service import GitHubService, extract_ticket_id, verify_webhook_signature
from tests.conftest import auth_headers

TICKET_ID = "3f1c2a9e-8b7d-4c6e-9a5f-1b2c3d4e5f60"


def merged_pr_event(title="🤖 AI Fix: Timeline out of order", body=f"### Issue\n**Ticket ID:** {TICKET_ID}\n"):
    return {
        "action": "closed",
        "pull_request": {"number": 42, "merged": True, "title": title, "body": body, "html_url": "https://gh/pr/42"},
    }


def test_extract_ticket_id():
    assert extract_ticket_id(f"**Ticket ID:** {TICKET_ID}") == TICKET_ID
    assert extract_ticket_id(f"Ticket ID: {TICKET_ID}") == TICKET_ID
    assert extract_ticket_id("no reference") is None


def test_verify_webhook_signature():
    payload = b'{"a": 1}'
    signature = "sha256=" + hmac.new(b"secret", payload, hashlib.sha256).hexdigest()
    assert verify_webhook_signature(payload, signature, "secret")
    assert not verify_webhook_signature(payload, signature, "other")
    assert not verify_webhook_signature(payload, None, "secret")


def test_merged_ai_pr_marks_fix_deployed(client, db):
    db.seed("ai_fixes", ticket_id=TICKET_ID, pr_number=42, status="pending_review")
    db.seed("ai_fixes", ticket_id=TICKET_ID, pr_number=41, status="pending_review")
    response = client.post(
        "/api/v1/github/webhook", json=merged_pr_event(), headers={"x-github-event": "pull_request"}
    )
    assert response.status_code == 200
    assert response.json()["handled"] is True
    statuses = {f["pr_number"]: f["status"] for f in db.rows("ai_fixes")}
    assert statuses == {42: "deployed", 41: "pending_review"}
    assert db.rows("ticket_comments")[0]["is_internal"] is True


@pytest.mark.parametrize("event", [
    merged_pr_event(title="Regular change"),
    merged_pr_event(body="no ticket here"),
    {**merged_pr_event(), "action": "opened"},
])
def test_other_pull_requests_are_acknowledged(client, db, event):
    response = client.post("/api/v1/github/webhook", json=event, headers={"x-github-event": "pull_request"})
    assert response.status_code == 200
    assert response.json()["handled"] is False
    assert db.rows("ticket_comments") == []


def test_webhook_rejects_bad_signature(client, monkeypatch):
    monkeypatch.setattr(settings, "github_webhook_secret", "secret")
    body = json.dumps(merged_pr_event()).encode()
    response = client.post(
        "/api/v1/github/webhook",
        content=body,
        headers={"x-github-event": "pull_request", "x-hub-signature-256": "sha256=bad"},
    )
    assert response.status_code == 401

    good = "sha256=" + hmac.new(b"secret", body, hashlib.sha256).hexdigest()
    response = client.post(
        "/api/v1/github/webhook",
        content=body,
        headers={"x-github-event": "ping", "x-hub-signature-256": good},
    )
    assert response.status_code == 200


def test_webhook_rejects_invalid_json(client):
    response = client.post("/api/v1/github/webhook", content=b"not json", headers={"x-github-event": "push"})
    assert response.status_code == 400


def test_oauth_callback_stores_connection(db, monkeypatch):
    monkeypatch.setattr(settings, "github_client_id", "cid")
    monkeypatch.setattr(settings, "github_client_secret", "csecret")
    http = MagicMock()
    http.post.return_value.json.return_value = {"access_token": "gho_new"}
    http.get.return_value.json.return_value = {"login": "octocat"}
    service = GitHubService(db, http=http)

    state = create_purpose_token(GITHUB_STATE_PURPOSE, {"userId": "admin-1"}, datetime.now(timezone.utc) + timedelta(minutes=5))
    status = service.complete_oauth("code-123", state)
    assert status.connected is True
    assert status.github_username == "octocat"
    connection = db.rows("github_connections")[0]
    assert connection["user_id"] == "admin-1"
    assert connection["access_token"] == "gho_new"


def test_oauth_callback_rejects_bad_state(db):
    with pytest.raises(HTTPException) as exc:
        GitHubService(db, http=MagicMock()).complete_oauth("code", "forged")
    assert exc.value.status_code == 400


def test_authorize_url_for_admin(client, make_user, monkeypatch):
    monkeypatch.setattr(settings, "github_client_id", "cid")
    admin = make_user("admin@example.com", is_admin=True)
    response = client.get("/api/v1/github/auth", headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["authorize_url"].startswith("https://github.com/login/oauth/authorize?client_id=cid")
