from unittest.mock import MagicMock

import pytest
import stripe

from thisisme.config import settings
from thisisme.modules.payments import service as payment_service
from tests.conftest import auth_headers


@pytest.fixture
def stripe_configured(monkeypatch):
    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test")
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")
    monkeypatch.setattr(settings, "stripe_price_id", "price_123")


def _event(event_type, obj):
    return {"type": event_type, "data": {"object": obj}}


def test_checkout_session_carries_user(client, make_user, monkeypatch, stripe_configured):
    user = make_user("buyer@example.com")
    create = MagicMock(return_value={"id": "cs_1", "url": "https://checkout.stripe.com/cs_1"})
    monkeypatch.setattr(stripe.checkout.Session, "create", create)

    response = client.post("/api/v1/stripe/create-checkout", headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json() == {"url": "https://checkout.stripe.com/cs_1", "session_id": "cs_1"}
    kwargs = create.call_args.kwargs
    assert kwargs["mode"] == "subscription"
    assert kwargs["metadata"] == {"userId": user["id"]}
    assert kwargs["customer_email"] == "buyer@example.com"


def test_portal_requires_existing_customer(client, make_user, stripe_configured):
    user = make_user()
    response = client.post("/api/v1/stripe/create-portal", headers=auth_headers(user))
    assert response.status_code == 400


def test_portal_for_subscriber(client, make_user, monkeypatch, stripe_configured):
    user = make_user(stripe_customer_id="cus_1")
    monkeypatch.setattr(stripe.billing_portal.Session, "create", MagicMock(return_value={"url": "https://billing/portal"}))
    response = client.post("/api/v1/stripe/create-portal", headers=auth_headers(user))
    assert response.json() == {"url": "https://billing/portal"}


def test_webhook_rejects_bad_signature(client, monkeypatch, stripe_configured):
    def fail(payload, signature, secret):
        raise stripe.SignatureVerificationError("bad", signature)

    monkeypatch.setattr(payment_service.stripe.Webhook, "construct_event", fail)
    response = client.post("/api/v1/stripe/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=bad"})
    assert response.status_code == 400


def test_checkout_completed_grants_premium(client, db, make_user, monkeypatch, stripe_configured):
    user = make_user()
    event = _event("checkout.session.completed", {"customer": "cus_9", "metadata": {"userId": user["id"]}})
    monkeypatch.setattr(payment_service.stripe.Webhook, "construct_event", lambda *args: event)

    response = client.post("/api/v1/stripe/webhook", content=b"{}", headers={"stripe-signature": "sig"})
    assert response.json() == {"received": True}
    row = db.rows("users")[0]
    assert row["is_premium"] is True
    assert row["stripe_customer_id"] == "cus_9"
    assert row["premium_since"]


@pytest.mark.parametrize("event_type, status, expected", [
    ("customer.subscription.updated", "active", True),
    ("customer.subscription.updated", "past_due", False),
    ("customer.subscription.deleted", "canceled", False),
])
def test_subscription_changes(client, db, make_user, monkeypatch, stripe_configured, event_type, status, expected):
    make_user(stripe_customer_id="cus_9", is_premium=not expected)
    event = _event(event_type, {"customer": "cus_9", "status": status})
    monkeypatch.setattr(payment_service.stripe.Webhook, "construct_event", lambda *args: event)
    client.post("/api/v1/stripe/webhook", content=b"{}", headers={"stripe-signature": "sig"})
    assert db.rows("users")[0]["is_premium"] is expected


def test_other_events_are_ignored(client, db, make_user, monkeypatch, stripe_configured):
    make_user(stripe_customer_id="cus_9", is_premium=True)
    monkeypatch.setattr(payment_service.stripe.Webhook, "construct_event", lambda *args: _event("invoice.paid", {}))
    response = client.post("/api/v1/stripe/webhook", content=b"{}", headers={"stripe-signature": "sig"})
    assert response.json() == {"received": True}
    assert db.rows("users")[0]["is_premium"] is True


def test_subscription_update_records_tier_and_period_end(client, db, make_user, monkeypatch, stripe_configured):
    make_user(stripe_customer_id="cus_9")
    event = _event("customer.subscription.updated", {"customer": "cus_9", "status": "active", "current_period_end": 1893456000})
    monkeypatch.setattr(payment_service.stripe.Webhook, "construct_event", lambda *args: event)
    client.post("/api/v1/stripe/webhook", content=b"{}", headers={"stripe-signature": "sig"})
    row = db.rows("users")[0]
    assert row["subscription_tier"] == "premium"
    assert row["subscription_expires_at"].startswith("2030-01-01")
