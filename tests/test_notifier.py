from unittest.mock import MagicMock

import pytest

from thisisme.clients import notifier as notifier_module
from thisisme.clients.notifier import Notifier
from thisisme.config import settings
from thisisme.core.exceptions import ExternalServiceError


def test_unconfigured_channels_raise(monkeypatch):
    monkeypatch.setattr(settings, "resend_api_key", None)
    monkeypatch.setattr(settings, "twilio_account_sid", None)
    notifier = Notifier()
    with pytest.raises(ExternalServiceError) as exc:
        notifier.send_email("a@example.com", "s", "<p>x</p>")
    assert exc.value.service == "resend"
    with pytest.raises(ExternalServiceError):
        notifier.send_sms("+447700900123", "hi")


def test_invitation_email_includes_code(monkeypatch):
    monkeypatch.setattr(settings, "resend_api_key", "re_test")
    send = MagicMock(return_value={"id": "email-1"})
    monkeypatch.setattr(notifier_module.resend.Emails, "send", send)

    assert Notifier().send_invitation_email("gran@example.com", "me@example.com", "Gran", "ABCD2345") == "email-1"
    params = send.call_args[0][0]
    assert params["to"] == ["gran@example.com"]
    assert "ABCD2345" in params["html"]


def test_sms_failure_is_wrapped(monkeypatch):
    monkeypatch.setattr(settings, "twilio_account_sid", "AC1")
    monkeypatch.setattr(settings, "twilio_auth_token", "tok")
    monkeypatch.setattr(settings, "twilio_phone_number", "+15550000000")
    notifier = Notifier()
    twilio = MagicMock()
    twilio.messages.create.side_effect = RuntimeError("unreachable")
    notifier._twilio = twilio
    with pytest.raises(ExternalServiceError) as exc:
        notifier.send_invitation_sms("+447700900123", "me@example.com", "ABCD2345")
    assert exc.value.service == "twilio"


def test_invitation_emails_escape_user_text(monkeypatch):
    monkeypatch.setattr(settings, "resend_api_key", "re_test")
    send = MagicMock(return_value={"id": "email-1"})
    monkeypatch.setattr(notifier_module.resend.Emails, "send", send)
    link = '<a href="https://evil.example">claim</a>'

    Notifier().send_invitation_email("gran@example.com", "me@example.com", "<b>Gran</b>", "ABCD2345", link)
    html = send.call_args[0][0]["html"]
    assert link not in html
    assert "&lt;a href=&quot;https://evil.example&quot;&gt;claim&lt;/a&gt;" in html
    assert "&lt;b&gt;Gran&lt;/b&gt;" in html

    Notifier().send_chapter_invitation_email("new@example.com", "me@example.com", "<i>College</i>", link)
    html = send.call_args[0][0]["html"]
    assert link not in html
    assert "&lt;i&gt;College&lt;/i&gt;" in html
