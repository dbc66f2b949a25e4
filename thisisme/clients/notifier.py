"""Outbound invitation delivery: email through Resend, SMS through Twilio."""

import logging
from html import escape

import resend
from twilio.rest import Client as TwilioClient

from thisisme.config import settings
from thisisme.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


class Notifier:
    def __init__(self):
        self._twilio = None

    @property
    def email_enabled(self) -> bool:
        return bool(settings.resend_api_key)

    @property
    def sms_enabled(self) -> bool:
        return bool(settings.twilio_account_sid and settings.twilio_auth_token and settings.twilio_phone_number)

    def _twilio_client(self) -> TwilioClient:
        if self._twilio is None:
            self._twilio = TwilioClient(settings.twilio_account_sid, settings.twilio_auth_token)
        return self._twilio

    def send_email(self, to: str, subject: str, html: str) -> str:
        if not self.email_enabled:
            raise ExternalServiceError("resend", "Email delivery is not configured")
        resend.api_key = settings.resend_api_key
        try:
            response = resend.Emails.send({
                "from": settings.resend_from_email,
                "to": [to],
                "subject": subject,
                "html": html,
            })
        except Exception as e:
            logger.error(f"Resend email to {to} failed: {e}")
            raise ExternalServiceError("resend", str(e))
        return response.get("id", "") if isinstance(response, dict) else ""

    def send_sms(self, to: str, body: str) -> str:
        if not self.sms_enabled:
            raise ExternalServiceError("twilio", "SMS delivery is not configured")
        try:
            message = self._twilio_client().messages.create(
                body=body,
                from_=settings.twilio_phone_number,
                to=to,
            )
        except Exception as e:
            logger.error(f"Twilio SMS to {to} failed: {e}")
            raise ExternalServiceError("twilio", str(e))
        return message.sid

    def send_invitation_email(self, to: str, inviter_email: str, person_name: str, invite_code: str, message: str = None) -> str:
        signup_url = escape(f"{settings.app_url}/register?invite={invite_code}")
        personal = f"<p><em>{escape(message)}</em></p>" if message else ""
        html = (
            f"<p>Hi {escape(person_name)},</p>"
            f"<p>{escape(inviter_email)} has invited you to share memories on This is Me.</p>"
            f"{personal}"
            f"<p>Your invite code is <strong>{escape(invite_code)}</strong>.</p>"
            f"<p><a href=\"{signup_url}\">Accept the invitation</a></p>"
        )
        return self.send_email(to, f"{inviter_email} invited you to This is Me", html)

    def send_invitation_sms(self, to: str, inviter_email: str, invite_code: str) -> str:
        body = (
            f"{inviter_email} invited you to share memories on This is Me. "
            f"Join at {settings.app_url}/register?invite={invite_code} (code {invite_code})"
        )
        return self.send_sms(to, body)

    def send_chapter_invitation_email(self, to: str, inviter_email: str, chapter_title: str, message: str = None) -> str:
        personal = f"<p><em>{escape(message)}</em></p>" if message else ""
        html = (
            f"<p>{escape(inviter_email)} invited you to collaborate on the chapter \"{escape(chapter_title)}\".</p>"
            f"{personal}"
            f"<p><a href=\"{escape(settings.app_url)}/register\">Create your account</a> to start sharing memories.</p>"
        )
        return self.send_email(to, f"Join \"{chapter_title}\" on This is Me", html)

    def send_memory_invitation_email(self, to: str, inviter_email: str, memory_title: str, memory_id: str,
                                     message: str = None, reason: str = None) -> str:
        memory_url = escape(f"{settings.app_url}/memories/{memory_id}")
        personal = f"<p><em>{escape(message)}</em></p>" if message else ""
        why = f"<p>Why you: {escape(reason)}</p>" if reason else ""
        html = (
            f"<p>{escape(inviter_email)} would like you to add to the memory \"{escape(memory_title)}\".</p>"
            f"{personal}{why}"
            f"<p><a href=\"{memory_url}\">Open the memory</a></p>"
        )
        return self.send_email(to, f"{inviter_email} shared a memory with you", html)


def get_notifier() -> Notifier:
    return Notifier()
