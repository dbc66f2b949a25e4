from supabase import Client
from fastapi import HTTPException
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional
from urllib.parse import urlencode
from thisisme.config import settings
from thisisme.core.security import GITHUB_STATE_PURPOSE, create_purpose_token, verify_purpose_token
from thisisme.modules.ai_support.models import AI_FIX_PR_TITLE_PREFIX, FIX_STATUS_DEPLOYED
from thisisme.modules.github.schemas import GitHubAuthResponse, GitHubStatusResponse, WebhookResult
from thisisme.modules.support.service import SupportService
import hashlib
import hmac
import httpx
import logging
import re

logger = logging.getLogger(__name__)

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_USER_URL = "https://api.github.com/user"

TICKET_ID_PATTERN = re.compile(r"Ticket ID:\**\s*([a-f0-9\-]{36})")


def verify_webhook_signature(payload: bytes, signature: Optional[str], secret: str) -> bool:
    if not signature or not signature.startswith("sha256="):
        return False
    expected = "sha256=" + hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def extract_ticket_id(body: str) -> Optional[str]:
    match = TICKET_ID_PATTERN.search(body or "")
    return match.group(1) if match else None


class GitHubService:
    def __init__(self, supabase: Client, http: Optional[httpx.Client] = None):
        self.supabase = supabase
        self.http = http

    def get_authorize_url(self, user_id: str) -> GitHubAuthResponse:
        if not settings.github_client_id:
            raise HTTPException(status_code=503, detail="GitHub OAuth is not configured")
        state = create_purpose_token(
            GITHUB_STATE_PURPOSE, {"userId": user_id}, datetime.now(timezone.utc) + timedelta(minutes=10)
        )
        query = urlencode({
            "client_id": settings.github_client_id,
            "redirect_uri": f"{settings.app_url}/api/v1/github/callback",
            "scope": "repo",
            "state": state,
        })
        return GitHubAuthResponse(authorize_url=f"{GITHUB_AUTHORIZE_URL}?{query}")

    def _exchange_code(self, code: str) -> Dict[str, Any]:
        http = self.http or httpx.Client(timeout=15)
        try:
            token_response = http.post(
                GITHUB_TOKEN_URL,
                headers={"Accept": "application/json"},
                data={
                    "client_id": settings.github_client_id,
                    "client_secret": settings.github_client_secret,
                    "code": code,
                },
            )
            token_response.raise_for_status()
            access_token = token_response.json().get("access_token")
            if not access_token:
                raise HTTPException(status_code=400, detail="GitHub did not return an access token")
            user_response = http.get(
                GITHUB_USER_URL,
                headers={"Authorization": f"Bearer {access_token}", "Accept": "application/vnd.github+json"},
            )
            user_response.raise_for_status()
            return {"access_token": access_token, "github_username": user_response.json().get("login")}
        except httpx.HTTPError as e:
            logger.error(f"GitHub OAuth exchange failed: {e}")
            raise HTTPException(status_code=502, detail="GitHub OAuth exchange failed")
        finally:
            if self.http is None:
                http.close()

    def complete_oauth(self, code: str, state: str) -> GitHubStatusResponse:
        payload = verify_purpose_token(state, GITHUB_STATE_PURPOSE)
        if not payload or not payload.get("userId"):
            raise HTTPException(status_code=400, detail="Invalid OAuth state")
        connection = self._exchange_code(code)
        connected_at = datetime.now(timezone.utc)
        self.supabase.table("github_connections").upsert({
            "user_id": payload["userId"],
            "access_token": connection["access_token"],
            "github_username": connection["github_username"],
            "connected_at": connected_at.isoformat(),
        }, on_conflict="user_id").execute()
        logger.info(f"GitHub connected for user {payload['userId']} as {connection['github_username']}")
        return GitHubStatusResponse(connected=True, github_username=connection["github_username"], connected_at=connected_at)

    def get_status(self, user_id: str) -> GitHubStatusResponse:
        result = self.supabase.table("github_connections")\
            .select("github_username, connected_at")\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        if not result.data:
            return GitHubStatusResponse(connected=False)
        return GitHubStatusResponse(connected=True, **result.data[0])

    def handle_event(self, event: Optional[str], payload: Dict[str, Any]) -> WebhookResult:
        """Mark AI fixes deployed when their pull request is merged. Other events are acknowledged."""
        if event != "pull_request":
            return WebhookResult(message=f"Ignored event {event}")
        pr = payload.get("pull_request") or {}
        if payload.get("action") != "closed" or not pr.get("merged"):
            return WebhookResult(message="Pull request not merged")
        if AI_FIX_PR_TITLE_PREFIX not in (pr.get("title") or ""):
            return WebhookResult(message="Not an AI fix pull request")
        ticket_id = extract_ticket_id(pr.get("body") or "")
        if not ticket_id:
            logger.warning(f"AI fix PR #{pr.get('number')} merged without a ticket reference")
            return WebhookResult(message="No ticket reference found")

        now = datetime.now(timezone.utc).isoformat()
        support = SupportService(self.supabase)
        support.add_comment_record(
            ticket_id,
            None,
            f"🚀 AI fix PR #{pr.get('number')} was merged and deployed: {pr.get('html_url', '')}",
            is_internal=True,
        )
        self.supabase.table("ai_fixes")\
            .update({"status": FIX_STATUS_DEPLOYED, "deployed_at": now})\
            .eq("ticket_id", ticket_id)\
            .eq("pr_number", pr.get("number"))\
            .execute()
        logger.info(f"AI fix PR #{pr.get('number')} for ticket {ticket_id} deployed")
        return WebhookResult(handled=True, ticket_id=ticket_id, message="AI fix marked as deployed")
