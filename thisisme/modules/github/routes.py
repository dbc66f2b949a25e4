from fastapi import APIRouter, Depends, HTTPException, Request
from thisisme.config import settings
from thisisme.core.dependencies import require_admin
from thisisme.database.supabase_client import get_supabase
from thisisme.modules.github.schemas import GitHubAuthResponse, GitHubStatusResponse, WebhookResult
from thisisme.modules.github.service import GitHubService, verify_webhook_signature
from supabase import Client
from typing import Dict
import json

router = APIRouter(prefix="/github", tags=["github"])


def get_github_service(supabase: Client = Depends(get_supabase)) -> GitHubService:
    return GitHubService(supabase)


@router.get("/auth", response_model=GitHubAuthResponse)
async def github_auth(
    user_data: Dict = Depends(require_admin),
    service: GitHubService = Depends(get_github_service)
):
    """Return the GitHub OAuth authorize URL for the current admin"""
    return service.get_authorize_url(user_data["id"])


@router.get("/callback", response_model=GitHubStatusResponse)
async def github_callback(
    code: str,
    state: str,
    service: GitHubService = Depends(get_github_service)
):
    return service.complete_oauth(code, state)


@router.get("/status", response_model=GitHubStatusResponse)
async def github_status(
    user_data: Dict = Depends(require_admin),
    service: GitHubService = Depends(get_github_service)
):
    return service.get_status(user_data["id"])


@router.post("/webhook", response_model=WebhookResult)
async def github_webhook(
    request: Request,
    service: GitHubService = Depends(get_github_service)
):
    """Receive GitHub events; merged AI fix PRs mark their ticket's fix as deployed"""
    body = await request.body()
    if settings.github_webhook_secret and not verify_webhook_signature(
        body, request.headers.get("x-hub-signature-256"), settings.github_webhook_secret
    ):
        raise HTTPException(status_code=401, detail="Invalid signature")
    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")
    return service.handle_event(request.headers.get("x-github-event"), payload)
