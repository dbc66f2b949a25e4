from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from thisisme.core.dependencies import get_current_user, require_admin
from thisisme.database.supabase_client import get_supabase
from thisisme.modules.vapi.dispatcher import VapiWebhookDispatcher
from thisisme.modules.vapi.schemas import VapiSessionResponse, WebhookLogResponse, ClearLogsResponse
from thisisme.modules.vapi.sessions import VapiSessionStore
from thisisme.modules.vapi.webhook_log import WebhookLog, get_webhook_log
from supabase import Client
from typing import Dict, Optional
import json

router = APIRouter(prefix="/vapi", tags=["vapi"])


def get_dispatcher(
    supabase: Client = Depends(get_supabase),
    log: WebhookLog = Depends(get_webhook_log)
) -> VapiWebhookDispatcher:
    return VapiWebhookDispatcher(supabase, log)


@router.post("/webhook")
async def vapi_webhook(
    request: Request,
    token: Optional[str] = None,
    userId: Optional[str] = None,
    sessionId: Optional[str] = None,
    dispatcher: VapiWebhookDispatcher = Depends(get_dispatcher)
):
    """Voice assistant events and tool calls"""
    try:
        body = json.loads(await request.body())
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid payload"})
    if not isinstance(body, dict):
        return JSONResponse(status_code=400, content={"error": "Invalid payload"})
    status_code, content = dispatcher.handle(body, token=token, user_id=userId, session_id=sessionId)
    return JSONResponse(status_code=status_code, content=content)


@router.post("/session", response_model=VapiSessionResponse)
async def create_session(
    user_data: Dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase)
):
    return VapiSessionStore(supabase).create_session(user_data["id"])


@router.get("/logs", response_model=WebhookLogResponse)
async def get_logs(
    user_data: Dict = Depends(require_admin),
    log: WebhookLog = Depends(get_webhook_log)
):
    entries = log.entries()
    return WebhookLogResponse(logs=entries, count=len(entries))


@router.delete("/logs", response_model=ClearLogsResponse)
async def clear_logs(
    user_data: Dict = Depends(require_admin),
    log: WebhookLog = Depends(get_webhook_log)
):
    log.clear()
    return ClearLogsResponse(success=True, message="Webhook logs cleared")
