from fastapi import APIRouter, Depends
from thisisme.core.dependencies import get_current_user
from thisisme.database.supabase_client import get_supabase
from thisisme.modules.notifications.schemas import NotificationListResponse, MarkReadRequest, MarkReadResponse
from thisisme.modules.notifications.service import NotificationService
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_notification_service(supabase: Client = Depends(get_supabase)) -> NotificationService:
    return NotificationService(supabase)


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    user_data: Dict = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    return service.list_notifications(user_data["id"])


@router.post("/mark-read", response_model=MarkReadResponse)
async def mark_read(
    request: MarkReadRequest,
    user_data: Dict = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    """Mark selected notifications, or all of them, as read"""
    return service.mark_read(user_data["id"], request)
