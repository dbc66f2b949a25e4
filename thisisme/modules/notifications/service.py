from supabase import Client
from fastapi import HTTPException
from thisisme.modules.notifications.schemas import (
    NotificationResponse, NotificationListResponse, MarkReadRequest, MarkReadResponse
)

NOTIFICATION_PAGE_SIZE = 50


class NotificationService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def list_notifications(self, user_id: str) -> NotificationListResponse:
        """Newest notifications plus the user's total unread count"""
        try:
            result = self.supabase.table("notifications")\
                .select("*")\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .limit(NOTIFICATION_PAGE_SIZE)\
                .execute()
            unread = self.supabase.table("notifications")\
                .select("id")\
                .eq("user_id", user_id)\
                .eq("is_read", False)\
                .execute()
            return NotificationListResponse(
                notifications=[NotificationResponse(**n) for n in (result.data or [])],
                unread_count=len(unread.data or []),
            )
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def mark_read(self, user_id: str, request: MarkReadRequest) -> MarkReadResponse:
        if not request.mark_all_read and not request.notification_ids:
            raise HTTPException(status_code=400, detail="Provide notification_ids or mark_all_read")
        try:
            query = self.supabase.table("notifications")\
                .update({"is_read": True})\
                .eq("user_id", user_id)
            if request.mark_all_read:
                query = query.eq("is_read", False)
            else:
                query = query.in_("id", request.notification_ids)
            result = query.execute()
            return MarkReadResponse(updated=len(result.data or []))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
