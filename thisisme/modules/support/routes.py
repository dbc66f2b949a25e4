from fastapi import APIRouter, Depends
from thisisme.core.dependencies import get_user_context, require_admin
from thisisme.database.supabase_client import get_supabase
from thisisme.modules.support.schemas import (
    TicketCreate, TicketUpdate, TicketResponse, CommentCreate, CommentResponse,
    KanbanResponse, KanbanMoveRequest, NotificationResponse, NotificationUpdate
)
from thisisme.modules.support.service import SupportService
from thisisme.modules.support.types import TicketStats
from supabase import Client
from typing import List, Dict, Optional

router = APIRouter(prefix="/support", tags=["support"])
admin_router = APIRouter(prefix="/admin/support", tags=["admin"])


def get_support_service(supabase: Client = Depends(get_supabase)) -> SupportService:
    return SupportService(supabase)


@router.get("/tickets", response_model=List[TicketResponse])
async def list_tickets(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    category: Optional[str] = None,
    stage: Optional[str] = None,
    user_data: Dict = Depends(get_user_context),
    service: SupportService = Depends(get_support_service)
):
    """Admins see every ticket; others see tickets they created or are assigned to"""
    return service.list_tickets(user_data, status=status, priority=priority, category=category, stage=stage)


@router.post("/tickets", response_model=TicketResponse, status_code=201)
async def create_ticket(
    ticket_data: TicketCreate,
    user_data: Dict = Depends(get_user_context),
    service: SupportService = Depends(get_support_service)
):
    return service.create_ticket(ticket_data, user_data["id"])


@router.get("/tickets/{ticket_id}", response_model=TicketResponse)
async def get_ticket(
    ticket_id: str,
    user_data: Dict = Depends(get_user_context),
    service: SupportService = Depends(get_support_service)
):
    return service.get_ticket(ticket_id, user_data)


@router.patch("/tickets/{ticket_id}", response_model=TicketResponse)
async def update_ticket(
    ticket_id: str,
    ticket_data: TicketUpdate,
    user_data: Dict = Depends(get_user_context),
    service: SupportService = Depends(get_support_service)
):
    return service.update_ticket(ticket_id, ticket_data, user_data)


@router.delete("/tickets/{ticket_id}", status_code=204)
async def delete_ticket(
    ticket_id: str,
    user_data: Dict = Depends(require_admin),
    service: SupportService = Depends(get_support_service)
):
    """Delete ticket (admin only)"""
    service.delete_ticket(ticket_id)
    return None


@router.get("/tickets/{ticket_id}/comments", response_model=List[CommentResponse])
async def list_comments(
    ticket_id: str,
    user_data: Dict = Depends(get_user_context),
    service: SupportService = Depends(get_support_service)
):
    """Internal comments are only returned to admins"""
    return service.list_comments(ticket_id, user_data)


@router.post("/tickets/{ticket_id}/comments", response_model=CommentResponse, status_code=201)
async def add_comment(
    ticket_id: str,
    comment_data: CommentCreate,
    user_data: Dict = Depends(get_user_context),
    service: SupportService = Depends(get_support_service)
):
    return service.add_comment(ticket_id, comment_data, user_data)


@router.get("/notifications", response_model=List[NotificationResponse])
async def list_notifications(
    user_data: Dict = Depends(get_user_context),
    service: SupportService = Depends(get_support_service)
):
    """The caller's newest ticket notifications"""
    return service.list_notifications(user_data["id"])


@router.put("/notifications/mark-all-read")
async def mark_all_notifications_read(
    user_data: Dict = Depends(get_user_context),
    service: SupportService = Depends(get_support_service)
):
    updated = service.mark_all_notifications_read(user_data["id"])
    return {"success": True, "updated": updated}


@router.put("/notifications/{notification_id}", response_model=NotificationResponse)
async def update_notification(
    notification_id: str,
    notification_data: NotificationUpdate,
    user_data: Dict = Depends(get_user_context),
    service: SupportService = Depends(get_support_service)
):
    return service.mark_notification(notification_id, notification_data.read, user_data["id"])


@admin_router.get("/kanban", response_model=KanbanResponse)
async def get_kanban(
    user_data: Dict = Depends(require_admin),
    service: SupportService = Depends(get_support_service)
):
    return service.get_kanban()


@admin_router.put("/kanban", response_model=TicketResponse)
async def move_ticket(
    move_data: KanbanMoveRequest,
    user_data: Dict = Depends(require_admin),
    service: SupportService = Depends(get_support_service)
):
    """Move a ticket to another kanban stage"""
    return service.move_ticket(move_data.ticket_id, move_data.new_stage, user_data["id"])


@admin_router.get("/reports", response_model=TicketStats)
async def get_reports(
    user_data: Dict = Depends(require_admin),
    service: SupportService = Depends(get_support_service)
):
    return service.get_stats()
