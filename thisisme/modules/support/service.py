from supabase import Client
from fastapi import HTTPException
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional
from thisisme.core.timestamps import parse_timestamp
from thisisme.modules.support.models import NOTIFICATION_COMMENTED, NOTIFICATION_LIST_LIMIT
from thisisme.modules.support.schemas import (
    TicketCreate, TicketUpdate, TicketResponse, CommentCreate, CommentResponse, KanbanResponse,
    NotificationResponse
)
from thisisme.modules.support.types import (
    TicketAction, TicketStatus, TicketStage, TicketStats, TicketPriority, TICKET_STAGES,
    is_valid_ticket_stage, validate_ticket_creation
)
import logging

logger = logging.getLogger(__name__)

# Field -> history action recorded when it changes
TRACKED_FIELDS = {
    "status": TicketAction.STATUS_CHANGE,
    "stage": TicketAction.STAGE_MOVE,
    "priority": TicketAction.PRIORITY_CHANGE,
    "assignee_id": TicketAction.ASSIGNMENT,
}


def compute_ticket_stats(tickets: List[Dict[str, Any]]) -> TicketStats:
    """Aggregate counts and the mean created->resolved time over resolved tickets."""
    def count(field: str, value: str) -> int:
        return sum(1 for t in tickets if t.get(field) == value)

    durations = []
    for t in tickets:
        created, resolved = parse_timestamp(t.get("created_at")), parse_timestamp(t.get("resolved_at"))
        if created and resolved and resolved >= created:
            durations.append((resolved - created).total_seconds() / 3600)
    return TicketStats(
        total_tickets=len(tickets),
        open_tickets=count("status", TicketStatus.OPEN.value),
        in_progress_tickets=count("status", TicketStatus.IN_PROGRESS.value),
        resolved_tickets=count("status", TicketStatus.RESOLVED.value),
        closed_tickets=count("status", TicketStatus.CLOSED.value),
        critical_tickets=count("priority", TicketPriority.CRITICAL.value),
        high_tickets=count("priority", TicketPriority.HIGH.value),
        avg_resolution_hours=round(sum(durations) / len(durations), 2) if durations else 0.0,
    )


class SupportService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_ticket_row(self, ticket_id: str) -> Dict[str, Any]:
        result = self.supabase.table("tickets")\
            .select("*")\
            .eq("id", ticket_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Ticket not found")
        return result.data[0]

    def _check_access(self, ticket: Dict[str, Any], user_data: dict) -> None:
        """Admins, the creator and the assignee may see and edit a ticket"""
        if user_data.get("is_admin"):
            return
        if user_data["id"] in (ticket.get("creator_id"), ticket.get("assignee_id")):
            return
        raise HTTPException(status_code=403, detail="You do not have access to this ticket")

    def log_history(self, ticket_id: str, user_id: Optional[str], action: TicketAction,
                    old_value: Optional[str] = None, new_value: Optional[str] = None) -> None:
        self.supabase.table("ticket_history").insert({
            "ticket_id": ticket_id,
            "user_id": user_id,
            "action": action.value,
            "old_value": old_value,
            "new_value": new_value,
        }).execute()

    def add_comment_record(self, ticket_id: str, user_id: Optional[str], content: str, is_internal: bool) -> Dict[str, Any]:
        """Insert a comment row. Also used for system comments from the AI pipeline and webhooks."""
        result = self.supabase.table("ticket_comments").insert({
            "ticket_id": ticket_id,
            "user_id": user_id,
            "content": content,
            "is_internal": is_internal,
        }).execute()
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to add comment")
        return result.data[0]

    def update_ticket_fields(self, ticket_id: str, update_data: Dict[str, Any]) -> Dict[str, Any]:
        update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
        result = self.supabase.table("tickets")\
            .update(update_data)\
            .eq("id", ticket_id)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Ticket not found")
        return result.data[0]

    def list_tickets(self, user_data: dict, status: Optional[str] = None, priority: Optional[str] = None,
                     category: Optional[str] = None, stage: Optional[str] = None) -> List[TicketResponse]:
        try:
            query = self.supabase.table("tickets").select("*")
            if not user_data.get("is_admin"):
                query = query.or_(f"creator_id.eq.{user_data['id']},assignee_id.eq.{user_data['id']}")
            for field, value in (("status", status), ("priority", priority), ("category", category), ("stage", stage)):
                if value:
                    query = query.eq(field, value)
            result = query.order("created_at", desc=True).execute()
            return [TicketResponse(**t) for t in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def create_ticket(self, ticket_data: TicketCreate, user_id: str) -> TicketResponse:
        payload = ticket_data.model_dump(mode="json")
        errors = validate_ticket_creation(payload)
        if errors:
            raise HTTPException(status_code=400, detail={"error": "Invalid ticket", "details": errors})
        try:
            result = self.supabase.table("tickets").insert({
                "title": payload["title"].strip(),
                "description": payload["description"].strip(),
                "priority": payload["priority"],
                "category": payload["category"],
                "status": TicketStatus.OPEN.value,
                "stage": TicketStage.BACKLOG.value,
                "creator_id": user_id,
                "metadata": {},
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create ticket")
            ticket = result.data[0]
            self.log_history(ticket["id"], user_id, TicketAction.CREATED, None, TicketStatus.OPEN.value)
            logger.info(f"Ticket {ticket['id']} created by {user_id}")
            return TicketResponse(**ticket)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_ticket(self, ticket_id: str, user_data: dict) -> TicketResponse:
        ticket = self.get_ticket_row(ticket_id)
        self._check_access(ticket, user_data)
        return TicketResponse(**ticket)

    def update_ticket(self, ticket_id: str, ticket_data: TicketUpdate, user_data: dict) -> TicketResponse:
        ticket = self.get_ticket_row(ticket_id)
        self._check_access(ticket, user_data)
        update_data = ticket_data.model_dump(mode="json", exclude_unset=True)
        if not update_data:
            raise HTTPException(status_code=400, detail="No fields to update")
        if update_data.get("status") == TicketStatus.RESOLVED.value and ticket.get("status") != TicketStatus.RESOLVED.value:
            update_data["resolved_at"] = datetime.now(timezone.utc).isoformat()
        try:
            updated = self.update_ticket_fields(ticket_id, update_data)
            for field, action in TRACKED_FIELDS.items():
                if field in update_data and update_data[field] != ticket.get(field):
                    self.log_history(ticket_id, user_data["id"], action, ticket.get(field), update_data[field])
            return TicketResponse(**updated)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_ticket(self, ticket_id: str) -> bool:
        self.get_ticket_row(ticket_id)
        try:
            self.supabase.table("ticket_comments").delete().eq("ticket_id", ticket_id).execute()
            self.supabase.table("ticket_history").delete().eq("ticket_id", ticket_id).execute()
            self.supabase.table("tickets").delete().eq("id", ticket_id).execute()
            return True
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_comments(self, ticket_id: str, user_data: dict) -> List[CommentResponse]:
        ticket = self.get_ticket_row(ticket_id)
        self._check_access(ticket, user_data)
        query = self.supabase.table("ticket_comments")\
            .select("*")\
            .eq("ticket_id", ticket_id)
        if not user_data.get("is_admin"):
            query = query.eq("is_internal", False)
        result = query.order("created_at").execute()
        return [CommentResponse(**c) for c in (result.data or [])]

    def add_comment(self, ticket_id: str, comment_data: CommentCreate, user_data: dict) -> CommentResponse:
        ticket = self.get_ticket_row(ticket_id)
        self._check_access(ticket, user_data)
        if comment_data.is_internal and not user_data.get("is_admin"):
            raise HTTPException(status_code=403, detail="Only admins can post internal comments")
        comment = self.add_comment_record(ticket_id, user_data["id"], comment_data.content, comment_data.is_internal)
        self.log_history(ticket_id, user_data["id"], TicketAction.COMMENTED)
        if not comment_data.is_internal:
            self._notify_comment(ticket, user_data)
        return CommentResponse(**comment)

    def _notify_comment(self, ticket: Dict[str, Any], user_data: dict) -> None:
        """Tell the creator and assignee about a public comment they did not write"""
        recipients = {ticket.get("creator_id"), ticket.get("assignee_id")} - {None, user_data["id"]}
        if not recipients:
            return
        try:
            self.supabase.table("ticket_notifications").insert([
                {
                    "ticket_id": ticket["id"],
                    "user_id": recipient,
                    "type": NOTIFICATION_COMMENTED,
                    "message": f"{user_data.get('email') or 'Someone'} commented on \"{ticket.get('title')}\"",
                    "read": False,
                    "email_sent": False,
                }
                for recipient in sorted(recipients)
            ]).execute()
        except Exception as e:
            logger.error(f"Notifications for ticket {ticket['id']} failed: {e}")

    def list_notifications(self, user_id: str) -> List[NotificationResponse]:
        try:
            result = self.supabase.table("ticket_notifications")\
                .select("*")\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .limit(NOTIFICATION_LIST_LIMIT)\
                .execute()
            rows = result.data or []
            titles: Dict[str, str] = {}
            ticket_ids = list({r["ticket_id"] for r in rows})
            if ticket_ids:
                tickets = self.supabase.table("tickets")\
                    .select("id, title")\
                    .in_("id", ticket_ids)\
                    .execute()
                titles = {t["id"]: t["title"] for t in (tickets.data or [])}
            return [NotificationResponse(**r, ticket_title=titles.get(r["ticket_id"])) for r in rows]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def mark_notification(self, notification_id: str, read: bool, user_id: str) -> NotificationResponse:
        try:
            result = self.supabase.table("ticket_notifications")\
                .update({"read": read})\
                .eq("id", notification_id)\
                .eq("user_id", user_id)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise HTTPException(status_code=404, detail="Notification not found")
        return NotificationResponse(**result.data[0])

    def mark_all_notifications_read(self, user_id: str) -> int:
        try:
            result = self.supabase.table("ticket_notifications")\
                .update({"read": True})\
                .eq("user_id", user_id)\
                .eq("read", False)\
                .execute()
            return len(result.data or [])
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_kanban(self) -> KanbanResponse:
        result = self.supabase.table("tickets")\
            .select("*")\
            .order("created_at", desc=True)\
            .execute()
        board: Dict[str, List[TicketResponse]] = {stage: [] for stage in TICKET_STAGES}
        for ticket in result.data or []:
            if ticket.get("stage") in board:
                board[ticket["stage"]].append(TicketResponse(**ticket))
        return KanbanResponse(kanban=board, stages=TICKET_STAGES)

    def move_ticket(self, ticket_id: str, new_stage: str, user_id: str) -> TicketResponse:
        if not is_valid_ticket_stage(new_stage):
            raise HTTPException(status_code=400, detail="Invalid stage")
        ticket = self.get_ticket_row(ticket_id)
        if ticket.get("stage") == new_stage:
            return TicketResponse(**ticket)
        updated = self.update_ticket_fields(ticket_id, {"stage": new_stage})
        self.log_history(ticket_id, user_id, TicketAction.STAGE_MOVE, ticket.get("stage"), new_stage)
        return TicketResponse(**updated)

    def get_stats(self) -> TicketStats:
        try:
            result = self.supabase.table("tickets")\
                .select("status, priority, created_at, resolved_at")\
                .execute()
            return compute_ticket_stats(result.data or [])
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
