from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from thisisme.modules.support.types import TicketStatus, TicketStage, TicketPriority, TicketCategory


class TicketCreate(BaseModel):
    title: str
    description: str
    # Checked by validate_ticket_creation so bad values answer 400
    priority: str = TicketPriority.MEDIUM.value
    category: str = TicketCategory.BUG.value


class TicketUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=10, max_length=5000)
    status: Optional[TicketStatus] = None
    stage: Optional[TicketStage] = None
    priority: Optional[TicketPriority] = None
    category: Optional[TicketCategory] = None
    assignee_id: Optional[str] = None


class TicketResponse(BaseModel):
    id: str
    title: str
    description: str
    status: str
    stage: str
    priority: str
    category: str
    creator_id: str
    assignee_id: Optional[str] = None
    metadata: Dict[str, Any] = {}
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    is_internal: bool = False


class CommentResponse(BaseModel):
    id: str
    ticket_id: str
    user_id: Optional[str] = None
    content: str
    is_internal: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class KanbanResponse(BaseModel):
    kanban: Dict[str, List[TicketResponse]]
    stages: List[str]


class KanbanMoveRequest(BaseModel):
    ticket_id: str
    new_stage: str


class NotificationResponse(BaseModel):
    id: str
    ticket_id: str
    user_id: str
    type: str
    message: Optional[str] = None
    read: bool = False
    email_sent: bool = False
    ticket_title: Optional[str] = None
    created_at: Optional[datetime] = None


class NotificationUpdate(BaseModel):
    read: bool = True
