"""
Ticket vocabularies and validation guards.

The ``is_valid_*`` helpers accept any value and only return True for known
strings, so they can be used directly on untrusted JSON.
"""

from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel


class TicketStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketStage(str, Enum):
    BACKLOG = "backlog"
    TODO = "todo"
    DOING = "doing"
    TESTING = "testing"
    DONE = "done"


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class TicketCategory(str, Enum):
    BUG = "bug"
    FEATURE = "feature"
    QUESTION = "question"
    IMPROVEMENT = "improvement"
    SECURITY = "security"
    PERFORMANCE = "performance"
    MONITORING = "monitoring"
    TESTING = "testing"


class TicketAction(str, Enum):
    STATUS_CHANGE = "status_change"
    ASSIGNMENT = "assignment"
    PRIORITY_CHANGE = "priority_change"
    STAGE_MOVE = "stage_move"
    CREATED = "created"
    COMMENTED = "commented"


TICKET_STAGES: List[str] = [s.value for s in TicketStage]

TITLE_MAX_LENGTH = 200
DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 5000


def _is_member(value: Any, enum_cls) -> bool:
    return isinstance(value, str) and value in {m.value for m in enum_cls}


def is_valid_ticket_status(value: Any) -> bool:
    return _is_member(value, TicketStatus)


def is_valid_ticket_stage(value: Any) -> bool:
    return _is_member(value, TicketStage)


def is_valid_ticket_priority(value: Any) -> bool:
    return _is_member(value, TicketPriority)


def is_valid_ticket_category(value: Any) -> bool:
    return _is_member(value, TicketCategory)


def validate_ticket_creation(data: Dict[str, Any]) -> List[str]:
    """Return human-readable validation errors for a new ticket payload."""
    errors = []
    title = data.get("title")
    title = title.strip() if isinstance(title, str) else None
    if not title:
        errors.append("Title is required")
    elif len(title) > TITLE_MAX_LENGTH:
        errors.append(f"Title must be {TITLE_MAX_LENGTH} characters or less")

    description = data.get("description")
    description = description.strip() if isinstance(description, str) else None
    if not description:
        errors.append("Description is required")
    elif len(description) < DESCRIPTION_MIN_LENGTH:
        errors.append(f"Description must be at least {DESCRIPTION_MIN_LENGTH} characters")
    elif len(description) > DESCRIPTION_MAX_LENGTH:
        errors.append(f"Description must be {DESCRIPTION_MAX_LENGTH} characters or less")

    if data.get("priority") is not None and not is_valid_ticket_priority(data["priority"]):
        errors.append("Invalid priority")
    if data.get("category") is not None and not is_valid_ticket_category(data["category"]):
        errors.append("Invalid category")
    return errors


class TicketStats(BaseModel):
    total_tickets: int = 0
    open_tickets: int = 0
    in_progress_tickets: int = 0
    resolved_tickets: int = 0
    closed_tickets: int = 0
    critical_tickets: int = 0
    high_tickets: int = 0
    avg_resolution_hours: float = 0.0
