from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import date, datetime


class ChapterCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    type: Literal["PRIVATE", "GROUP"] = "PRIVATE"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    location: Optional[str] = None


class ChapterUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    location: Optional[str] = None


class ChapterResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    type: str
    invite_code: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    location: Optional[str] = None
    creator_id: str
    role: Optional[str] = None  # Role of the requesting user
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ChapterInviteRequest(BaseModel):
    chapter_id: str
    emails: List[str] = Field(..., min_length=1, max_length=50)
    message: Optional[str] = Field(None, max_length=1000)


class InviteResult(BaseModel):
    email: str
    status: str  # notification_sent | email_sent | email_failed


class ChapterInviteResponse(BaseModel):
    success: bool = True
    chapter_id: str
    results: List[InviteResult]


class InviteLinkRequest(BaseModel):
    chapter_id: str
    expires_in_days: Optional[int] = Field(None, ge=1, le=90)


class InviteLinkResponse(BaseModel):
    invite_link: str
    token: str
    expires_at: datetime


class JoinChapterRequest(BaseModel):
    chapter_id: str
    token: Optional[str] = None
    invited_by: Optional[str] = None


class JoinChapterResponse(BaseModel):
    success: bool = True
    message: str
    chapter_id: str
    already_member: bool = False


class AddMemberRequest(BaseModel):
    chapter_id: str
    person_id: str


class AddMemberResponse(BaseModel):
    success: bool = True
    message: str
    already_invited: bool = False
    pending_chapter_invitations: List[str] = []
