from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Literal
from datetime import datetime


class MemoryCreate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    text_content: str = Field(..., max_length=10000)
    chapter_id: Optional[str] = None
    approximate_date: Optional[str] = Field(None, max_length=200)
    date_precision: Literal["exact", "approximate", "era"] = "approximate"
    memory_date: Optional[datetime] = None
    tagged_people: List[str] = Field(default_factory=list, max_length=50)


class MemoryUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    text_content: Optional[str] = Field(None, max_length=10000)
    chapter_id: Optional[str] = None
    approximate_date: Optional[str] = Field(None, max_length=200)
    date_precision: Optional[Literal["exact", "approximate", "era"]] = None
    memory_date: Optional[datetime] = None


class MemoryTagsUpdate(BaseModel):
    person_ids: List[str] = Field(default_factory=list, max_length=50)


class MemoryResponse(BaseModel):
    id: str
    user_id: str
    chapter_id: Optional[str] = None
    title: Optional[str] = None
    text_content: Optional[str] = None
    approximate_date: Optional[str] = None
    date_precision: Optional[str] = None
    memory_date: Optional[datetime] = None
    tagged_people: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MemoryInviteRequest(BaseModel):
    memory_id: Optional[str] = None
    email: Optional[EmailStr] = None
    message: Optional[str] = Field(None, max_length=1000)
    reason: Optional[str] = Field(None, max_length=500)
    permissions: List[str] = Field(default_factory=list)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


class MemoryInviteResponse(BaseModel):
    success: bool = True
    message: str
    collaboration_id: str
    is_pending: bool


class CollaborativeMemory(MemoryResponse):
    type: Literal["owned", "collaborative"]
    permissions: List[str]
    is_owner: bool
    invited_by: Optional[str] = None


class MemoryCounts(BaseModel):
    owned: int
    collaborative: int
    total: int


class CollaborativeMemoryList(BaseModel):
    memories: List[CollaborativeMemory]
    counts: MemoryCounts


class AcceptInvitationResponse(BaseModel):
    success: bool = True
    message: str
    memory: CollaborativeMemory


class ContributionCreate(BaseModel):
    # Type and content are checked by the service so bad values answer 400
    contribution_type: Optional[str] = None
    content: Optional[str] = Field(None, max_length=10000)


class ContributionResponse(BaseModel):
    id: str
    memory_id: str
    contributor_id: str
    contributor_email: Optional[str] = None
    contribution_type: str
    content: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
