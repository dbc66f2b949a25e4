import re
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime


def normalize_phone(value: Optional[str]) -> Optional[str]:
    """Strip formatting, turn a leading 0 into +44 and require + followed by 10-15 digits."""
    if value is None or value == "":
        return None
    cleaned = re.sub(r"[\s().\-]", "", value)
    if cleaned.startswith("0"):
        cleaned = "+44" + cleaned[1:]
    elif not cleaned.startswith("+"):
        cleaned = "+" + cleaned
    if not re.fullmatch(r"\+\d{10,15}", cleaned):
        raise ValueError("Phone number must be 10-15 digits (spaces and formatting are okay)")
    return cleaned


class PersonBase(BaseModel):
    person_email: Optional[EmailStr] = None
    person_phone: Optional[str] = None
    relationship: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=2000)
    photo_url: Optional[str] = Field(None, max_length=2000)

    @field_validator("person_email")
    @classmethod
    def lowercase_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v

    @field_validator("person_phone")
    @classmethod
    def check_phone(cls, v: Optional[str]) -> Optional[str]:
        return normalize_phone(v)


class PersonCreate(PersonBase):
    person_name: str = Field(..., min_length=1, max_length=100)


class PersonUpdate(PersonBase):
    person_name: Optional[str] = Field(None, min_length=1, max_length=100)


class PersonResponse(BaseModel):
    id: str
    owner_id: str
    person_name: str
    person_email: Optional[str] = None
    person_phone: Optional[str] = None
    relationship: Optional[str] = None
    notes: Optional[str] = None
    photo_url: Optional[str] = None
    person_user_id: Optional[str] = None
    pending_chapter_invitations: List[str] = []
    invitation_status: Optional[str] = None
    invited_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NetworkInviteRequest(BaseModel):
    # Required fields, method and phone are checked in NetworkService.invite (400, not 422)
    person_id: Optional[str] = None
    person_name: Optional[str] = None
    relationship: Optional[str] = None
    method: str = "email"
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    message: Optional[str] = Field(None, max_length=1000)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


class NetworkInviteResponse(BaseModel):
    success: bool = True
    invite_code: str
    sent_via: List[str]
    failed: List[str] = []
    invited_chapters: List[str] = []
    expires_at: datetime
