from pydantic import BaseModel, Field
from typing import Optional, Dict
from datetime import datetime


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = None
    birth_year: Optional[int] = None


class PremiumStatusResponse(BaseModel):
    is_premium: bool
    tier: str
    expires_at: Optional[datetime] = None
    features: Dict[str, bool]
