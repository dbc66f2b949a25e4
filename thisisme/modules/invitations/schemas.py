from pydantic import BaseModel, Field
from typing import List


class RedeemInviteRequest(BaseModel):
    invite_code: str = Field(..., min_length=1, max_length=32)


class ProcessInvitationResponse(BaseModel):
    success: bool = True
    processed: int
    chapters_added: List[str]
    memory_invitations: int = 0


class RedeemInviteResponse(BaseModel):
    success: bool = True
    message: str
    chapters_added: List[str]
