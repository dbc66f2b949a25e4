from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class GitHubAuthResponse(BaseModel):
    authorize_url: str


class GitHubStatusResponse(BaseModel):
    connected: bool
    github_username: Optional[str] = None
    connected_at: Optional[datetime] = None


class WebhookResult(BaseModel):
    received: bool = True
    handled: bool = False
    ticket_id: Optional[str] = None
    message: Optional[str] = None
