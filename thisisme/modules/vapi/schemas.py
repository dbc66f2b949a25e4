from pydantic import BaseModel
from datetime import datetime
from typing import Any, Dict, List


class VapiSessionResponse(BaseModel):
    session_id: str
    expires_at: datetime
    user_data: Dict[str, Any]


class WebhookLogEntry(BaseModel):
    id: str
    timestamp: str
    type: str
    data: Dict[str, Any]


class WebhookLogResponse(BaseModel):
    logs: List[WebhookLogEntry]
    count: int


class ClearLogsResponse(BaseModel):
    success: bool
    message: str
