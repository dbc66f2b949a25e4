"""In-process ring buffer of recent VAPI webhook traffic, for the admin debug view."""

import threading
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Dict, List

from thisisme.config import settings


class WebhookLog:
    def __init__(self, max_entries: int = 100):
        self._entries = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def add(self, kind: str, data: Dict[str, Any]) -> Dict[str, Any]:
        entry = {
            "id": uuid.uuid4().hex,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "type": kind,
            "data": data,
        }
        with self._lock:
            self._entries.appendleft(entry)
        return entry

    def entries(self) -> List[Dict[str, Any]]:
        """Newest first"""
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


webhook_log = WebhookLog(settings.vapi_log_buffer_size)


def get_webhook_log() -> WebhookLog:
    return webhook_log
