from supabase import Client
from fastapi import HTTPException
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional
from thisisme.config import settings
from thisisme.core.timestamps import parse_timestamp
import logging
import secrets

logger = logging.getLogger(__name__)

DEFAULT_BIRTH_YEAR = 1980


class VapiSessionStore:
    """Short-lived voice sessions so the voice client can identify the user without holding a JWT."""

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def create_session(self, user_id: str) -> Dict[str, Any]:
        profile = self.supabase.table("users")\
            .select("email, full_name, birth_year")\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        if not profile.data:
            raise HTTPException(status_code=404, detail="User not found")
        row = profile.data[0]
        birth_year = row.get("birth_year") or DEFAULT_BIRTH_YEAR
        now = datetime.now(timezone.utc)
        user_data = {
            "email": row.get("email") or "",
            "name": row.get("full_name") or "",
            "birthYear": birth_year,
            "currentAge": now.year - birth_year,
        }
        session_id = f"vapi_{secrets.token_urlsafe(24)}"
        expires_at = now + timedelta(minutes=settings.vapi_session_ttl_minutes)
        try:
            self.supabase.table("vapi_sessions").insert({
                "session_id": session_id,
                "user_id": user_id,
                "user_data": user_data,
                "expires_at": expires_at.isoformat(),
            }).execute()
        except Exception as e:
            logger.error(f"Failed to create VAPI session for {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to create session")
        return {"session_id": session_id, "expires_at": expires_at, "user_data": user_data}

    def get_user_id(self, session_id: str) -> Optional[str]:
        """Resolve a live session to its user id; expired sessions are deleted"""
        result = self.supabase.table("vapi_sessions")\
            .select("user_id, expires_at")\
            .eq("session_id", session_id)\
            .limit(1)\
            .execute()
        if not result.data:
            return None
        row = result.data[0]
        expires_at = parse_timestamp(row["expires_at"])
        if expires_at is None or expires_at < datetime.now(timezone.utc):
            self.supabase.table("vapi_sessions").delete().eq("session_id", session_id).execute()
            return None
        return row["user_id"]
