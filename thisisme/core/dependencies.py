"""
Core dependencies for route protection and access checking
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from thisisme.config import settings
from thisisme.core.security import verify_token
from thisisme.database.supabase_client import get_supabase
from supabase import Client
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)

# auto_error=False so the auth-token cookie can be used when no Bearer header is sent
security = HTTPBearer(auto_error=False)


def _get_request_cache(request: Request) -> Dict[str, Any]:
    """Return request-scoped cache for access data (is_admin, chapter roles)."""
    if not hasattr(request.state, "access_cache"):
        request.state.access_cache = {}
    return request.state.access_cache


def _resolve_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.scheme.lower() == "bearer" and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.auth_cookie_name)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> dict:
    """Extract current user info from Bearer header or auth-token cookie"""
    token = _resolve_token(request, credentials)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    payload = verify_token(token)
    if not payload:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    return {"id": payload["userId"], "email": payload.get("email")}


def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
) -> Optional[dict]:
    token = _resolve_token(request, credentials)
    payload = verify_token(token) if token else None
    if not payload:
        return None
    return {"id": payload["userId"], "email": payload.get("email")}


def is_admin(user_id: str, supabase: Client, cache: Optional[Dict[str, Any]] = None) -> bool:
    """Check users.is_admin. Uses request-scoped cache when provided."""
    if cache is not None and "is_admin" in cache:
        return cache["is_admin"]
    try:
        result = supabase.table("users")\
            .select("is_admin")\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        admin = bool(result.data and result.data[0].get("is_admin"))
    except Exception as e:
        logger.error(f"Error checking admin flag for {user_id}: {e}")
        admin = False
    if cache is not None:
        cache["is_admin"] = admin
    return admin


def get_user_context(
    request: Request,
    user_data: dict = Depends(get_current_user),
    supabase: Client = Depends(get_supabase)
) -> dict:
    """Current user plus is_admin flag"""
    cache = _get_request_cache(request)
    return {**user_data, "is_admin": is_admin(user_data["id"], supabase, cache)}


def require_admin(user_data: dict = Depends(get_user_context)) -> dict:
    if not user_data["is_admin"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return user_data


def get_chapter_or_404(chapter_id: str, supabase: Client) -> dict:
    result = supabase.table("timezones")\
        .select("*")\
        .eq("id", chapter_id)\
        .limit(1)\
        .execute()
    if not result.data:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Chapter not found"
        )
    return result.data[0]


def get_chapter_role(chapter_id: str, user_id: str, supabase: Client) -> Optional[str]:
    """Return the member role of user in chapter, or None if not a member"""
    result = supabase.table("timezone_members")\
        .select("role")\
        .eq("timezone_id", chapter_id)\
        .eq("user_id", user_id)\
        .limit(1)\
        .execute()
    if not result.data:
        return None
    return result.data[0].get("role") or "MEMBER"


def check_chapter_member(chapter_id: str, user_data: dict, supabase: Client, chapter: Optional[dict] = None) -> dict:
    """Allow if chapter creator or member. Optional chapter dict avoids duplicate fetch. Returns the chapter."""
    if chapter is None:
        chapter = get_chapter_or_404(chapter_id, supabase)
    if chapter.get("creator_id") == user_data["id"]:
        return chapter
    if get_chapter_role(chapter_id, user_data["id"], supabase):
        return chapter
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="You must be a member of this chapter"
    )
