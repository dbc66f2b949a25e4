"""
Password hashing and JWT helpers.

Session tokens are HS256 JWTs carrying ``userId`` and ``email``. Invite links
and OAuth state use purpose-scoped tokens; ``verify_token`` rejects any token
that carries a purpose.
"""

import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import bcrypt
import jwt

from thisisme.config import settings

BCRYPT_ROUNDS = 12
INVITE_TOKEN_PURPOSE = "chapter_invite"
GITHUB_STATE_PURPOSE = "github_oauth"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash stored for the user
        return False


def validate_password_strength(password: str) -> List[str]:
    """Return the list of password policy violations (empty when the password is acceptable)."""
    errors = []
    if len(password) < 8:
        errors.append("Password must be at least 8 characters")
    if len(password) > 100:
        errors.append("Password too long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", password):
        errors.append("Password must contain at least one number")
    return errors


def create_access_token(user_id: str, email: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "userId": user_id,
        "email": email,
        "iat": now,
        "exp": now + timedelta(days=settings.jwt_expiry_days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> Optional[Dict[str, str]]:
    """Decode a session token. Returns {"userId", "email"} or None when invalid/expired."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        return None
    if payload.get("purpose") or not payload.get("userId"):
        return None
    return {"userId": payload["userId"], "email": payload.get("email")}


def extract_token_from_header(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[len("Bearer "):] or None


def create_purpose_token(purpose: str, claims: Dict[str, Any], expires_at: datetime) -> str:
    """Short-lived signed token for a single purpose (invite links, OAuth state)."""
    payload = {**claims, "purpose": purpose, "exp": expires_at}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_purpose_token(token: str, purpose: str) -> Optional[Dict[str, Any]]:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        return None
    if payload.get("purpose") != purpose:
        return None
    return payload


def create_invite_token(chapter_id: str, invited_by: str, expires_at: datetime) -> str:
    return create_purpose_token(INVITE_TOKEN_PURPOSE, {"chapterId": chapter_id, "invitedBy": invited_by}, expires_at)


def verify_invite_token(token: str) -> Optional[Dict[str, str]]:
    payload = verify_purpose_token(token, INVITE_TOKEN_PURPOSE)
    if not payload:
        return None
    return {"chapterId": payload.get("chapterId"), "invitedBy": payload.get("invitedBy")}


# Excludes 0/O and 1/I/L
INVITE_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"


def generate_invite_code(length: int = 8) -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(length))


def normalize_invite_code(code: str) -> str:
    return re.sub(r"[\s\-]", "", code or "").upper()
