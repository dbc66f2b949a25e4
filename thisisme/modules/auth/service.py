from supabase import Client
from fastapi import HTTPException
from datetime import datetime, timezone
from thisisme.core.security import (
    hash_password, verify_password, validate_password_strength, create_access_token
)
from thisisme.modules.auth.models import MIN_BIRTH_YEAR, PUBLIC_USER_COLUMNS
from thisisme.modules.auth.schemas import LoginRequest, RegisterRequest, OnboardRequest, UserResponse, AuthResponse
from thisisme.modules.chapters.service import ChapterService
import logging

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def register(self, register_data: RegisterRequest) -> AuthResponse:
        """Register a new user with a bcrypt password and a default private chapter"""
        errors = validate_password_strength(register_data.password)
        if errors:
            raise HTTPException(status_code=400, detail={"error": "Invalid input", "details": errors})
        if register_data.password != register_data.confirm_password:
            raise HTTPException(status_code=400, detail="Passwords do not match")
        try:
            existing = self.supabase.table("users")\
                .select("id")\
                .eq("email", register_data.email)\
                .limit(1)\
                .execute()
            if existing.data:
                raise HTTPException(status_code=409, detail="User already exists with this email")

            result = self.supabase.table("users").insert({
                "email": register_data.email,
                "password_hash": hash_password(register_data.password),
                "full_name": register_data.full_name,
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to register user")
            user = result.data[0]

            ChapterService(self.supabase).create_default_chapter(user["id"])
            logger.info(f"Registered user {user['id']}")
            return AuthResponse(
                user=UserResponse(**user),
                token=create_access_token(user["id"], user["email"]),
                message="User registered successfully",
            )
        except HTTPException:
            raise
        except Exception as e:
            error_message = str(e)
            if "duplicate" in error_message.lower() or "already exists" in error_message.lower():
                raise HTTPException(status_code=409, detail="User already exists with this email")
            raise HTTPException(status_code=500, detail=f"Registration failed: {error_message}")

    def login(self, login_data: LoginRequest) -> AuthResponse:
        try:
            result = self.supabase.table("users")\
                .select("*")\
                .eq("email", login_data.email)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=f"Login failed: {e}")
        if not result.data or not verify_password(login_data.password, result.data[0].get("password_hash")):
            raise HTTPException(status_code=401, detail="Invalid credentials")
        user = result.data[0]
        return AuthResponse(
            user=UserResponse(**user),
            token=create_access_token(user["id"], user["email"]),
            message="Login successful",
        )

    def get_profile(self, user_id: str) -> UserResponse:
        result = self.supabase.table("users")\
            .select(PUBLIC_USER_COLUMNS)\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="User not found")
        return UserResponse(**result.data[0])

    def onboard(self, user_id: str, onboard_data: OnboardRequest) -> UserResponse:
        current_year = datetime.now(timezone.utc).year
        if not MIN_BIRTH_YEAR <= onboard_data.birth_year <= current_year:
            raise HTTPException(
                status_code=400,
                detail=f"Birth year must be between {MIN_BIRTH_YEAR} and {current_year}"
            )
        try:
            result = self.supabase.table("users")\
                .update({
                    "birth_year": onboard_data.birth_year,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                })\
                .eq("id", user_id)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise HTTPException(status_code=404, detail="User not found")
        return UserResponse(**result.data[0])
