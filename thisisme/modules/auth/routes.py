from fastapi import APIRouter, Depends, Response
from thisisme.config import settings
from thisisme.core.dependencies import get_current_user
from thisisme.database.supabase_client import get_supabase
from thisisme.modules.auth.schemas import LoginRequest, RegisterRequest, OnboardRequest, UserResponse, AuthResponse
from thisisme.modules.auth.service import AuthService
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/auth", tags=["auth"])


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def _set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        max_age=settings.jwt_expiry_days * 24 * 60 * 60,
        path="/",
    )


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    register_data: RegisterRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service)
):
    """Register a new user"""
    result = service.register(register_data)
    _set_auth_cookie(response, result.token)
    return result


@router.post("/login", response_model=AuthResponse)
async def login(
    login_data: LoginRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service)
):
    """Login and get access token (also set as auth-token cookie)"""
    result = service.login(login_data)
    _set_auth_cookie(response, result.token)
    return result


@router.post("/logout", status_code=200)
async def logout(response: Response):
    """Tokens are stateless; logout only clears the cookie"""
    response.delete_cookie(settings.auth_cookie_name, path="/")
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
async def me(
    current_user: Dict = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service)
):
    return service.get_profile(current_user["id"])


@router.post("/onboard", response_model=UserResponse)
async def onboard(
    onboard_data: OnboardRequest,
    current_user: Dict = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service)
):
    """Record birth year after sign-up"""
    return service.onboard(current_user["id"], onboard_data)
