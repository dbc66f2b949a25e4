from fastapi import APIRouter, Depends
from thisisme.core.dependencies import get_current_user
from thisisme.database.supabase_client import get_supabase
from thisisme.modules.auth.schemas import UserResponse
from thisisme.modules.users.schemas import ProfileUpdate, PremiumStatusResponse
from thisisme.modules.users.service import UserService
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/user", tags=["users"])


def get_user_service(supabase: Client = Depends(get_supabase)) -> UserService:
    return UserService(supabase)


@router.get("/profile", response_model=UserResponse)
async def get_profile(
    user_data: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    return service.get_profile(user_data["id"])


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    profile_data: ProfileUpdate,
    user_data: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """Update name, phone or birth year"""
    return service.update_profile(user_data["id"], profile_data)


@router.get("/premium-status", response_model=PremiumStatusResponse)
async def premium_status(
    user_data: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    return service.get_premium_status(user_data["id"])
