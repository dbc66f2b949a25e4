from supabase import Client
from fastapi import HTTPException
from datetime import datetime, timezone
from thisisme.core.timestamps import parse_timestamp
from thisisme.modules.auth.models import MIN_BIRTH_YEAR, PUBLIC_USER_COLUMNS
from thisisme.modules.auth.schemas import UserResponse
from thisisme.modules.network.schemas import normalize_phone
from thisisme.modules.payments.models import PREMIUM_FEATURES, TIER_FREE, TIER_PREMIUM
from thisisme.modules.users.schemas import ProfileUpdate, PremiumStatusResponse
import logging

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_profile(self, user_id: str) -> UserResponse:
        result = self.supabase.table("users")\
            .select(PUBLIC_USER_COLUMNS)\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="User profile not found. Please complete onboarding.")
        return UserResponse(**result.data[0])

    def update_profile(self, user_id: str, profile_data: ProfileUpdate) -> UserResponse:
        update_data = profile_data.model_dump(exclude_unset=True)
        if not update_data:
            raise HTTPException(status_code=400, detail="No fields to update")
        if update_data.get("birth_year") is not None:
            current_year = datetime.now(timezone.utc).year
            if not MIN_BIRTH_YEAR <= update_data["birth_year"] <= current_year:
                raise HTTPException(
                    status_code=400,
                    detail=f"Birth year must be between {MIN_BIRTH_YEAR} and {current_year}"
                )
        if "phone" in update_data:
            try:
                update_data["phone"] = normalize_phone(update_data["phone"])
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
        update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
        try:
            result = self.supabase.table("users")\
                .update(update_data)\
                .eq("id", user_id)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise HTTPException(status_code=404, detail="User profile not found. Please complete onboarding.")
        logger.info(f"Profile updated for {user_id}: {', '.join(k for k in update_data if k != 'updated_at')}")
        return self.get_profile(user_id)

    def get_premium_status(self, user_id: str) -> PremiumStatusResponse:
        """Premium only while the flag is set and the billing period (if known) has not ended."""
        result = self.supabase.table("users")\
            .select("is_premium, subscription_tier, subscription_expires_at")\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="User not found")
        row = result.data[0]
        expires_at = parse_timestamp(row.get("subscription_expires_at"))
        is_premium = bool(row.get("is_premium")) and (expires_at is None or expires_at > datetime.now(timezone.utc))
        tier = (row.get("subscription_tier") or TIER_PREMIUM) if is_premium else TIER_FREE
        return PremiumStatusResponse(
            is_premium=is_premium,
            tier=tier,
            expires_at=expires_at,
            features={feature: is_premium for feature in PREMIUM_FEATURES},
        )
