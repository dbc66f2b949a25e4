from supabase import Client
from fastapi import HTTPException
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from thisisme.config import settings
from thisisme.modules.payments.models import (
    EVENT_CHECKOUT_COMPLETED, EVENT_SUBSCRIPTION_UPDATED, EVENT_SUBSCRIPTION_DELETED, SUBSCRIPTION_ACTIVE,
    TIER_FREE, TIER_PREMIUM
)
from thisisme.modules.payments.schemas import CheckoutResponse, PortalResponse, StripeWebhookResponse
import logging
import stripe

logger = logging.getLogger(__name__)


def _stripe_client():
    if not settings.stripe_secret_key:
        raise HTTPException(status_code=503, detail="Stripe is not configured")
    stripe.api_key = settings.stripe_secret_key
    return stripe


class PaymentService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _get_user(self, user_id: str) -> Dict[str, Any]:
        result = self.supabase.table("users")\
            .select("id, email, stripe_customer_id, is_premium")\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="User not found")
        return result.data[0]

    def create_checkout(self, user_data: dict) -> CheckoutResponse:
        """Start a premium subscription checkout for the current user"""
        s = _stripe_client()
        if not settings.stripe_price_id:
            raise HTTPException(status_code=503, detail="Stripe price is not configured")
        try:
            session = s.checkout.Session.create(
                mode="subscription",
                line_items=[{"price": settings.stripe_price_id, "quantity": 1}],
                customer_email=user_data.get("email"),
                metadata={"userId": user_data["id"]},
                success_url=f"{settings.app_url}/settings?upgraded=true",
                cancel_url=f"{settings.app_url}/settings",
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout failed for {user_data['id']}: {e}")
            raise HTTPException(status_code=502, detail="Failed to create checkout session")
        return CheckoutResponse(url=session["url"], session_id=session["id"])

    def create_portal(self, user_id: str) -> PortalResponse:
        user = self._get_user(user_id)
        if not user.get("stripe_customer_id"):
            raise HTTPException(status_code=400, detail="No subscription found")
        s = _stripe_client()
        try:
            portal = s.billing_portal.Session.create(
                customer=user["stripe_customer_id"],
                return_url=f"{settings.app_url}/settings",
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe portal failed for {user_id}: {e}")
            raise HTTPException(status_code=502, detail="Failed to create portal session")
        return PortalResponse(url=portal["url"])

    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> StripeWebhookResponse:
        if not settings.stripe_webhook_secret:
            raise HTTPException(status_code=503, detail="Stripe webhook is not configured")
        try:
            event = stripe.Webhook.construct_event(payload, signature or "", settings.stripe_webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"Stripe webhook rejected: {e}")
            raise HTTPException(status_code=400, detail="Invalid signature")

        event_type = event["type"]
        obj = event["data"]["object"]
        if event_type == EVENT_CHECKOUT_COMPLETED:
            user_id = (obj.get("metadata") or {}).get("userId")
            if user_id:
                self.supabase.table("users").update({
                    "is_premium": True,
                    "subscription_tier": TIER_PREMIUM,
                    "stripe_customer_id": obj.get("customer"),
                    "premium_since": datetime.now(timezone.utc).isoformat(),
                }).eq("id", user_id).execute()
                logger.info(f"Premium activated for {user_id}")
        elif event_type == EVENT_SUBSCRIPTION_UPDATED:
            active = obj.get("status") == SUBSCRIPTION_ACTIVE
            period_end = obj.get("current_period_end")
            self.supabase.table("users").update({
                "is_premium": active,
                "subscription_tier": TIER_PREMIUM if active else TIER_FREE,
                "subscription_expires_at": datetime.fromtimestamp(period_end, timezone.utc).isoformat() if period_end else None,
            }).eq("stripe_customer_id", obj.get("customer")).execute()
        elif event_type == EVENT_SUBSCRIPTION_DELETED:
            self.supabase.table("users").update({
                "is_premium": False,
                "subscription_tier": TIER_FREE,
            }).eq("stripe_customer_id", obj.get("customer")).execute()
            logger.info(f"Premium revoked for customer {obj.get('customer')}")
        return StripeWebhookResponse(received=True)
