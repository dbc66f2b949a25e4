from fastapi import APIRouter, Depends, Request
from thisisme.core.dependencies import get_current_user
from thisisme.database.supabase_client import get_supabase
from thisisme.modules.payments.schemas import CheckoutResponse, PortalResponse, StripeWebhookResponse
from thisisme.modules.payments.service import PaymentService
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/stripe", tags=["payments"])


def get_payment_service(supabase: Client = Depends(get_supabase)) -> PaymentService:
    return PaymentService(supabase)


@router.post("/create-checkout", response_model=CheckoutResponse)
async def create_checkout(
    user_data: Dict = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    return service.create_checkout(user_data)


@router.post("/create-portal", response_model=PortalResponse)
async def create_portal(
    user_data: Dict = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service)
):
    """Billing portal for an existing subscriber"""
    return service.create_portal(user_data["id"])


@router.post("/webhook", response_model=StripeWebhookResponse)
async def stripe_webhook(
    request: Request,
    service: PaymentService = Depends(get_payment_service)
):
    payload = await request.body()
    return service.handle_webhook(payload, request.headers.get("stripe-signature"))
