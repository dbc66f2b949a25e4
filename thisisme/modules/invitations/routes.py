from fastapi import APIRouter, Depends
from thisisme.core.dependencies import get_current_user
from thisisme.database.supabase_client import get_supabase
from thisisme.modules.invitations.schemas import RedeemInviteRequest, ProcessInvitationResponse, RedeemInviteResponse
from thisisme.modules.invitations.service import InvitationService
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/auth", tags=["invitations"])


def get_invitation_service(supabase: Client = Depends(get_supabase)) -> InvitationService:
    return InvitationService(supabase)


@router.post("/process-invitation", response_model=ProcessInvitationResponse)
async def process_invitation(
    user_data: Dict = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service)
):
    """Accept pending invitations addressed to the current user's email or phone"""
    return service.process_invitations(user_data)


@router.post("/redeem-invite", response_model=RedeemInviteResponse)
async def redeem_invite(
    redeem_data: RedeemInviteRequest,
    user_data: Dict = Depends(get_current_user),
    service: InvitationService = Depends(get_invitation_service)
):
    return service.redeem(redeem_data.invite_code, user_data)
