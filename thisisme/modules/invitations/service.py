from supabase import Client
from fastapi import HTTPException
from datetime import datetime, timezone
from typing import List, Dict, Any
from thisisme.core.security import normalize_invite_code
from thisisme.core.timestamps import parse_timestamp
from thisisme.modules.chapters.models import ROLE_COLLABORATOR
from thisisme.modules.memories.models import COLLABORATION_PENDING
from thisisme.modules.network.models import (
    INVITATION_PENDING, INVITATION_ACCEPTED, INVITATION_EXPIRED, INVITATION_CANCELLED
)
from thisisme.modules.invitations.schemas import ProcessInvitationResponse, RedeemInviteResponse
import logging

logger = logging.getLogger(__name__)


class InvitationService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _add_memberships(self, user_id: str, chapter_ids: List[str]) -> List[str]:
        """Add user to each chapter as collaborator, skipping chapters they already belong to"""
        added = []
        for chapter_id in chapter_ids:
            existing = self.supabase.table("timezone_members")\
                .select("id")\
                .eq("timezone_id", chapter_id)\
                .eq("user_id", user_id)\
                .limit(1)\
                .execute()
            if existing.data:
                continue
            self.supabase.table("timezone_members").insert({
                "timezone_id": chapter_id,
                "user_id": user_id,
                "role": ROLE_COLLABORATOR,
                "joined_at": datetime.now(timezone.utc).isoformat(),
            }).execute()
            added.append(chapter_id)
        return added

    def _accept(self, invitation: Dict[str, Any], user_id: str) -> None:
        self.supabase.table("pending_invitations")\
            .update({
                "status": INVITATION_ACCEPTED,
                "accepted_at": datetime.now(timezone.utc).isoformat(),
                "accepted_by_user_id": user_id,
            })\
            .eq("id", invitation["id"])\
            .execute()
        if invitation.get("person_id"):
            self.supabase.table("user_networks")\
                .update({"person_user_id": user_id, "invitation_status": INVITATION_ACCEPTED})\
                .eq("id", invitation["person_id"])\
                .execute()

    def _link_memory_invitations(self, user_id: str, email: str) -> int:
        """Attach memory invitations sent to this email before the account existed; they stay pending."""
        result = self.supabase.table("memory_collaborations")\
            .update({"collaborator_id": user_id, "invited_email": None})\
            .eq("invited_email", email)\
            .eq("status", COLLABORATION_PENDING)\
            .execute()
        return len(result.data or [])

    def process_invitations(self, user_data: dict) -> ProcessInvitationResponse:
        """Accept every pending invitation addressed to the user's email or phone (run after sign-up/login)."""
        try:
            profile = self.supabase.table("users")\
                .select("email, phone")\
                .eq("id", user_data["id"])\
                .limit(1)\
                .execute()
            if not profile.data:
                raise HTTPException(status_code=404, detail="User not found")
            email = (profile.data[0].get("email") or "").lower()
            phone = profile.data[0].get("phone")

            filters = [f"invitee_email.eq.{email}"] if email else []
            if phone:
                filters.append(f"invitee_phone.eq.{phone}")
            memory_invitations = self._link_memory_invitations(user_data["id"], email) if email else 0
            if not filters:
                return ProcessInvitationResponse(processed=0, chapters_added=[], memory_invitations=memory_invitations)
            result = self.supabase.table("pending_invitations")\
                .select("*")\
                .eq("status", INVITATION_PENDING)\
                .or_(",".join(filters))\
                .execute()

            now = datetime.now(timezone.utc)
            processed = 0
            chapters_added: List[str] = []
            for invitation in result.data or []:
                if invitation.get("expires_at") and parse_timestamp(invitation["expires_at"]) < now:
                    continue
                chapters_added.extend(self._add_memberships(user_data["id"], invitation.get("invited_chapters") or []))
                self._accept(invitation, user_data["id"])
                processed += 1
            logger.info(f"Processed {processed} invitations for user {user_data['id']}")
            return ProcessInvitationResponse(
                processed=processed, chapters_added=chapters_added, memory_invitations=memory_invitations
            )
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def redeem(self, invite_code: str, user_data: dict) -> RedeemInviteResponse:
        code = normalize_invite_code(invite_code)
        result = self.supabase.table("pending_invitations")\
            .select("*")\
            .eq("invite_code", code)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Invite code not found")
        invitation = result.data[0]
        status_value = invitation.get("status")

        if status_value == INVITATION_ACCEPTED:
            if invitation.get("accepted_by_user_id") == user_data["id"]:
                raise HTTPException(status_code=400, detail="You have already redeemed this invite code")
            raise HTTPException(status_code=400, detail="This invite code has been used by someone else")
        if status_value == INVITATION_CANCELLED:
            raise HTTPException(status_code=400, detail="This invitation has been cancelled")
        expired = status_value == INVITATION_EXPIRED or (
            invitation.get("expires_at") and parse_timestamp(invitation["expires_at"]) < datetime.now(timezone.utc)
        )
        if expired:
            raise HTTPException(status_code=400, detail="This invite code has expired")
        chapter_ids = invitation.get("invited_chapters") or []
        if not chapter_ids:
            raise HTTPException(status_code=400, detail="This invitation does not include any chapters")

        try:
            added = self._add_memberships(user_data["id"], chapter_ids)
            self._accept(invitation, user_data["id"])
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        logger.info(f"Invite {invitation['id']} redeemed by {user_data['id']}")
        return RedeemInviteResponse(
            message=f"Joined {len(added)} chapter(s)",
            chapters_added=added,
        )
