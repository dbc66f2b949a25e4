from supabase import Client
from fastapi import HTTPException
from datetime import datetime, timedelta, timezone
from typing import List, Dict, Any, Optional
from thisisme.clients.notifier import Notifier
from thisisme.config import settings
from thisisme.core.exceptions import ExternalServiceError
from thisisme.core.security import generate_invite_code
from thisisme.modules.memories.schemas import MemoryResponse
from thisisme.modules.network.models import INVITATION_PENDING, INVITE_METHODS
from thisisme.modules.network.schemas import (
    PersonCreate, PersonUpdate, PersonResponse, NetworkInviteRequest, NetworkInviteResponse, normalize_phone
)
import logging

logger = logging.getLogger(__name__)


class NetworkService:
    def __init__(self, supabase: Client, notifier: Optional[Notifier] = None):
        self.supabase = supabase
        self.notifier = notifier

    def _get_person(self, person_id: str) -> Dict[str, Any]:
        result = self.supabase.table("user_networks")\
            .select("*")\
            .eq("id", person_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Person not found")
        return result.data[0]

    def _get_owned_person(self, person_id: str, user_id: str) -> Dict[str, Any]:
        """404 when missing, 403 when the person belongs to someone else's network"""
        person = self._get_person(person_id)
        if person["owner_id"] != user_id:
            raise HTTPException(status_code=403, detail="Not your network contact")
        return person

    def list_people(self, user_id: str) -> List[PersonResponse]:
        try:
            result = self.supabase.table("user_networks")\
                .select("*")\
                .eq("owner_id", user_id)\
                .order("person_name")\
                .execute()
            return [PersonResponse(**p) for p in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def add_person(self, person_data: PersonCreate, user_id: str) -> PersonResponse:
        try:
            insert_data = person_data.model_dump()
            insert_data["owner_id"] = user_id
            if insert_data.get("person_email"):
                existing_user = self.supabase.table("users")\
                    .select("id")\
                    .eq("email", insert_data["person_email"])\
                    .limit(1)\
                    .execute()
                if existing_user.data:
                    insert_data["person_user_id"] = existing_user.data[0]["id"]
            result = self.supabase.table("user_networks").insert(insert_data).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to add person")
            return PersonResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_person(self, person_id: str, user_id: str) -> PersonResponse:
        return PersonResponse(**self._get_owned_person(person_id, user_id))

    def update_person(self, person_id: str, person_data: PersonUpdate, user_id: str) -> PersonResponse:
        self._get_owned_person(person_id, user_id)
        update_data = person_data.model_dump(exclude_unset=True)
        if not update_data:
            raise HTTPException(status_code=400, detail="No fields to update")
        update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
        try:
            result = self.supabase.table("user_networks")\
                .update(update_data)\
                .eq("id", person_id)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Person not found")
            return PersonResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_person(self, person_id: str, user_id: str) -> bool:
        """Delete a contact and untag them from every memory"""
        self._get_owned_person(person_id, user_id)
        try:
            self.supabase.table("memory_tags").delete().eq("tagged_person_id", person_id).execute()
            self.supabase.table("user_networks").delete().eq("id", person_id).execute()
            return True
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_person_memories(self, person_id: str, user_id: str) -> List[MemoryResponse]:
        self._get_owned_person(person_id, user_id)
        tags = self.supabase.table("memory_tags")\
            .select("memory_id")\
            .eq("tagged_person_id", person_id)\
            .execute()
        memory_ids = [t["memory_id"] for t in (tags.data or [])]
        if not memory_ids:
            return []
        result = self.supabase.table("memories")\
            .select("*")\
            .in_("id", memory_ids)\
            .order("created_at", desc=True)\
            .execute()
        return [MemoryResponse(**m, tagged_people=[person_id]) for m in (result.data or [])]

    def invite(self, invite_data: NetworkInviteRequest, user_data: dict) -> NetworkInviteResponse:
        """
        Invite a network contact to join.

        A pending_invitations row is created first so the invite code exists
        before anything is sent. Channels are tried independently; if every
        requested channel fails the row is deleted again and 502 is raised.
        """
        if not (invite_data.person_id and (invite_data.person_name or "").strip()
                and (invite_data.relationship or "").strip()):
            raise HTTPException(status_code=400, detail="Person ID, name and relationship are required")
        method = invite_data.method
        if method not in INVITE_METHODS:
            raise HTTPException(status_code=400, detail="Invalid invitation method")
        if method in ("email", "both") and not invite_data.email:
            raise HTTPException(status_code=400, detail="Email is required for email invitations")
        if method in ("sms", "both") and not invite_data.phone:
            raise HTTPException(status_code=400, detail="Phone number is required for SMS invitations")
        try:
            phone = normalize_phone(invite_data.phone)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        invite_data = invite_data.model_copy(update={"phone": phone})
        if self.notifier is None:
            raise HTTPException(status_code=503, detail="Invitation delivery is not configured")

        person = self._get_owned_person(invite_data.person_id, user_data["id"])
        invited_chapters = list(person.get("pending_chapter_invitations") or [])
        expires_at = datetime.now(timezone.utc) + timedelta(days=settings.invitation_expiry_days)
        invite_code = generate_invite_code()

        try:
            result = self.supabase.table("pending_invitations").insert({
                "inviter_id": user_data["id"],
                "person_id": person["id"],
                "invitee_email": invite_data.email if method in ("email", "both") else None,
                "invitee_phone": invite_data.phone if method in ("sms", "both") else None,
                "invite_code": invite_code,
                "invited_chapters": invited_chapters,
                "relationship": invite_data.relationship,
                "status": INVITATION_PENDING,
                "expires_at": expires_at.isoformat(),
            }).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to create invitation")
        invitation_id = result.data[0]["id"]

        sent_via, failed = [], []
        if method in ("email", "both"):
            try:
                self.notifier.send_invitation_email(
                    invite_data.email, user_data["email"], invite_data.person_name, invite_code, invite_data.message
                )
                sent_via.append("email")
            except ExternalServiceError as e:
                logger.error(f"Invitation email for person {person['id']} failed: {e}")
                failed.append("email")
        if method in ("sms", "both"):
            try:
                self.notifier.send_invitation_sms(invite_data.phone, user_data["email"], invite_code)
                sent_via.append("sms")
            except ExternalServiceError as e:
                logger.error(f"Invitation SMS for person {person['id']} failed: {e}")
                failed.append("sms")

        if not sent_via:
            self.supabase.table("pending_invitations").delete().eq("id", invitation_id).execute()
            raise HTTPException(status_code=502, detail="Failed to send invitation")

        contact_update = {
            "invitation_status": "sent",
            "invited_at": datetime.now(timezone.utc).isoformat(),
            "relationship": invite_data.relationship,
        }
        if invite_data.email and not person.get("person_email"):
            contact_update["person_email"] = invite_data.email
        if invite_data.phone and not person.get("person_phone"):
            contact_update["person_phone"] = invite_data.phone
        self.supabase.table("user_networks").update(contact_update).eq("id", person["id"]).execute()

        logger.info(f"Invitation {invitation_id} sent via {', '.join(sent_via)}")
        return NetworkInviteResponse(
            invite_code=invite_code,
            sent_via=sent_via,
            failed=failed,
            invited_chapters=invited_chapters,
            expires_at=expires_at,
        )
