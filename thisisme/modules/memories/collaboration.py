from supabase import Client
from fastapi import HTTPException
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional
from thisisme.clients.notifier import Notifier
from thisisme.core.dependencies import get_chapter_role
from thisisme.core.exceptions import ExternalServiceError
from thisisme.modules.memories.models import (
    COLLABORATION_PENDING, COLLABORATION_ACCEPTED, OWNER_PERMISSIONS,
    CONTRIBUTION_TYPES, CONTRIBUTION_PERMISSIONS
)
from thisisme.modules.memories.schemas import (
    MemoryInviteRequest, MemoryInviteResponse, CollaborativeMemory, CollaborativeMemoryList, MemoryCounts,
    AcceptInvitationResponse, ContributionCreate, ContributionResponse
)
import logging

logger = logging.getLogger(__name__)


class CollaborationService:
    """Per-memory collaboration: invitations, accepted collaborators and their contributions."""

    def __init__(self, supabase: Client, notifier: Optional[Notifier] = None):
        self.supabase = supabase
        self.notifier = notifier

    def _get_memory(self, memory_id: str) -> Dict[str, Any]:
        result = self.supabase.table("memories")\
            .select("*")\
            .eq("id", memory_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Memory not found")
        return result.data[0]

    def get_collaboration(self, memory_id: str, user_id: str, status: str = COLLABORATION_ACCEPTED) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("memory_collaborations")\
            .select("*")\
            .eq("memory_id", memory_id)\
            .eq("collaborator_id", user_id)\
            .eq("status", status)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def permissions_for(self, memory: Dict[str, Any], user_id: str) -> Optional[List[str]]:
        """Owner and chapter members get full access; accepted collaborators get what they were granted."""
        if memory["user_id"] == user_id:
            return list(OWNER_PERMISSIONS)
        if memory.get("chapter_id") and get_chapter_role(memory["chapter_id"], user_id, self.supabase):
            return list(OWNER_PERMISSIONS)
        collaboration = self.get_collaboration(memory["id"], user_id)
        if collaboration is None:
            return None
        return list(collaboration.get("permissions") or [])

    def list_collaborative(self, user_id: str) -> CollaborativeMemoryList:
        try:
            owned_result = self.supabase.table("memories")\
                .select("*")\
                .eq("user_id", user_id)\
                .execute()
            collaborations = self.supabase.table("memory_collaborations")\
                .select("*")\
                .eq("collaborator_id", user_id)\
                .eq("status", COLLABORATION_ACCEPTED)\
                .execute()
            by_memory = {c["memory_id"]: c for c in (collaborations.data or [])}
            shared_rows = []
            if by_memory:
                shared_result = self.supabase.table("memories")\
                    .select("*")\
                    .in_("id", list(by_memory))\
                    .execute()
                shared_rows = shared_result.data or []
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        owned = [
            CollaborativeMemory(**m, type="owned", permissions=list(OWNER_PERMISSIONS), is_owner=True)
            for m in (owned_result.data or [])
        ]
        shared = [
            CollaborativeMemory(
                **m,
                type="collaborative",
                permissions=list(by_memory[m["id"]].get("permissions") or []),
                is_owner=False,
                invited_by=by_memory[m["id"]].get("invited_by"),
            )
            for m in shared_rows
        ]
        memories = sorted(owned + shared, key=lambda m: m.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return CollaborativeMemoryList(
            memories=memories,
            counts=MemoryCounts(owned=len(owned), collaborative=len(shared), total=len(memories)),
        )

    def invite(self, invite_data: MemoryInviteRequest, user_data: dict) -> MemoryInviteResponse:
        """
        Invite someone by email to collaborate on one of the caller's memories.

        Registered invitees are linked by user id, others by email until they
        sign up. The collaboration row is removed again if the email fails.
        """
        if not invite_data.memory_id or not invite_data.email:
            raise HTTPException(status_code=400, detail="Memory ID and email are required")
        invalid = [p for p in invite_data.permissions if p not in OWNER_PERMISSIONS]
        if invalid:
            raise HTTPException(status_code=400, detail=f"Unknown permissions: {', '.join(invalid)}")
        memory = self._get_memory(invite_data.memory_id)
        if memory["user_id"] != user_data["id"]:
            raise HTTPException(status_code=403, detail="Only the author can invite collaborators")
        if invite_data.email == (user_data.get("email") or "").lower():
            raise HTTPException(status_code=400, detail="You cannot invite yourself")
        if self.notifier is None:
            raise HTTPException(status_code=503, detail="Invitation delivery is not configured")

        invitee = self.supabase.table("users")\
            .select("id")\
            .eq("email", invite_data.email)\
            .limit(1)\
            .execute()
        collaborator_id = invitee.data[0]["id"] if invitee.data else None

        existing_query = self.supabase.table("memory_collaborations")\
            .select("id, status")\
            .eq("memory_id", memory["id"])
        if collaborator_id:
            existing_query = existing_query.eq("collaborator_id", collaborator_id)
        else:
            existing_query = existing_query.eq("invited_email", invite_data.email)
        existing = existing_query.limit(1).execute()
        if existing.data:
            if existing.data[0]["status"] == COLLABORATION_ACCEPTED:
                raise HTTPException(status_code=409, detail="This user is already collaborating on this memory")
            raise HTTPException(status_code=409, detail="An invitation has already been sent to this user")

        try:
            result = self.supabase.table("memory_collaborations").insert({
                "memory_id": memory["id"],
                "invited_by": user_data["id"],
                "collaborator_id": collaborator_id,
                "invited_email": None if collaborator_id else invite_data.email,
                "permissions": invite_data.permissions,
                "status": COLLABORATION_PENDING,
            }).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to create collaboration record")
        collaboration_id = result.data[0]["id"]

        try:
            self.notifier.send_memory_invitation_email(
                invite_data.email, user_data["email"], memory.get("title") or "Untitled memory", memory["id"],
                invite_data.message, invite_data.reason,
            )
        except ExternalServiceError as e:
            logger.error(f"Memory invitation email for {memory['id']} failed: {e}")
            self.supabase.table("memory_collaborations").delete().eq("id", collaboration_id).execute()
            raise HTTPException(status_code=502, detail="Failed to send invitation email")

        is_pending = collaborator_id is None
        logger.info(f"Memory {memory['id']} shared by {user_data['id']} (collaboration {collaboration_id})")
        return MemoryInviteResponse(
            message=(
                "Invitation sent! They will be able to collaborate once they create an account."
                if is_pending else "Memory invitation sent successfully"
            ),
            collaboration_id=collaboration_id,
            is_pending=is_pending,
        )

    def accept(self, memory_id: str, user_id: str) -> AcceptInvitationResponse:
        collaboration = self.get_collaboration(memory_id, user_id, status=COLLABORATION_PENDING)
        if collaboration is None:
            raise HTTPException(status_code=404, detail="No pending invitation found")
        memory = self._get_memory(memory_id)
        try:
            self.supabase.table("memory_collaborations")\
                .update({
                    "status": COLLABORATION_ACCEPTED,
                    "responded_at": datetime.now(timezone.utc).isoformat(),
                })\
                .eq("id", collaboration["id"])\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        logger.info(f"User {user_id} accepted collaboration on memory {memory_id}")
        return AcceptInvitationResponse(
            message="Invitation accepted successfully",
            memory=CollaborativeMemory(
                **memory,
                type="collaborative",
                permissions=list(collaboration.get("permissions") or []),
                is_owner=False,
                invited_by=collaboration.get("invited_by"),
            ),
        )

    def _contributor_emails(self, user_ids: List[str]) -> Dict[str, str]:
        if not user_ids:
            return {}
        result = self.supabase.table("users")\
            .select("id, email")\
            .in_("id", list(set(user_ids)))\
            .execute()
        return {u["id"]: u["email"] for u in (result.data or [])}

    def list_contributions(self, memory_id: str, user_id: str) -> List[ContributionResponse]:
        memory = self._get_memory(memory_id)
        if self.permissions_for(memory, user_id) is None:
            raise HTTPException(status_code=403, detail="Access denied")
        try:
            result = self.supabase.table("memory_contributions")\
                .select("*")\
                .eq("memory_id", memory_id)\
                .order("created_at")\
                .execute()
            rows = result.data or []
            emails = self._contributor_emails([r["contributor_id"] for r in rows])
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return [ContributionResponse(**r, contributor_email=emails.get(r["contributor_id"])) for r in rows]

    def add_contribution(self, memory_id: str, contribution: ContributionCreate, user_data: dict) -> ContributionResponse:
        contribution_type = contribution.contribution_type
        if contribution_type not in CONTRIBUTION_TYPES:
            raise HTTPException(status_code=400, detail="Valid contribution_type is required")
        content = (contribution.content or "").strip()
        if not content:
            raise HTTPException(status_code=400, detail="Content is required")
        memory = self._get_memory(memory_id)
        permissions = self.permissions_for(memory, user_data["id"])
        if permissions is None or CONTRIBUTION_PERMISSIONS[contribution_type] not in permissions:
            raise HTTPException(status_code=403, detail="Access denied")
        try:
            result = self.supabase.table("memory_contributions").insert({
                "memory_id": memory_id,
                "contributor_id": user_data["id"],
                "contribution_type": contribution_type,
                "content": content,
            }).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to add contribution")
        return ContributionResponse(**result.data[0], contributor_email=user_data.get("email"))
