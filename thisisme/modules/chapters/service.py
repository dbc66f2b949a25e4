from supabase import Client
from fastapi import HTTPException
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Dict, Any
from urllib.parse import urlencode
from thisisme.clients.notifier import Notifier
from thisisme.config import settings
from thisisme.core.dependencies import get_chapter_or_404, get_chapter_role, check_chapter_member
from thisisme.core.exceptions import ExternalServiceError
from thisisme.core.security import create_invite_token, verify_invite_token, generate_invite_code
from thisisme.modules.chapters.models import (
    CHAPTER_TYPE_GROUP, CHAPTER_TYPE_PRIVATE, ROLE_CREATOR, ROLE_MEMBER,
    DEFAULT_CHAPTER_TITLE, DEFAULT_CHAPTER_DESCRIPTION
)
from thisisme.modules.chapters.schemas import (
    ChapterCreate, ChapterUpdate, ChapterResponse, ChapterInviteRequest, ChapterInviteResponse,
    InviteResult, InviteLinkRequest, InviteLinkResponse, JoinChapterRequest, JoinChapterResponse,
    AddMemberRequest, AddMemberResponse
)
import logging

logger = logging.getLogger(__name__)

COLLABORATOR_RELATIONSHIP = "Chapter Collaborator"


class ChapterService:
    def __init__(self, supabase: Client, notifier: Optional[Notifier] = None):
        self.supabase = supabase
        self.notifier = notifier

    def create_chapter_record(self, creator_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a timezones row and the CREATOR membership. Shared by the API, registration and the voice assistant."""
        insert_data = {
            "title": data["title"],
            "description": data.get("description"),
            "type": data.get("type") or CHAPTER_TYPE_PRIVATE,
            "start_date": data.get("start_date"),
            "end_date": data.get("end_date"),
            "location": data.get("location"),
            "creator_id": creator_id,
        }
        if insert_data["type"] == CHAPTER_TYPE_GROUP:
            insert_data["invite_code"] = generate_invite_code()
        result = self.supabase.table("timezones").insert(insert_data).execute()
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to create chapter")
        chapter = result.data[0]
        self.supabase.table("timezone_members").insert({
            "timezone_id": chapter["id"],
            "user_id": creator_id,
            "role": ROLE_CREATOR,
            "joined_at": datetime.now(timezone.utc).isoformat(),
        }).execute()
        logger.info(f"Chapter {chapter['id']} created by {creator_id}")
        return chapter

    def create_default_chapter(self, user_id: str) -> Dict[str, Any]:
        return self.create_chapter_record(user_id, {
            "title": DEFAULT_CHAPTER_TITLE,
            "description": DEFAULT_CHAPTER_DESCRIPTION,
            "type": CHAPTER_TYPE_PRIVATE,
        })

    def create_chapter(self, chapter_data: ChapterCreate, user_id: str) -> ChapterResponse:
        """Create a new chapter"""
        try:
            data = chapter_data.model_dump()
            for key in ("start_date", "end_date"):
                if data.get(key):
                    data[key] = data[key].isoformat()
            chapter = self.create_chapter_record(user_id, data)
            return ChapterResponse(**chapter, role=ROLE_CREATOR)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_chapters(self, user_id: str) -> List[ChapterResponse]:
        """Chapters the user is a member of"""
        try:
            members = self.supabase.table("timezone_members")\
                .select("timezone_id, role")\
                .eq("user_id", user_id)\
                .execute()
            roles = {m["timezone_id"]: m.get("role") for m in (members.data or [])}
            if not roles:
                return []
            result = self.supabase.table("timezones")\
                .select("*")\
                .in_("id", list(roles.keys()))\
                .order("created_at", desc=True)\
                .execute()
            return [ChapterResponse(**c, role=roles.get(c["id"])) for c in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_chapter(self, chapter_id: str, user_data: dict) -> ChapterResponse:
        chapter = check_chapter_member(chapter_id, user_data, self.supabase)
        role = get_chapter_role(chapter_id, user_data["id"], self.supabase)
        return ChapterResponse(**chapter, role=role)

    def _require_creator(self, chapter_id: str, user_id: str) -> Dict[str, Any]:
        chapter = get_chapter_or_404(chapter_id, self.supabase)
        if chapter.get("creator_id") != user_id:
            raise HTTPException(status_code=403, detail="Only the chapter creator can modify it")
        return chapter

    def update_chapter(self, chapter_id: str, chapter_data: ChapterUpdate, user_id: str) -> ChapterResponse:
        self._require_creator(chapter_id, user_id)
        try:
            update_data = chapter_data.model_dump(exclude_unset=True)
            for key in ("start_date", "end_date"):
                if update_data.get(key):
                    update_data[key] = update_data[key].isoformat()
            if not update_data:
                raise HTTPException(status_code=400, detail="No fields to update")
            update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
            result = self.supabase.table("timezones")\
                .update(update_data)\
                .eq("id", chapter_id)\
                .execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Chapter not found")
            return ChapterResponse(**result.data[0], role=ROLE_CREATOR)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_chapter(self, chapter_id: str, user_id: str) -> bool:
        self._require_creator(chapter_id, user_id)
        try:
            self.supabase.table("timezone_members").delete().eq("timezone_id", chapter_id).execute()
            self.supabase.table("timezones").delete().eq("id", chapter_id).execute()
            logger.info(f"Chapter {chapter_id} deleted by {user_id}")
            return True
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def invite(self, invite_data: ChapterInviteRequest, user_data: dict) -> ChapterInviteResponse:
        """Invite people by email: in-app notification for registered users, email for everyone else."""
        chapter = check_chapter_member(invite_data.chapter_id, user_data, self.supabase)
        results = []
        for raw_email in invite_data.emails:
            email = raw_email.strip().lower()
            if "@" not in email:
                continue
            existing = self.supabase.table("users")\
                .select("id")\
                .eq("email", email)\
                .limit(1)\
                .execute()
            if existing.data:
                self.supabase.table("notifications").insert({
                    "user_id": existing.data[0]["id"],
                    "type": "TIMEZONE_INVITATION",
                    "title": "Chapter Collaboration Invitation",
                    "message": f"You've been invited to collaborate on \"{chapter['title']}\" by {user_data['email']}",
                    "data": {
                        "chapter_id": chapter["id"],
                        "chapter_title": chapter["title"],
                        "invited_by": user_data["id"],
                        "invite_message": invite_data.message,
                    },
                    "is_read": False,
                }).execute()
                results.append(InviteResult(email=email, status="notification_sent"))
                continue
            status_value = "email_failed"
            if self.notifier is not None:
                try:
                    self.notifier.send_chapter_invitation_email(email, user_data["email"], chapter["title"], invite_data.message)
                    status_value = "email_sent"
                except ExternalServiceError as e:
                    logger.warning(f"Chapter invite email to {email} not sent: {e}")
            results.append(InviteResult(email=email, status=status_value))
        logger.info(f"Chapter {chapter['id']} invitations processed: {len(results)}")
        return ChapterInviteResponse(chapter_id=chapter["id"], results=results)

    def create_invite_link(self, link_data: InviteLinkRequest, user_data: dict) -> InviteLinkResponse:
        chapter = check_chapter_member(link_data.chapter_id, user_data, self.supabase)
        days = link_data.expires_in_days or settings.invite_link_expiry_days
        expires_at = datetime.now(timezone.utc) + timedelta(days=days)
        token = create_invite_token(chapter["id"], user_data["id"], expires_at)
        query = urlencode({"token": token, "expires": int(expires_at.timestamp() * 1000)})
        return InviteLinkResponse(
            invite_link=f"{settings.app_url}/join/{chapter['id']}?{query}",
            token=token,
            expires_at=expires_at,
        )

    def join(self, join_data: JoinChapterRequest, user_data: dict) -> JoinChapterResponse:
        chapter = get_chapter_or_404(join_data.chapter_id, self.supabase)
        invited_by = join_data.invited_by
        if join_data.token:
            invite = verify_invite_token(join_data.token)
            if not invite or invite.get("chapterId") != chapter["id"]:
                raise HTTPException(status_code=400, detail="Invalid or expired invite link")
            invited_by = invite.get("invitedBy") or invited_by
        user_id = user_data["id"]
        if get_chapter_role(chapter["id"], user_id, self.supabase):
            return JoinChapterResponse(
                message="Already a member of this chapter",
                chapter_id=chapter["id"],
                already_member=True,
            )
        try:
            self.supabase.table("timezone_members").insert({
                "timezone_id": chapter["id"],
                "user_id": user_id,
                "role": ROLE_MEMBER,
                "joined_at": datetime.now(timezone.utc).isoformat(),
            }).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if invited_by and chapter.get("creator_id") and chapter["creator_id"] != user_id:
            try:
                self._add_creator_to_network(user_id, chapter["creator_id"])
            except Exception as e:
                logger.error(f"Adding chapter creator to network of {user_id} failed: {e}")
        logger.info(f"User {user_id} joined chapter {chapter['id']}")
        return JoinChapterResponse(message=f"Joined \"{chapter['title']}\"", chapter_id=chapter["id"])

    def _add_creator_to_network(self, owner_id: str, creator_id: str) -> None:
        existing = self.supabase.table("user_networks")\
            .select("id")\
            .eq("owner_id", owner_id)\
            .eq("person_user_id", creator_id)\
            .limit(1)\
            .execute()
        if existing.data:
            return
        creator = self.supabase.table("users")\
            .select("id, email, full_name")\
            .eq("id", creator_id)\
            .limit(1)\
            .execute()
        if not creator.data:
            return
        row = creator.data[0]
        self.supabase.table("user_networks").insert({
            "owner_id": owner_id,
            "person_user_id": creator_id,
            "person_name": row.get("full_name") or row["email"].split("@")[0],
            "person_email": row["email"],
            "relationship": COLLABORATOR_RELATIONSHIP,
        }).execute()

    def add_member(self, member_data: AddMemberRequest, user_data: dict) -> AddMemberResponse:
        """Queue a chapter on a network person's pending invitations (sent later by network invite)."""
        chapter = check_chapter_member(member_data.chapter_id, user_data, self.supabase)
        person_result = self.supabase.table("user_networks")\
            .select("*")\
            .eq("id", member_data.person_id)\
            .eq("owner_id", user_data["id"])\
            .limit(1)\
            .execute()
        if not person_result.data:
            raise HTTPException(status_code=404, detail="Person not found in your network")
        person = person_result.data[0]
        pending = list(person.get("pending_chapter_invitations") or [])
        if chapter["id"] in pending:
            return AddMemberResponse(
                message=f"{person['person_name']} is already invited to this chapter",
                already_invited=True,
                pending_chapter_invitations=pending,
            )
        pending.append(chapter["id"])
        try:
            self.supabase.table("user_networks")\
                .update({"pending_chapter_invitations": pending})\
                .eq("id", person["id"])\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        return AddMemberResponse(
            message=f"{person['person_name']} will be invited to \"{chapter['title']}\"",
            pending_chapter_invitations=pending,
        )
