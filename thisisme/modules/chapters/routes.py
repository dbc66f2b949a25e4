from fastapi import APIRouter, Depends
from thisisme.clients.notifier import Notifier, get_notifier
from thisisme.core.dependencies import get_current_user
from thisisme.database.supabase_client import get_supabase
from thisisme.modules.chapters.schemas import (
    ChapterCreate, ChapterUpdate, ChapterResponse, ChapterInviteRequest, ChapterInviteResponse,
    InviteLinkRequest, InviteLinkResponse, JoinChapterRequest, JoinChapterResponse,
    AddMemberRequest, AddMemberResponse
)
from thisisme.modules.chapters.service import ChapterService
from supabase import Client
from typing import List, Dict

router = APIRouter(prefix="/chapters", tags=["chapters"])


def get_chapter_service(
    supabase: Client = Depends(get_supabase),
    notifier: Notifier = Depends(get_notifier)
) -> ChapterService:
    return ChapterService(supabase, notifier)


@router.get("", response_model=List[ChapterResponse])
async def list_chapters(
    user_data: Dict = Depends(get_current_user),
    service: ChapterService = Depends(get_chapter_service)
):
    """List chapters the current user belongs to"""
    return service.list_chapters(user_data["id"])


@router.post("", response_model=ChapterResponse, status_code=201)
async def create_chapter(
    chapter_data: ChapterCreate,
    user_data: Dict = Depends(get_current_user),
    service: ChapterService = Depends(get_chapter_service)
):
    return service.create_chapter(chapter_data, user_data["id"])


@router.post("/invite", response_model=ChapterInviteResponse)
async def invite_to_chapter(
    invite_data: ChapterInviteRequest,
    user_data: Dict = Depends(get_current_user),
    service: ChapterService = Depends(get_chapter_service)
):
    """Invite people to a chapter by email (members only)"""
    return service.invite(invite_data, user_data)


@router.post("/invite-link", response_model=InviteLinkResponse)
async def create_invite_link(
    link_data: InviteLinkRequest,
    user_data: Dict = Depends(get_current_user),
    service: ChapterService = Depends(get_chapter_service)
):
    """Create a signed, expiring join link (members only)"""
    return service.create_invite_link(link_data, user_data)


@router.post("/join", response_model=JoinChapterResponse)
async def join_chapter(
    join_data: JoinChapterRequest,
    user_data: Dict = Depends(get_current_user),
    service: ChapterService = Depends(get_chapter_service)
):
    return service.join(join_data, user_data)


@router.post("/add-member", response_model=AddMemberResponse)
async def add_member(
    member_data: AddMemberRequest,
    user_data: Dict = Depends(get_current_user),
    service: ChapterService = Depends(get_chapter_service)
):
    """Queue a chapter invitation for someone in the caller's network"""
    return service.add_member(member_data, user_data)


@router.get("/{chapter_id}", response_model=ChapterResponse)
async def get_chapter(
    chapter_id: str,
    user_data: Dict = Depends(get_current_user),
    service: ChapterService = Depends(get_chapter_service)
):
    return service.get_chapter(chapter_id, user_data)


@router.put("/{chapter_id}", response_model=ChapterResponse)
async def update_chapter(
    chapter_id: str,
    chapter_data: ChapterUpdate,
    user_data: Dict = Depends(get_current_user),
    service: ChapterService = Depends(get_chapter_service)
):
    """Update chapter (creator only)"""
    return service.update_chapter(chapter_id, chapter_data, user_data["id"])


@router.delete("/{chapter_id}", status_code=204)
async def delete_chapter(
    chapter_id: str,
    user_data: Dict = Depends(get_current_user),
    service: ChapterService = Depends(get_chapter_service)
):
    """Delete chapter (creator only)"""
    service.delete_chapter(chapter_id, user_data["id"])
    return None
