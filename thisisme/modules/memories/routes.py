from fastapi import APIRouter, Depends
from thisisme.clients.notifier import Notifier, get_notifier
from thisisme.core.dependencies import get_current_user
from thisisme.database.supabase_client import get_supabase
from thisisme.modules.memories.collaboration import CollaborationService
from thisisme.modules.memories.schemas import (
    MemoryCreate, MemoryUpdate, MemoryTagsUpdate, MemoryResponse, MemoryInviteRequest, MemoryInviteResponse,
    CollaborativeMemoryList, AcceptInvitationResponse, ContributionCreate, ContributionResponse
)
from thisisme.modules.memories.service import MemoryService
from supabase import Client
from typing import List, Dict

router = APIRouter(prefix="/memories", tags=["memories"])


def get_memory_service(supabase: Client = Depends(get_supabase)) -> MemoryService:
    return MemoryService(supabase)


def get_collaboration_service(
    supabase: Client = Depends(get_supabase),
    notifier: Notifier = Depends(get_notifier)
) -> CollaborationService:
    return CollaborationService(supabase, notifier)


@router.get("", response_model=List[MemoryResponse])
async def list_memories(
    user_data: Dict = Depends(get_current_user),
    service: MemoryService = Depends(get_memory_service)
):
    """List the current user's memories, newest first"""
    return service.list_memories(user_data["id"])


@router.post("", response_model=MemoryResponse, status_code=201)
async def create_memory(
    memory_data: MemoryCreate,
    user_data: Dict = Depends(get_current_user),
    service: MemoryService = Depends(get_memory_service)
):
    return service.create_memory(memory_data, user_data)


@router.get("/collaborative", response_model=CollaborativeMemoryList)
async def list_collaborative_memories(
    user_data: Dict = Depends(get_current_user),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """Owned memories plus memories shared with the user, newest first"""
    return service.list_collaborative(user_data["id"])


@router.post("/invite", response_model=MemoryInviteResponse)
async def invite_to_memory(
    invite_data: MemoryInviteRequest,
    user_data: Dict = Depends(get_current_user),
    service: CollaborationService = Depends(get_collaboration_service)
):
    return service.invite(invite_data, user_data)


@router.get("/{memory_id}", response_model=MemoryResponse)
async def get_memory(
    memory_id: str,
    user_data: Dict = Depends(get_current_user),
    service: MemoryService = Depends(get_memory_service)
):
    return service.get_memory(memory_id, user_data)


@router.put("/{memory_id}", response_model=MemoryResponse)
async def update_memory(
    memory_id: str,
    memory_data: MemoryUpdate,
    user_data: Dict = Depends(get_current_user),
    service: MemoryService = Depends(get_memory_service)
):
    """Update memory (author only)"""
    return service.update_memory(memory_id, memory_data, user_data)


@router.delete("/{memory_id}", status_code=204)
async def delete_memory(
    memory_id: str,
    user_data: Dict = Depends(get_current_user),
    service: MemoryService = Depends(get_memory_service)
):
    service.delete_memory(memory_id, user_data["id"])
    return None


@router.post("/{memory_id}/tags", response_model=MemoryResponse)
async def set_memory_tags(
    memory_id: str,
    tags_data: MemoryTagsUpdate,
    user_data: Dict = Depends(get_current_user),
    service: MemoryService = Depends(get_memory_service)
):
    """Replace the people tagged on a memory (author only)"""
    return service.set_tags(memory_id, tags_data.person_ids, user_data["id"])


@router.post("/{memory_id}/accept-invitation", response_model=AcceptInvitationResponse)
async def accept_memory_invitation(
    memory_id: str,
    user_data: Dict = Depends(get_current_user),
    service: CollaborationService = Depends(get_collaboration_service)
):
    return service.accept(memory_id, user_data["id"])


@router.get("/{memory_id}/contributions", response_model=List[ContributionResponse])
async def list_contributions(
    memory_id: str,
    user_data: Dict = Depends(get_current_user),
    service: CollaborationService = Depends(get_collaboration_service)
):
    return service.list_contributions(memory_id, user_data["id"])


@router.post("/{memory_id}/contributions", response_model=ContributionResponse, status_code=201)
async def add_contribution(
    memory_id: str,
    contribution: ContributionCreate,
    user_data: Dict = Depends(get_current_user),
    service: CollaborationService = Depends(get_collaboration_service)
):
    """Comment on, add to, or correct a memory"""
    return service.add_contribution(memory_id, contribution, user_data)
