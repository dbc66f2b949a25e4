from fastapi import APIRouter, Depends
from thisisme.clients.notifier import Notifier, get_notifier
from thisisme.core.dependencies import get_current_user
from thisisme.database.supabase_client import get_supabase
from thisisme.modules.memories.schemas import MemoryResponse
from thisisme.modules.network.schemas import (
    PersonCreate, PersonUpdate, PersonResponse, NetworkInviteRequest, NetworkInviteResponse
)
from thisisme.modules.network.service import NetworkService
from supabase import Client
from typing import List, Dict

router = APIRouter(prefix="/network", tags=["network"])


def get_network_service(
    supabase: Client = Depends(get_supabase),
    notifier: Notifier = Depends(get_notifier)
) -> NetworkService:
    return NetworkService(supabase, notifier)


@router.get("", response_model=List[PersonResponse])
async def list_people(
    user_data: Dict = Depends(get_current_user),
    service: NetworkService = Depends(get_network_service)
):
    return service.list_people(user_data["id"])


@router.post("", response_model=PersonResponse, status_code=201)
async def add_person(
    person_data: PersonCreate,
    user_data: Dict = Depends(get_current_user),
    service: NetworkService = Depends(get_network_service)
):
    return service.add_person(person_data, user_data["id"])


@router.post("/invite", response_model=NetworkInviteResponse)
async def invite_person(
    invite_data: NetworkInviteRequest,
    user_data: Dict = Depends(get_current_user),
    service: NetworkService = Depends(get_network_service)
):
    """Send an invite code by email and/or SMS to someone in the caller's network"""
    return service.invite(invite_data, user_data)


@router.get("/{person_id}", response_model=PersonResponse)
async def get_person(
    person_id: str,
    user_data: Dict = Depends(get_current_user),
    service: NetworkService = Depends(get_network_service)
):
    return service.get_person(person_id, user_data["id"])


@router.put("/{person_id}", response_model=PersonResponse)
async def update_person(
    person_id: str,
    person_data: PersonUpdate,
    user_data: Dict = Depends(get_current_user),
    service: NetworkService = Depends(get_network_service)
):
    return service.update_person(person_id, person_data, user_data["id"])


@router.delete("/{person_id}", status_code=204)
async def delete_person(
    person_id: str,
    user_data: Dict = Depends(get_current_user),
    service: NetworkService = Depends(get_network_service)
):
    service.delete_person(person_id, user_data["id"])
    return None


@router.get("/{person_id}/memories", response_model=List[MemoryResponse])
async def get_person_memories(
    person_id: str,
    user_data: Dict = Depends(get_current_user),
    service: NetworkService = Depends(get_network_service)
):
    """Memories the person is tagged in"""
    return service.get_person_memories(person_id, user_data["id"])
