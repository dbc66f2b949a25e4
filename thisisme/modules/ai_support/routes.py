from fastapi import APIRouter, Depends, HTTPException
from thisisme.clients.claude_client import ClaudeClient
from thisisme.clients.github_client import GitHubClient
from thisisme.config import settings
from thisisme.core.dependencies import require_admin
from thisisme.database.supabase_client import get_supabase
from thisisme.modules.ai_support.schemas import (
    AnalyzeIssueRequest, AnalyzeIssueResponse, TicketRequest, GenerateFixResponse,
    CreateFixPRResponse, ValidateTicketRequest, AIStatsResponse, AIAnalysesResponse
)
from thisisme.modules.ai_support.service import AISupportService, GitHubFactory
from thisisme.modules.support.schemas import TicketResponse
from supabase import Client
from typing import Dict

router = APIRouter(prefix="/admin/support", tags=["ai-support"])


def get_claude_client() -> ClaudeClient:
    if not settings.anthropic_api_key:
        raise HTTPException(status_code=503, detail="AI service not configured")
    return ClaudeClient()


def get_github_factory() -> GitHubFactory:
    return GitHubClient


def get_ai_support_service(
    supabase: Client = Depends(get_supabase),
    claude: ClaudeClient = Depends(get_claude_client),
    github_factory: GitHubFactory = Depends(get_github_factory)
) -> AISupportService:
    return AISupportService(supabase, claude, github_factory)


def get_store_service(supabase: Client = Depends(get_supabase)) -> AISupportService:
    """Validation and reporting only read and write the database, so they work without an Anthropic key"""
    return AISupportService(supabase, None, get_github_factory())


@router.post("/ai-analysis", response_model=AnalyzeIssueResponse)
async def analyze_issue(
    request: AnalyzeIssueRequest,
    user_data: Dict = Depends(require_admin),
    service: AISupportService = Depends(get_ai_support_service)
):
    """Locate relevant code for a ticket and have Claude analyze it"""
    return service.analyze_issue(request.ticket_id, user_data["id"], request.repository)


@router.post("/generate-fix", response_model=GenerateFixResponse)
async def generate_fix(
    request: TicketRequest,
    user_data: Dict = Depends(require_admin),
    service: AISupportService = Depends(get_ai_support_service)
):
    return service.generate_fix(request.ticket_id, user_data["id"])


@router.post("/create-fix-pr", response_model=CreateFixPRResponse)
async def create_fix_pr(
    request: TicketRequest,
    user_data: Dict = Depends(require_admin),
    service: AISupportService = Depends(get_ai_support_service)
):
    """Apply the analysed fix on a new branch and open a pull request"""
    return service.create_fix_pr(request.ticket_id, user_data["id"])


@router.post("/tickets/{ticket_id}/validate", response_model=TicketResponse)
async def validate_ticket(
    ticket_id: str,
    validation: ValidateTicketRequest,
    user_data: Dict = Depends(require_admin),
    service: AISupportService = Depends(get_store_service)
):
    return service.validate_ticket(ticket_id, validation, user_data["id"])


@router.get("/ai-stats", response_model=AIStatsResponse)
async def get_ai_stats(
    user_data: Dict = Depends(require_admin),
    service: AISupportService = Depends(get_store_service)
):
    return service.get_ai_stats()


@router.get("/analyses", response_model=AIAnalysesResponse)
async def list_analyses(
    user_data: Dict = Depends(require_admin),
    service: AISupportService = Depends(get_store_service)
):
    return service.list_analyses()
