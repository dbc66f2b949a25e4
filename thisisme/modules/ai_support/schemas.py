from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any


class AnalyzeIssueRequest(BaseModel):
    ticket_id: str
    repository: Optional[str] = None  # "owner/name"; defaults to the configured repository


class AnalyzeIssueResponse(BaseModel):
    success: bool = True
    analysis_id: Optional[str] = None
    analysis: Dict[str, Any]
    files_analyzed: List[str]


class TicketRequest(BaseModel):
    ticket_id: str


class FixRecommendations(BaseModel):
    auto_applyable: bool
    requires_human_review: bool
    estimated_risk: str


class GenerateFixResponse(BaseModel):
    success: bool = True
    fix_id: Optional[str] = None
    fix_plan: Dict[str, Any]
    confidence: int
    recommendations: FixRecommendations


class AppliedChange(BaseModel):
    file: str
    status: str  # applied | skipped | failed
    detail: Optional[str] = None


class CreateFixPRResponse(BaseModel):
    success: bool = True
    pr_number: int
    pr_url: str
    branch_name: str
    changes: List[AppliedChange]
    review: Dict[str, Any]
    fix_status: str
    auto_merge_recommended: bool


class ValidateTicketRequest(BaseModel):
    validation_passed: bool
    validation_notes: Optional[str] = Field(None, max_length=5000)
    pr_url: Optional[str] = None
    pr_number: Optional[int] = None


class AIStatsResponse(BaseModel):
    total_analyses: int = 0
    total_fixes_generated: int = 0
    pull_requests_opened: int = 0
    fixes_pending_review: int = 0
    fixes_needing_attention: int = 0
    fixes_deployed: int = 0
    auto_fixable_analyses: int = 0
    avg_confidence: Optional[float] = None


class AIAnalysesResponse(BaseModel):
    analyses: List[Dict[str, Any]]
    fixes: List[Dict[str, Any]]
