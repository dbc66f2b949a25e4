"""
AI ticket-to-PR pipeline.

analyze_issue -> generate_fix -> create_fix_pr -> validate_ticket, with the
merge webhook (github module) closing the loop. Each step is a separate
request and stores its result, so a failed step can simply be re-run.
"""

from supabase import Client
from fastapi import HTTPException
from datetime import datetime, timezone
from typing import Callable, List, Dict, Any, Optional
from thisisme.clients.claude_client import ClaudeClient, FALLBACK_ANALYSIS
from thisisme.clients.github_client import GitHubClient
from thisisme.config import settings
from thisisme.core.exceptions import ExternalServiceError
from thisisme.modules.ai_support.fix_assessment import (
    calculate_confidence, should_auto_apply, assess_risk, recommend_auto_merge
)
from thisisme.modules.ai_support.models import (
    AI_FIX_PR_TITLE_PREFIX, COMMON_PATHS, FIX_STATUS_PENDING_REVIEW, FIX_STATUS_NEEDS_ATTENTION,
    FIX_STATUS_DEPLOYED
)
from thisisme.modules.ai_support.schemas import (
    AnalyzeIssueResponse, GenerateFixResponse, FixRecommendations, AppliedChange,
    CreateFixPRResponse, ValidateTicketRequest, AIStatsResponse, AIAnalysesResponse
)
from thisisme.modules.support.schemas import TicketResponse
from thisisme.modules.support.service import SupportService
from thisisme.modules.support.types import TicketAction, TicketStatus
import logging
import time

logger = logging.getLogger(__name__)

GitHubFactory = Callable[[str, str], GitHubClient]


def normalize_change_path(path: str) -> str:
    """Suggested changes sometimes name a bare component file; those live under components/."""
    path = path.strip().lstrip("/")
    if "/" not in path and path.endswith(".tsx"):
        return f"components/{path}"
    return path


def build_branch_name(ticket_id: str) -> str:
    return f"ai-fix-{ticket_id[:8]}-{int(time.time() * 1000)}"


def build_pr_body(ticket: Dict[str, Any], analysis: Dict[str, Any], review: Dict[str, Any], changes: List[AppliedChange]) -> str:
    data = analysis.get("analysis_data") or {}
    risk = review.get("riskLevel") or "unknown"
    applied = "\n".join(f"- `{c.file}`: {c.status}" + (f" ({c.detail})" if c.detail else "") for c in changes)
    suggestions = "\n".join(f"- {s}" for s in review.get("suggestions") or []) or "- None"
    return (
        "## 🤖 AI-Generated Fix\n\n"
        "### 🛡️ Safety Validation\n"
        f"- **Code Review Score:** {review.get('overallScore', 'N/A')}/10\n"
        f"- **Risk Level:** {risk}\n"
        f"- **Security Issues:** {len(review.get('securityIssues') or [])} found\n"
        f"- **Performance Issues:** {len(review.get('performanceIssues') or [])} found\n"
        f"- **AI Approved:** {'Yes' if review.get('approved') else 'No'}\n\n"
        "### Issue\n"
        f"**Ticket ID:** {ticket['id']}\n"
        f"**Title:** {ticket['title']}\n"
        f"**Description:** {ticket.get('description', '')}\n\n"
        "### Analysis\n"
        f"- **Root Cause:** {data.get('rootCause', 'Unknown')}\n"
        f"- **Complexity:** {data.get('complexity', 'N/A')}/10\n"
        f"- **Confidence:** {data.get('confidence', 'N/A')}%\n"
        f"- **Auto-Fixable:** {'Yes' if data.get('isAutoFixable') else 'No'}\n\n"
        "### Changes Applied\n"
        f"{applied}\n\n"
        "### 💡 AI Suggestions\n"
        f"{suggestions}\n\n"
        "### Testing Required\n"
        "- [ ] Verify the reported issue is fixed\n"
        "- [ ] Check for regressions in related views\n"
    )


class AISupportService:
    def __init__(self, supabase: Client, claude: Optional[ClaudeClient], github_factory: GitHubFactory):
        self.supabase = supabase
        self.claude = claude
        self.github_factory = github_factory
        self.support = SupportService(supabase)

    def _get_github(self, user_id: str, repository: Optional[str] = None) -> GitHubClient:
        result = self.supabase.table("github_connections")\
            .select("access_token")\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        if not result.data or not result.data[0].get("access_token"):
            raise HTTPException(status_code=400, detail="GitHub not connected")
        repo = repository or settings.github_repository
        if not repo.strip("/"):
            raise HTTPException(status_code=400, detail="No GitHub repository configured")
        return self.github_factory(result.data[0]["access_token"], repo)

    def _latest_analysis(self, ticket_id: str) -> Optional[Dict[str, Any]]:
        result = self.supabase.table("ai_analyses")\
            .select("*")\
            .eq("ticket_id", ticket_id)\
            .order("analyzed_at", desc=True)\
            .limit(1)\
            .execute()
        return result.data[0] if result.data else None

    def _collect_files(self, github: GitHubClient, query: str) -> List[Dict[str, str]]:
        try:
            paths = github.search_code(query, limit=3)
        except ExternalServiceError as e:
            logger.warning(f"Code search failed, trying common paths: {e}")
            paths = []
        files = [f for f in (github.get_file_content(p) for p in paths) if f]
        if not files:
            for path in COMMON_PATHS:
                found = github.get_file_content(path)
                if found:
                    files.append(found)
        return files

    def analyze_issue(self, ticket_id: str, user_id: str, repository: Optional[str] = None) -> AnalyzeIssueResponse:
        ticket = self.support.get_ticket_row(ticket_id)
        github = self._get_github(user_id, repository)
        files = self._collect_files(github, ticket["title"])
        if files:
            issue = f"{ticket['title']}\n\n{ticket.get('description', '')}"
            analysis = self.claude.analyze_code(issue, files)
        else:
            analysis = dict(FALLBACK_ANALYSIS)
            analysis["rootCause"] = "Unable to locate specific code files. Manual investigation required."
        files_analyzed = [f["path"] for f in files]
        try:
            stored = self.supabase.table("ai_analyses").insert({
                "ticket_id": ticket_id,
                "repository": github.repository,
                "files_analyzed": files_analyzed,
                "analysis_data": analysis,
                "confidence_score": analysis.get("confidence"),
                "complexity_score": analysis.get("complexity"),
                "is_auto_fixable": bool(analysis.get("isAutoFixable")),
                "analyzed_at": datetime.now(timezone.utc).isoformat(),
                "analyzed_by": user_id,
            }).execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        logger.info(f"Ticket {ticket_id} analyzed ({len(files_analyzed)} files, confidence {analysis.get('confidence')})")
        return AnalyzeIssueResponse(
            analysis_id=stored.data[0]["id"] if stored.data else None,
            analysis=analysis,
            files_analyzed=files_analyzed,
        )

    def generate_fix(self, ticket_id: str, user_id: str) -> GenerateFixResponse:
        ticket = self.support.get_ticket_row(ticket_id)
        analysis = self._latest_analysis(ticket_id)
        files: List[Dict[str, str]] = []
        if analysis and analysis.get("files_analyzed"):
            try:
                github = self._get_github(user_id, analysis.get("repository"))
                files = [f for f in (github.get_file_content(p) for p in analysis["files_analyzed"]) if f]
            except HTTPException:
                logger.info(f"Generating fix plan for {ticket_id} without code context")
        try:
            fix_plan = self.claude.generate_fix_plan(ticket, (analysis or {}).get("analysis_data") or {}, files)
        except ExternalServiceError as e:
            raise HTTPException(status_code=502, detail=f"Failed to generate fix: {e.message}")
        stored = self.supabase.table("ai_generated_fixes").insert({
            "ticket_id": ticket_id,
            "fix_plan": fix_plan,
            "code_context_files": [f["path"] for f in files],
            "model_used": self.claude.model,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "generated_by": user_id,
            "status": FIX_STATUS_PENDING_REVIEW,
        }).execute()
        auto_apply = should_auto_apply(fix_plan)
        return GenerateFixResponse(
            fix_id=stored.data[0]["id"] if stored.data else None,
            fix_plan=fix_plan,
            confidence=calculate_confidence(fix_plan),
            recommendations=FixRecommendations(
                auto_applyable=auto_apply,
                requires_human_review=not auto_apply,
                estimated_risk=assess_risk(fix_plan),
            ),
        )

    def _apply_changes(self, github: GitHubClient, analysis: Dict[str, Any], branch: str) -> List[AppliedChange]:
        analysis_data = analysis.get("analysis_data") or {}
        code_changes = (analysis_data.get("suggestedFix") or {}).get("codeChanges") or []
        results = []
        for change in code_changes:
            if not change.get("file"):
                continue
            path = normalize_change_path(change["file"])
            description = change.get("description") or change.get("explanation") or "Apply AI-suggested fix"
            current = github.get_file_content(path, ref=branch)
            if not current:
                results.append(AppliedChange(file=path, status="skipped", detail="file not found"))
                continue
            try:
                fix = self.claude.generate_fix(analysis_data, current["content"], path, description)
                fixed_code = fix.get("fixedCode")
                if not fixed_code or fixed_code == current["content"]:
                    results.append(AppliedChange(file=path, status="skipped", detail="no change produced"))
                    continue
                github.update_file(path, fixed_code, f"fix: {description}", branch, current["sha"])
                results.append(AppliedChange(file=path, status="applied", detail=description))
            except ExternalServiceError as e:
                logger.error(f"Failed to apply change to {path}: {e}")
                results.append(AppliedChange(file=path, status="failed", detail=e.message))
        return results

    def create_fix_pr(self, ticket_id: str, user_id: str) -> CreateFixPRResponse:
        ticket = self.support.get_ticket_row(ticket_id)
        analysis = self._latest_analysis(ticket_id)
        if not analysis:
            raise HTTPException(status_code=404, detail="No analysis found for this ticket. Run analysis first.")
        github = self._get_github(user_id, analysis.get("repository"))
        branch = build_branch_name(ticket_id)
        try:
            github.create_branch(branch, settings.github_base_branch)
        except ExternalServiceError as e:
            raise HTTPException(status_code=502, detail=e.message)

        changes = self._apply_changes(github, analysis, branch)
        applied = [c for c in changes if c.status == "applied"]
        if not applied:
            raise HTTPException(status_code=422, detail="No changes could be applied")

        title = f"{AI_FIX_PR_TITLE_PREFIX} {ticket['title']}"
        review = self.claude.review_pull_request(
            title,
            f"Fixing: {(analysis.get('analysis_data') or {}).get('rootCause', '')}",
            [{"filename": c.file, "changes": c.detail or "", "additions": 1, "deletions": 0} for c in applied],
        )
        try:
            pr = github.create_pull_request(title, build_pr_body(ticket, analysis, review, changes), branch, settings.github_base_branch)
        except ExternalServiceError as e:
            raise HTTPException(status_code=502, detail=e.message)

        fix_status = FIX_STATUS_PENDING_REVIEW if review.get("approved") else FIX_STATUS_NEEDS_ATTENTION
        self.supabase.table("ai_fixes").insert({
            "ticket_id": ticket_id,
            "analysis_id": analysis.get("id"),
            "branch_name": branch,
            "pr_number": pr["number"],
            "pr_url": pr["url"],
            "changes_applied": [c.model_dump() for c in changes],
            "review": review,
            "status": fix_status,
            "created_by": user_id,
        }).execute()

        metadata = {**(ticket.get("metadata") or {}), "ai_pr_url": pr["url"], "ai_pr_number": pr["number"]}
        self.support.update_ticket_fields(ticket_id, {"status": TicketStatus.IN_PROGRESS.value, "metadata": metadata})
        if ticket.get("status") != TicketStatus.IN_PROGRESS.value:
            self.support.log_history(ticket_id, user_id, TicketAction.STATUS_CHANGE, ticket.get("status"), TicketStatus.IN_PROGRESS.value)
        logger.info(f"Opened PR #{pr['number']} for ticket {ticket_id} ({fix_status})")
        return CreateFixPRResponse(
            pr_number=pr["number"],
            pr_url=pr["url"],
            branch_name=branch,
            changes=changes,
            review=review,
            fix_status=fix_status,
            auto_merge_recommended=recommend_auto_merge(review),
        )

    def validate_ticket(self, ticket_id: str, validation: ValidateTicketRequest, user_id: str) -> TicketResponse:
        """Record a manual validation of an AI fix; resolves the ticket when it passed and a PR exists"""
        ticket = self.support.get_ticket_row(ticket_id)
        now = datetime.now(timezone.utc).isoformat()
        metadata = {
            **(ticket.get("metadata") or {}),
            "validation_passed": validation.validation_passed,
            "validation_notes": validation.validation_notes,
            "validated_at": now,
            "validated_by": user_id,
        }
        if validation.pr_url:
            metadata["ai_pr_url"] = validation.pr_url
        if validation.pr_number is not None:
            metadata["ai_pr_number"] = validation.pr_number
        update_data: Dict[str, Any] = {"metadata": metadata}
        resolve = validation.validation_passed and bool(metadata.get("ai_pr_url"))
        if resolve:
            update_data["status"] = TicketStatus.RESOLVED.value
            update_data["resolved_at"] = now
        updated = self.support.update_ticket_fields(ticket_id, update_data)
        if resolve and ticket.get("status") != TicketStatus.RESOLVED.value:
            self.support.log_history(ticket_id, user_id, TicketAction.STATUS_CHANGE, ticket.get("status"), TicketStatus.RESOLVED.value)

        if validation.validation_passed:
            content = "✅ Fix validated"
        else:
            content = "❌ Fix validation failed"
        if validation.validation_notes:
            content += f": {validation.validation_notes}"
        self.support.add_comment_record(ticket_id, None, content, is_internal=True)
        logger.info(f"Ticket {ticket_id} validation recorded (passed={validation.validation_passed})")
        return TicketResponse(**updated)

    def get_ai_stats(self) -> AIStatsResponse:
        try:
            analyses = self.supabase.table("ai_analyses")\
                .select("id, confidence_score, is_auto_fixable")\
                .execute().data or []
            generated = self.supabase.table("ai_generated_fixes")\
                .select("id")\
                .execute().data or []
            fixes = self.supabase.table("ai_fixes")\
                .select("id, status")\
                .execute().data or []
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        scores = [a["confidence_score"] for a in analyses if a.get("confidence_score") is not None]
        statuses = [f.get("status") for f in fixes]
        return AIStatsResponse(
            total_analyses=len(analyses),
            total_fixes_generated=len(generated),
            pull_requests_opened=len(fixes),
            fixes_pending_review=statuses.count(FIX_STATUS_PENDING_REVIEW),
            fixes_needing_attention=statuses.count(FIX_STATUS_NEEDS_ATTENTION),
            fixes_deployed=statuses.count(FIX_STATUS_DEPLOYED),
            auto_fixable_analyses=sum(1 for a in analyses if a.get("is_auto_fixable")),
            avg_confidence=round(sum(scores) / len(scores), 1) if scores else None,
        )

    def list_analyses(self, limit: int = 50) -> AIAnalysesResponse:
        """Most recent analyses and opened fix PRs, newest first"""
        try:
            analyses = self.supabase.table("ai_analyses")\
                .select("*")\
                .order("analyzed_at", desc=True)\
                .limit(limit)\
                .execute()
            fixes = self.supabase.table("ai_fixes")\
                .select("*")\
                .order("created_at", desc=True)\
                .limit(limit)\
                .execute()
            return AIAnalysesResponse(analyses=analyses.data or [], fixes=fixes.data or [])
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
