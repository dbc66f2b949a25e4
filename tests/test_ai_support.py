from unittest.mock import MagicMock

import pytest

from thisisme.clients.claude_client import FALLBACK_ANALYSIS, ClaudeClient, _parse_json
from thisisme.core.exceptions import ExternalServiceError
from thisisme.modules.ai_support.fix_assessment import (
    assess_risk,
    calculate_confidence,
    recommend_auto_merge,
    should_auto_apply,
)
from thisisme.modules.ai_support.service import build_branch_name, build_pr_body, normalize_change_path
from thisisme.modules.ai_support.schemas import AppliedChange
from tests.conftest import auth_headers

FULL_PLAN = {
    "DIAGNOSIS": "Sort comparator ignores year",
    "FIX_STRATEGY": "Compare full dates",
    "CODE_CHANGES": "Fix sorting in the timeline view",
    "FILES_MODIFIED": ["components/Timeline.tsx"],
    "TESTING_APPROACH": "Check display order",
    "DEPLOYMENT_NOTES": "None",
    "ROLLBACK_PLAN": "Revert the commit",
}


@pytest.fixture
def admin(db, make_user):
    user = make_user("admin@example.com", is_admin=True)
    db.seed("github_connections", user_id=user["id"], access_token="gho_token", github_username="octo")
    return user


@pytest.fixture
def ticket(db, admin):
    return db.seed(
        "tickets",
        id="3f1c2a9e-8b7d-4c6e-9a5f-1b2c3d4e5f60",
        title="Timeline out of order",
        description="Memories from 1999 show after 2005",
        status="open",
        stage="backlog",
        priority="high",
        category="bug",
        creator_id=admin["id"],
        metadata={},
    )


def test_calculate_confidence():
    assert calculate_confidence(FULL_PLAN) == 100
    assert calculate_confidence({"DIAGNOSIS": "x", "CODE_CHANGES": "y"}) == 50
    assert calculate_confidence({}) == 0


def test_should_auto_apply_needs_safe_and_no_risky_patterns():
    assert should_auto_apply(FULL_PLAN)
    assert not should_auto_apply({**FULL_PLAN, "DEPLOYMENT_NOTES": "Requires a database migration"})
    assert not should_auto_apply({"DIAGNOSIS": "Crash on save"})


def test_assess_risk():
    assert assess_risk(FULL_PLAN) == "low"
    assert assess_risk({**FULL_PLAN, "DIAGNOSIS": "auth token not refreshed"}) == "high"
    assert assess_risk({"FILES_MODIFIED": ["a", "b", "c", "d"]}) == "medium"


def test_recommend_auto_merge():
    assert recommend_auto_merge({"approved": True, "overallScore": 8, "riskLevel": "low"})
    assert not recommend_auto_merge({"approved": True, "overallScore": 7, "riskLevel": "low"})
    assert not recommend_auto_merge({"approved": True, "overallScore": "n/a", "riskLevel": "low"})
    assert not recommend_auto_merge({"approved": False, "overallScore": 10, "riskLevel": "low"})


def test_pipeline_helpers():
    assert normalize_change_path("Timeline.tsx") == "components/Timeline.tsx"
    assert normalize_change_path("/app/page.tsx") == "app/page.tsx"
    assert build_branch_name("3f1c2a9e-rest").startswith("ai-fix-3f1c2a9e-")
    body = build_pr_body(
        {"id": "abc", "title": "T", "description": "D"},
        {"analysis_data": {"rootCause": "bad sort", "complexity": 2}},
        {"overallScore": 9, "riskLevel": "low", "approved": True},
        [AppliedChange(file="components/Timeline.tsx", status="applied")],
    )
    assert "**Ticket ID:** abc" in body
    assert "bad sort" in body


def test_parse_json_handles_fences_and_prose():
    assert _parse_json('```json\n{"a": 1}\n```') == {"a": 1}
    assert _parse_json('Here you go: {"a": 2} hope it helps') == {"a": 2}
    with pytest.raises(ValueError):
        _parse_json("no json here")


def test_claude_client_falls_back_when_request_fails():
    client = ClaudeClient(api_key="test-key", model="claude-test")
    client.client = MagicMock()
    client.client.messages.create.side_effect = RuntimeError("overloaded")
    assert client.analyze_code("issue", []) == FALLBACK_ANALYSIS
    with pytest.raises(ExternalServiceError):
        client.generate_fix_plan({"title": "t"}, {}, [])
    assert client.review_pull_request("t", "d", [])["approved"] is False


def test_claude_client_keeps_original_code_on_bad_fix_output():
    client = ClaudeClient(api_key="test-key", model="claude-test")
    client.client = MagicMock()
    client.client.messages.create.return_value = MagicMock(content=[MagicMock(type="text", text="sorry")])
    assert client.generate_fix({}, "const a = 1", "a.ts")["fixedCode"] == "const a = 1"


def test_analyze_issue_stores_analysis(client, db, claude, github, admin, ticket):
    github.search_code.return_value = ["components/Timeline.tsx"]
    github.get_file_content.return_value = {"path": "components/Timeline.tsx", "content": "code", "sha": "s1"}
    claude.analyze_code.return_value = {"rootCause": "bad sort", "confidence": 85, "complexity": 3, "isAutoFixable": True}

    response = client.post(
        "/api/v1/admin/support/ai-analysis",
        json={"ticket_id": ticket["id"], "repository": "acme/thisisme"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    assert response.json()["files_analyzed"] == ["components/Timeline.tsx"]
    stored = db.rows("ai_analyses")[0]
    assert stored["confidence_score"] == 85
    assert stored["is_auto_fixable"] is True


def test_analyze_issue_requires_github_connection(client, db, make_user, ticket):
    other_admin = make_user("second@example.com", is_admin=True)
    response = client.post(
        "/api/v1/admin/support/ai-analysis", json={"ticket_id": ticket["id"]}, headers=auth_headers(other_admin)
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "GitHub not connected"


def test_generate_fix_scores_plan(client, db, claude, admin, ticket):
    claude.generate_fix_plan.return_value = FULL_PLAN
    response = client.post("/api/v1/admin/support/generate-fix", json={"ticket_id": ticket["id"]}, headers=auth_headers(admin))
    assert response.status_code == 200
    body = response.json()
    assert body["confidence"] == 100
    assert body["recommendations"] == {"auto_applyable": True, "requires_human_review": False, "estimated_risk": "low"}
    assert db.rows("ai_generated_fixes")[0]["status"] == "pending_review"


def test_generate_fix_reports_claude_failure(client, claude, admin, ticket):
    claude.generate_fix_plan.side_effect = ExternalServiceError("anthropic", "Fix plan was not valid JSON")
    response = client.post("/api/v1/admin/support/generate-fix", json={"ticket_id": ticket["id"]}, headers=auth_headers(admin))
    assert response.status_code == 502


def test_create_fix_pr_without_analysis(client, admin, ticket):
    response = client.post("/api/v1/admin/support/create-fix-pr", json={"ticket_id": ticket["id"]}, headers=auth_headers(admin))
    assert response.status_code == 404


def test_create_fix_pr_opens_pull_request(client, db, claude, github, admin, ticket):
    db.seed(
        "ai_analyses",
        ticket_id=ticket["id"],
        repository="acme/thisisme",
        files_analyzed=["components/Timeline.tsx"],
        analysis_data={
            "rootCause": "bad sort",
            "suggestedFix": {"codeChanges": [{"file": "Timeline.tsx", "description": "sort by date"}]},
        },
        analyzed_at="2024-01-01T00:00:00+00:00",
    )
    github.get_file_content.return_value = {"path": "components/Timeline.tsx", "content": "old", "sha": "s1"}
    github.create_pull_request.return_value = {"number": 42, "url": "https://github.com/acme/thisisme/pull/42"}
    claude.generate_fix.return_value = {"fixedCode": "new"}
    claude.review_pull_request.return_value = {"approved": True, "overallScore": 9, "riskLevel": "low"}

    response = client.post("/api/v1/admin/support/create-fix-pr", json={"ticket_id": ticket["id"]}, headers=auth_headers(admin))
    assert response.status_code == 200
    body = response.json()
    assert body["pr_number"] == 42
    assert body["fix_status"] == "pending_review"
    assert body["auto_merge_recommended"] is True
    github.update_file.assert_called_once()
    assert github.update_file.call_args[0][:2] == ("components/Timeline.tsx", "new")
    title = github.create_pull_request.call_args[0][0]
    assert title == "🤖 AI Fix: Timeline out of order"

    stored_ticket = db.rows("tickets")[0]
    assert stored_ticket["status"] == "in_progress"
    assert stored_ticket["metadata"]["ai_pr_number"] == 42
    assert db.rows("ai_fixes")[0]["pr_number"] == 42


def test_create_fix_pr_with_nothing_applied(client, db, claude, github, admin, ticket):
    db.seed("ai_analyses", ticket_id=ticket["id"], repository="acme/thisisme", analysis_data={}, analyzed_at="2024-01-01")
    response = client.post("/api/v1/admin/support/create-fix-pr", json={"ticket_id": ticket["id"]}, headers=auth_headers(admin))
    assert response.status_code == 422
    github.create_pull_request.assert_not_called()


def test_validate_ticket_resolves_with_pr(client, db, admin, ticket):
    response = client.post(
        f"/api/v1/admin/support/tickets/{ticket['id']}/validate",
        json={"validation_passed": True, "validation_notes": "Looks right", "pr_url": "https://github.com/pr/7"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "resolved"
    comment = db.rows("ticket_comments")[0]
    assert comment["is_internal"] is True
    assert comment["content"] == "✅ Fix validated: Looks right"


def test_failed_validation_keeps_ticket_open(client, db, admin, ticket):
    response = client.post(
        f"/api/v1/admin/support/tickets/{ticket['id']}/validate",
        json={"validation_passed": False},
        headers=auth_headers(admin),
    )
    assert response.json()["status"] == "open"
    assert response.json()["metadata"]["validation_passed"] is False


def test_ai_stats_summarise_pipeline(client, db, admin, ticket):
    db.seed("ai_analyses", ticket_id=ticket["id"], confidence_score=80, is_auto_fixable=True)
    db.seed("ai_analyses", ticket_id=ticket["id"], confidence_score=65, is_auto_fixable=False)
    db.seed("ai_generated_fixes", ticket_id=ticket["id"], status="pending_review")
    db.seed("ai_fixes", ticket_id=ticket["id"], status="deployed")
    db.seed("ai_fixes", ticket_id=ticket["id"], status="needs_attention")

    response = client.get("/api/v1/admin/support/ai-stats", headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json() == {
        "total_analyses": 2,
        "total_fixes_generated": 1,
        "pull_requests_opened": 2,
        "fixes_pending_review": 0,
        "fixes_needing_attention": 1,
        "fixes_deployed": 1,
        "auto_fixable_analyses": 1,
        "avg_confidence": 72.5,
    }


def test_ai_stats_empty_and_admin_only(client, make_user, admin):
    body = client.get("/api/v1/admin/support/ai-stats", headers=auth_headers(admin)).json()
    assert body["total_analyses"] == 0
    assert body["avg_confidence"] is None

    user = make_user("user@example.com")
    assert client.get("/api/v1/admin/support/ai-stats", headers=auth_headers(user)).status_code == 403
    assert client.get("/api/v1/admin/support/analyses", headers=auth_headers(user)).status_code == 403


def test_list_analyses_newest_first(client, db, admin, ticket):
    db.seed("ai_analyses", ticket_id=ticket["id"], repository="octo/old", analyzed_at="2026-01-01T00:00:00+00:00")
    db.seed("ai_analyses", ticket_id=ticket["id"], repository="octo/new", analyzed_at="2026-03-01T00:00:00+00:00")
    db.seed("ai_fixes", ticket_id=ticket["id"], pr_number=7, created_at="2026-03-02T00:00:00+00:00")

    body = client.get("/api/v1/admin/support/analyses", headers=auth_headers(admin)).json()
    assert [a["repository"] for a in body["analyses"]] == ["octo/new", "octo/old"]
    assert body["fixes"][0]["pr_number"] == 7
