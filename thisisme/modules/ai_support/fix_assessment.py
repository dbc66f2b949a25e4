"""Scoring of AI generated fix plans before anyone decides to apply them."""

import json
from typing import Any, Dict

SAFE_PATTERNS = ("sorting", "display order", "css styling", "text changes")
RISK_PATTERNS = ("database", "authentication", "payment", "security")


def _plan_text(fix_plan: Dict[str, Any]) -> str:
    return json.dumps(fix_plan, default=str).lower()


def calculate_confidence(fix_plan: Dict[str, Any]) -> int:
    """Completeness score out of 100 based on which plan sections are present."""
    score = 0
    if fix_plan.get("DIAGNOSIS"):
        score += 20
    if fix_plan.get("CODE_CHANGES"):
        score += 30
    if fix_plan.get("TESTING_APPROACH"):
        score += 20
    if fix_plan.get("FILES_MODIFIED"):
        score += 15
    if fix_plan.get("ROLLBACK_PLAN"):
        score += 15
    return min(score, 100)


def should_auto_apply(fix_plan: Dict[str, Any]) -> bool:
    text = _plan_text(fix_plan)
    has_safe = any(pattern in text for pattern in SAFE_PATTERNS)
    has_risk = any(pattern in text for pattern in RISK_PATTERNS)
    return has_safe and not has_risk


def assess_risk(fix_plan: Dict[str, Any]) -> str:
    text = _plan_text(fix_plan)
    files = fix_plan.get("FILES_MODIFIED") or []
    if "database" in text or "auth" in text:
        return "high"
    if len(files) > 3:
        return "medium"
    return "low"


def recommend_auto_merge(review: Dict[str, Any]) -> bool:
    score = review.get("overallScore") or 0
    try:
        score = float(score)
    except (TypeError, ValueError):
        score = 0
    return bool(review.get("approved")) and score >= 8 and review.get("riskLevel") == "low"
