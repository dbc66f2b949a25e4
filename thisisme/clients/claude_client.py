"""
Thin wrapper around the Anthropic Messages API used by the AI support pipeline.

Every call asks Claude for a JSON document; ``_parse_json`` tolerates the
model wrapping its answer in markdown code fences.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from anthropic import Anthropic

from thisisme.config import settings
from thisisme.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

ANALYSIS_SYSTEM_PROMPT = """You are a senior software engineer triaging a bug ticket.
Read every provided file, identify the root cause and decide whether the fix is safe to automate.

Respond ONLY with valid JSON:
{
  "rootCause": "what is wrong and where",
  "complexity": 1-10,
  "confidence": 0-100,
  "isAutoFixable": true|false,
  "affectedFiles": ["path"],
  "suggestedFix": {
    "description": "what needs to change",
    "codeChanges": [{"file": "path", "description": "change to apply"}]
  }
}"""

FIX_PLAN_SYSTEM_PROMPT = """You are a senior software engineer. You generate precise, tested fixes for bugs and consider edge cases.

Respond ONLY with valid JSON containing the complete fix plan:
{
  "DIAGNOSIS": "exact problem identified in the code",
  "FIX_STRATEGY": "step-by-step approach",
  "CODE_CHANGES": "specific code modifications needed",
  "FILES_MODIFIED": ["path"],
  "TESTING_APPROACH": "how to verify the fix works",
  "DEPLOYMENT_NOTES": "special deployment considerations",
  "ROLLBACK_PLAN": "how to undo if issues arise"
}"""


FIX_SYSTEM_PROMPT = """You are an expert software engineer. Generate a production-ready fix based on the analysis provided.
Maintain the existing code style, keep backward compatibility and return the complete file.

Respond ONLY with valid JSON, no code fences:
{
  "fixedCode": "complete fixed file contents",
  "changes": [{"type": "add|modify|delete", "line": 0, "description": "what changed"}],
  "commitMessage": "conventional commit message",
  "prDescription": "detailed PR description"
}"""

REVIEW_SYSTEM_PROMPT = """You are a senior code reviewer. Review this pull request for security, performance and code quality.

Respond ONLY with valid JSON:
{
  "approved": true|false,
  "riskLevel": "low|medium|high",
  "securityIssues": [],
  "performanceIssues": [],
  "suggestions": [],
  "overallScore": 1-10
}"""

FALLBACK_ANALYSIS = {
    "rootCause": "Automated analysis unavailable",
    "complexity": 8,
    "confidence": 20,
    "isAutoFixable": False,
    "suggestedFix": {"description": "Manual investigation required", "codeChanges": []},
}


def _parse_json(text: str) -> Dict[str, Any]:
    text = text.strip()
    fenced = re.search(r"```(?:json)?\s*(\{[\s\S]*\})\s*```", text)
    if fenced:
        text = fenced.group(1)
    else:
        braces = re.search(r"(\{[\s\S]*\})", text)
        if braces:
            text = braces.group(1)
    return json.loads(text)


class ClaudeClient:
    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.client = Anthropic(api_key=api_key or settings.anthropic_api_key)
        self.model = model or settings.claude_model

    def _complete(self, system: str, prompt: str, max_tokens: int = 4000, temperature: float = 0) -> str:
        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            logger.error(f"Claude request failed: {e}")
            raise ExternalServiceError("anthropic", str(e))
        return "".join(block.text for block in message.content if getattr(block, "type", "text") == "text")

    def analyze_code(self, issue: str, files: List[Dict[str, str]]) -> Dict[str, Any]:
        """Analyze an issue against the given files ({"path", "content"}). Falls back to FALLBACK_ANALYSIS."""
        code = "\n\n".join(f"File: {f['path']}\n```\n{f['content']}\n```" for f in files) or "No specific code provided"
        try:
            text = self._complete(ANALYSIS_SYSTEM_PROMPT, f"Issue:\n{issue}\n\nCode:\n{code}", max_tokens=8000)
            return _parse_json(text)
        except (ExternalServiceError, ValueError) as e:
            logger.warning(f"Claude analysis unusable, using fallback: {e}")
            return dict(FALLBACK_ANALYSIS)

    def generate_fix_plan(self, ticket: Dict[str, Any], analysis: Dict[str, Any], files: List[Dict[str, str]]) -> Dict[str, Any]:
        prompt = (
            f"Ticket: {ticket.get('title')}\n"
            f"Description: {ticket.get('description')}\n"
            f"Category: {ticket.get('category')}  Priority: {ticket.get('priority')}\n\n"
            f"Analysis:\n{json.dumps(analysis, indent=2)}"
            + "".join(f"\n\nFILE: {f['path']}\n```\n{f['content']}\n```" for f in files)
        )
        text = self._complete(FIX_PLAN_SYSTEM_PROMPT, prompt, max_tokens=4000, temperature=0.2)
        try:
            return _parse_json(text)
        except ValueError:
            raise ExternalServiceError("anthropic", "Fix plan was not valid JSON")

    def generate_fix(self, analysis: Dict[str, Any], original_code: str, file_name: str, change: str = "") -> Dict[str, Any]:
        """Return {"fixedCode", ...}. On unparseable output the original code is returned unchanged."""
        prompt = (
            f"Analysis: {json.dumps(analysis, indent=2)}\n\n"
            f"Requested change: {change}\n\n"
            f"File: {file_name}\n```\n{original_code}\n```"
        )
        text = self._complete(FIX_SYSTEM_PROMPT, prompt, max_tokens=8000)
        try:
            return _parse_json(text)
        except ValueError:
            logger.error(f"Failed to parse fix for {file_name}")
            return {"fixedCode": original_code, "changes": [], "error": "Failed to parse AI response"}

    def review_pull_request(self, title: str, description: str, files: List[Dict[str, Any]]) -> Dict[str, Any]:
        changed = "\n---\n".join(
            f"File: {f['filename']}\nAdditions: {f.get('additions', 0)}\nDeletions: {f.get('deletions', 0)}\nChanges:\n{f.get('changes', '')}"
            for f in files
        )
        try:
            text = self._complete(REVIEW_SYSTEM_PROMPT, f"PR Title: {title}\nPR Description: {description}\n\nFiles Changed:\n{changed}", max_tokens=2000)
            return _parse_json(text)
        except (ExternalServiceError, ValueError):
            return {"approved": False, "riskLevel": "high", "overallScore": 0, "error": "Review failed"}
