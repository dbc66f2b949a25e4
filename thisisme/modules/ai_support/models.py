# Supabase tables: github_connections, ai_analyses, ai_generated_fixes, ai_fixes
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

github_connections:
- id: uuid (primary key)
- user_id: uuid (unique, references users.id)
- access_token: text (OAuth token)
- github_username: text
- connected_at: timestamp

ai_analyses:
- id: uuid (primary key)
- ticket_id: uuid (references tickets.id)
- repository: text ("owner/name")
- files_analyzed: text[]
- analysis_data: jsonb (rootCause, complexity, confidence, isAutoFixable, suggestedFix)
- confidence_score: integer
- complexity_score: integer
- is_auto_fixable: boolean
- analyzed_at: timestamp
- analyzed_by: uuid

ai_generated_fixes:
- id: uuid (primary key)
- ticket_id: uuid
- fix_plan: jsonb
- code_context_files: text[]
- model_used: text
- generated_at: timestamp
- generated_by: uuid
- status: text (pending_review | applied | rejected)

ai_fixes:
- id: uuid (primary key)
- ticket_id: uuid
- analysis_id: uuid
- branch_name: text
- pr_number: integer
- pr_url: text
- changes_applied: jsonb
- review: jsonb
- status: text (pending_review | needs_attention | deployed)
- created_by: uuid
- created_at: timestamp
- deployed_at: timestamp (nullable)
"""

AI_FIX_PR_TITLE_PREFIX = "🤖 AI Fix:"

FIX_STATUS_PENDING_REVIEW = "pending_review"
FIX_STATUS_NEEDS_ATTENTION = "needs_attention"
FIX_STATUS_DEPLOYED = "deployed"

# Tried in order when code search finds nothing for a ticket
COMMON_PATHS = (
    "app/components/timeline/ChronologicalTimelineView.tsx",
    "app/components/timeline/TimelineView.tsx",
    "components/Timeline.tsx",
    "src/components/Timeline.tsx",
)
