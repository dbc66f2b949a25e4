# Supabase tables: tickets, ticket_comments, ticket_history, ticket_notifications
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

tickets:
- id: uuid (primary key)
- title: text (not null, <= 200)
- description: text (not null, 10..5000)
- status: text (open | in_progress | review | resolved | closed), default open
- stage: text (backlog | todo | doing | testing | done), default backlog
- priority: text (low | medium | high | critical), default medium
- category: text (bug | feature | question | improvement | security | performance | monitoring | testing)
- creator_id: uuid (references users.id)
- assignee_id: uuid (nullable, references users.id)
- metadata: jsonb (default {}) - ai_pr_url, ai_pr_number, validation results
- resolved_at: timestamp (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

ticket_comments:
- id: uuid (primary key)
- ticket_id: uuid (references tickets.id, on delete cascade)
- user_id: uuid (nullable for system comments)
- content: text
- is_internal: boolean (default false) - hidden from non-admins
- created_at: timestamp (default: now())

ticket_history:
- id: uuid (primary key)
- ticket_id: uuid (references tickets.id, on delete cascade)
- user_id: uuid (nullable)
- action: text (status_change | assignment | priority_change | stage_move | created | commented)
- old_value: text (nullable)
- new_value: text (nullable)
- created_at: timestamp (default: now())

ticket_notifications:
- id: uuid (primary key)
- ticket_id: uuid (references tickets.id, on delete cascade)
- user_id: uuid (recipient)
- type: text (commented)
- message: text
- read: boolean (default false)
- email_sent: boolean (default false)
- created_at: timestamp (default: now())
"""

NOTIFICATION_COMMENTED = "commented"
NOTIFICATION_LIST_LIMIT = 50
