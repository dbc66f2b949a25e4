# Supabase tables: timezones, timezone_members
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

timezones (chapters):
- id: uuid (primary key)
- title: text (not null)
- description: text (nullable)
- type: text (PRIVATE | GROUP)
- invite_code: text (nullable, unique) - only for GROUP chapters
- start_date: date (nullable)
- end_date: date (nullable)
- location: text (nullable)
- creator_id: uuid (references users.id)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

timezone_members:
- id: uuid (primary key)
- timezone_id: uuid (references timezones.id, on delete cascade)
- user_id: uuid (references users.id)
- role: text (CREATOR | MEMBER | collaborator)
- joined_at: timestamp (default: now())
- unique(timezone_id, user_id)
"""

CHAPTER_TYPE_PRIVATE = "PRIVATE"
CHAPTER_TYPE_GROUP = "GROUP"

ROLE_CREATOR = "CREATOR"
ROLE_MEMBER = "MEMBER"
ROLE_COLLABORATOR = "collaborator"

DEFAULT_CHAPTER_TITLE = "My Personal Memories"
DEFAULT_CHAPTER_DESCRIPTION = "Your private collection of memories"
