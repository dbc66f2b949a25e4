# Supabase tables: memories, memory_tags
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

memories:
- id: uuid (primary key)
- user_id: uuid (references users.id)
- chapter_id: uuid (references timezones.id, nullable)
- title: text (nullable)
- text_content: text
- approximate_date: text (nullable) - free text such as "Summer 1998" or "Age 12 (1992)"
- date_precision: text (exact | approximate | era)
- memory_date: timestamp (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

memory_tags:
- id: uuid (primary key)
- memory_id: uuid (references memories.id, on delete cascade)
- tagged_person_id: uuid (references user_networks.id)
- created_at: timestamp (default: now())

memory_collaborations (people invited to a single memory):
- id: uuid (primary key)
- memory_id: uuid (references memories.id, on delete cascade)
- invited_by: uuid (references users.id)
- collaborator_id: uuid (nullable until the invitee has an account)
- invited_email: text (nullable, lowercase; set when the invitee had no account)
- permissions: text[] (subset of view, comment, add_text, add_images)
- status: text (pending | accepted)
- created_at: timestamp (default: now())
- responded_at: timestamp (nullable)

memory_contributions:
- id: uuid (primary key)
- memory_id: uuid (references memories.id, on delete cascade)
- contributor_id: uuid (references users.id)
- contribution_type: text (COMMENT | ADDITION | CORRECTION)
- content: text
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
"""

DATE_PRECISIONS = ("exact", "approximate", "era")

COLLABORATION_PENDING = "pending"
COLLABORATION_ACCEPTED = "accepted"

PERMISSION_VIEW = "view"
PERMISSION_COMMENT = "comment"
PERMISSION_ADD_TEXT = "add_text"
PERMISSION_ADD_IMAGES = "add_images"
OWNER_PERMISSIONS = [PERMISSION_VIEW, PERMISSION_COMMENT, PERMISSION_ADD_TEXT, PERMISSION_ADD_IMAGES]

CONTRIBUTION_TYPES = ("COMMENT", "ADDITION", "CORRECTION")
# Permission a collaborator needs for each contribution type
CONTRIBUTION_PERMISSIONS = {
    "COMMENT": PERMISSION_COMMENT,
    "ADDITION": PERMISSION_ADD_TEXT,
    "CORRECTION": PERMISSION_ADD_TEXT,
}
