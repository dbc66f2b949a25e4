# Supabase tables: user_networks, pending_invitations
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

user_networks (a user's personal contacts):
- id: uuid (primary key)
- owner_id: uuid (references users.id)
- person_name: text (not null)
- person_email: text (nullable, lowercase)
- person_phone: text (nullable, E.164)
- relationship: text (nullable)
- notes: text (nullable)
- photo_url: text (nullable)
- person_user_id: uuid (nullable, references users.id once the person has an account)
- pending_chapter_invitations: uuid[] (chapters to grant when the person accepts)
- invitation_status: text (nullable: sent | accepted)
- invited_at: timestamp (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

pending_invitations:
- id: uuid (primary key)
- inviter_id: uuid (references users.id)
- person_id: uuid (references user_networks.id, nullable)
- invitee_email: text (nullable)
- invitee_phone: text (nullable)
- invite_code: text (unique, 8 chars)
- invited_chapters: uuid[]
- relationship: text (nullable)
- status: text (pending | accepted | expired | cancelled)
- expires_at: timestamp
- accepted_at: timestamp (nullable)
- accepted_by_user_id: uuid (nullable)
- created_at: timestamp (default: now())
"""

INVITE_METHODS = ("email", "sms", "both")

INVITATION_PENDING = "pending"
INVITATION_ACCEPTED = "accepted"
INVITATION_EXPIRED = "expired"
INVITATION_CANCELLED = "cancelled"
