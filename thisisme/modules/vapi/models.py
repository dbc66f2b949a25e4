# Supabase table: vapi_sessions
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in sessions.py

"""
Expected Supabase table structure:

vapi_sessions:
- id: uuid (primary key)
- session_id: text (unique) - opaque id handed to the voice client
- user_id: uuid (references users.id)
- user_data: jsonb (email, name, birthYear, currentAge)
- expires_at: timestamp
- created_at: timestamp (default: now())
"""

TOOL_SAVE_MEMORY = "save-memory"
TOOL_SEARCH_MEMORIES = "search-memories"
TOOL_GET_USER_CONTEXT = "get-user-context"
TOOL_UPLOAD_MEDIA = "upload-media"
TOOL_CREATE_CHAPTER = "create-chapter"
TOOL_SAVE_BIRTH_YEAR = "save-birth-year"

UPLOAD_INSTRUCTIONS = {
    "photos": "Great! You can upload photos by visiting your memory timeline and clicking the photo icon on this memory.",
    "videos": "Perfect! You can add videos by going to your timeline and selecting this memory to add media.",
    "documents": "You can attach documents by visiting this memory in your timeline and using the attachment feature.",
}
