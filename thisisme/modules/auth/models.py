# Supabase table: users
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Authentication is handled in-app (bcrypt password hash + HS256 JWT), not by Supabase Auth

"""
Expected Supabase table structure:

users:
- id: uuid (primary key, default gen_random_uuid())
- email: text (unique, not null, lowercase)
- password_hash: text (not null, bcrypt)
- full_name: text (nullable)
- phone: text (nullable, E.164)
- birth_year: integer (nullable)
- is_admin: boolean (default false)
- is_premium: boolean (default false)
- stripe_customer_id: text (nullable)
- premium_since: timestamp (nullable)
- subscription_tier: text (free | premium, default: free)
- subscription_expires_at: timestamp (nullable)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)
"""

MIN_BIRTH_YEAR = 1900

# Columns safe to return to clients
PUBLIC_USER_COLUMNS = "id, email, full_name, phone, birth_year, is_admin, is_premium, created_at, updated_at"
