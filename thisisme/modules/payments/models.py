# Supabase table: users (billing columns)
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Billing columns on the users table:

users:
- is_premium: boolean (default: false)
- stripe_customer_id: text (nullable)
- premium_since: timestamp (nullable)
- subscription_tier: text (free | premium, default: free)
- subscription_expires_at: timestamp (nullable, end of the current Stripe billing period)
"""

EVENT_CHECKOUT_COMPLETED = "checkout.session.completed"
EVENT_SUBSCRIPTION_UPDATED = "customer.subscription.updated"
EVENT_SUBSCRIPTION_DELETED = "customer.subscription.deleted"

SUBSCRIPTION_ACTIVE = "active"

TIER_FREE = "free"
TIER_PREMIUM = "premium"

# Features unlocked by an active premium subscription
PREMIUM_FEATURES = ("voice_transcription", "unlimited_memories", "advanced_search", "priority_support")
