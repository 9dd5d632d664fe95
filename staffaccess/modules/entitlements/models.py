# Supabase tables: provider_profiles, provider_entitlement_overrides
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

provider_profiles:
- id: uuid (primary key)
- subscription_tier: text (nullable) - "FREE", "PROFESSIONAL" or "PREMIUM"; missing means FREE

provider_entitlement_overrides:
- provider_id: uuid (references provider_profiles.id)
- feature_code: text (not null) - e.g. "feature.analytics.advanced"
- enabled: boolean (not null)
- updated_at: timestamp (default: now())
- updated_by: uuid (nullable)
- unique (provider_id, feature_code)
"""
