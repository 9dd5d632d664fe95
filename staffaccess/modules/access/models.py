# Supabase tables: user_profiles, user_role_assignments, user_staff_permissions, user_permission_overrides
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

user_profiles:
- id: uuid (primary key, references auth.users.id)
- email: text (unique, not null)
- role: text (not null) - "ADMIN", "PROVIDER" or "CLIENT"

user_role_assignments:
- user_id: uuid (primary key, references user_profiles.id)
- staff_role: text (not null) - one of the StaffRole values, e.g. "SUPPORT_LEAD"
- assigned_at: timestamp (default: now())
- assigned_by: uuid (nullable)

user_staff_permissions:
- user_id: uuid (references user_profiles.id)
- permission_code: text (not null) - e.g. "cms.posts.publish"
- granted_at: timestamp (default: now())
- granted_by: uuid (nullable)
- unique (user_id, permission_code)

user_permission_overrides:
- user_id: uuid (references user_profiles.id)
- permission_code: text (not null)
- allowed: boolean (not null)
- updated_at: timestamp (default: now())
- updated_by: uuid (nullable)
- unique (user_id, permission_code)

staff_role_templates (seeded from config/permissions_config.py):
- name: text (primary key) - StaffRole value
- description: text
- permissions: text[]

RPC has_permission_list(target_user_id uuid) -> text[]:
Server-side mirror of the evaluator; returns the effective permission codes
for the user. Must stay in sync with the seeded staff_role_templates.
"""
