"""
Seed Permissions and Staff Role Templates Script
This script mirrors the permission catalog and role templates from the config
into the database, so the has_permission_list RPC resolves against the same data
the API evaluates with.
Can be run manually or as part of a deploy job.
"""

import sys
import logging

from staffaccess.config.permissions_config import PERMISSION_MATRIX
from staffaccess.database.supabase_client import get_service_supabase
from supabase import Client

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def seed_permissions(supabase: Client) -> int:
    """Upsert catalog permissions and remove rows for codes no longer in the catalog"""
    logger.info("Seeding permissions...")

    permissions = PERMISSION_MATRIX["permissions"]
    supabase.table("permissions").upsert(permissions, on_conflict="name").execute()

    catalog = {perm["name"] for perm in permissions}
    existing = supabase.table("permissions").select("name").execute()
    retired = [row["name"] for row in (existing.data or []) if row["name"] not in catalog]
    if retired:
        supabase.table("permissions").delete().in_("name", retired).execute()
        logger.info(f"Removed {len(retired)} retired permissions: {', '.join(sorted(retired))}")

    logger.info(f"Permissions seeded: {len(permissions)} upserted")
    return len(permissions)


def seed_role_templates(supabase: Client) -> int:
    """Upsert staff role templates; each row carries its full permission list"""
    logger.info("Seeding staff role templates...")

    processed = 0
    for role in PERMISSION_MATRIX["roles"]:
        try:
            supabase.table("staff_role_templates").upsert({
                "name": role["name"],
                "description": role["description"],
                "permissions": role["permissions"],
            }, on_conflict="name").execute()
            processed += 1
            logger.debug(f"Seeded role template {role['name']} with {len(role['permissions'])} permissions")
        except Exception as e:
            logger.error(f"Error processing role template {role['name']}: {e}")

    logger.info(f"Staff role templates seeded: {processed} of {len(PERMISSION_MATRIX['roles'])}")
    return processed


def main():
    """Main function to seed permissions and staff role templates"""
    try:
        supabase = get_service_supabase()

        logger.info("Starting permissions and role template seeding...")

        # Permissions first; role templates reference them
        perm_count = seed_permissions(supabase)
        role_count = seed_role_templates(supabase)

        logger.info("Seeding completed successfully!")
        logger.info(f"Total: {perm_count} permissions, {role_count} role templates processed")

    except Exception as e:
        logger.error(f"Error during seeding: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
