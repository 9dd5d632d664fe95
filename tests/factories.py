from datetime import datetime, timezone
from typing import List, Optional

from staffaccess.modules.access.schemas import AccessUser, PermissionOverride, StaffAccessProfile, UserRole


def iso(year=2025, month=1, day=1, hour=0) -> str:
    return datetime(year, month, day, hour, tzinfo=timezone.utc).isoformat()


def make_override(code: str, allowed: bool, user_id: str = "admin-1", updated_at: Optional[str] = None) -> PermissionOverride:
    return PermissionOverride(user_id=user_id, permission_code=code, allowed=allowed, updated_at=updated_at or iso())


def make_admin(
    user_id: str = "admin-1",
    staff_role: Optional[str] = None,
    permissions: Optional[List[str]] = None,
    overrides: Optional[List[PermissionOverride]] = None,
    with_profile: bool = True,
) -> AccessUser:
    staff_access = None
    if with_profile:
        staff_access = StaffAccessProfile(
            staff_role=staff_role,
            permissions=permissions or [],
            overrides=overrides or [],
        )
    return AccessUser(id=user_id, role=UserRole.ADMIN.value, staff_access=staff_access)
