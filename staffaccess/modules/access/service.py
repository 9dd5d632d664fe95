import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from fastapi import HTTPException
from supabase import Client

from staffaccess.config.permissions_config import (
    is_known_permission,
    list_role_templates,
    parse_staff_role,
)
from staffaccess.modules.access.evaluator import (
    resolve_effective_permission_set,
    sorted_permissions,
)
from staffaccess.modules.access.schemas import (
    AccessUser,
    PermissionOverride,
    RoleTemplateResponse,
    StaffAccessProfile,
    StaffAccessResponse,
    UserRole,
)

logger = logging.getLogger(__name__)


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Rows written without an offset are stored as UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def dedupe_overrides(overrides: Iterable[PermissionOverride]) -> List[PermissionOverride]:
    """Keep one override per permission code: the most recently updated, later rows winning ties"""
    latest: Dict[str, PermissionOverride] = {}
    for override in overrides:
        current = latest.get(override.permission_code)
        if current is None:
            latest[override.permission_code] = override
            continue
        current_at, override_at = _as_utc(current.updated_at), _as_utc(override.updated_at)
        if current_at and override_at and override_at < current_at:
            continue
        # Re-insert so the surviving entry sits at its latest position
        del latest[override.permission_code]
        latest[override.permission_code] = override
    return list(latest.values())


class AccessService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_user_profile(self, user_id: str) -> dict:
        """Get the coarse identity record (id, email, role)"""
        try:
            result = self.supabase.table("user_profiles")\
                .select("id, email, role")\
                .eq("id", user_id)\
                .limit(1)\
                .execute()

            if not result.data:
                raise HTTPException(status_code=404, detail="User not found")

            return result.data[0]
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error loading user profile {user_id}: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    def get_user_staff_access(self, user_id: str) -> StaffAccessProfile:
        """Load role assignment, ad hoc grants and overrides for a user"""
        try:
            assignment_result = self.supabase.table("user_role_assignments")\
                .select("staff_role, assigned_at")\
                .eq("user_id", user_id)\
                .order("assigned_at", desc=True)\
                .limit(1)\
                .execute()

            grants_result = self.supabase.table("user_staff_permissions")\
                .select("permission_code")\
                .eq("user_id", user_id)\
                .execute()

            overrides_result = self.supabase.table("user_permission_overrides")\
                .select("*")\
                .eq("user_id", user_id)\
                .order("updated_at")\
                .execute()

            staff_role = assignment_result.data[0].get("staff_role") if assignment_result.data else None
            permissions = [row["permission_code"] for row in (grants_result.data or []) if row.get("permission_code")]
            overrides = [
                PermissionOverride(
                    user_id=user_id,
                    permission_code=row["permission_code"],
                    allowed=bool(row.get("allowed")),
                    updated_at=row.get("updated_at"),
                    updated_by=row.get("updated_by"),
                )
                for row in (overrides_result.data or [])
                if row.get("permission_code")
            ]

            return StaffAccessProfile(
                staff_role=staff_role or None,
                permissions=permissions,
                overrides=dedupe_overrides(overrides),
            )
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error loading staff access for user {user_id}: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    def get_access_user(self, user_id: str, email: Optional[str] = None) -> AccessUser:
        """Build the identity the evaluator works on from the server's own records"""
        profile = self.get_user_profile(user_id)
        role = profile.get("role")
        staff_access = None
        if role == UserRole.ADMIN.value:
            staff_access = self.get_user_staff_access(user_id)
        return AccessUser(
            id=user_id,
            email=profile.get("email") or email,
            role=role,
            staff_access=staff_access,
        )

    def fetch_effective_permissions(self, user_id: str) -> List[str]:
        """Server-confirmed permission list; raises when the RPC fails so callers can degrade"""
        result = self.supabase.rpc("has_permission_list", {"target_user_id": user_id}).execute()
        if not isinstance(result.data, list):
            raise ValueError(f"Unexpected has_permission_list payload for user {user_id}")
        return [code for code in result.data if isinstance(code, str)]

    def list_role_templates(self) -> List[RoleTemplateResponse]:
        return [
            RoleTemplateResponse(
                role=template.role,
                description=template.description,
                permissions=sorted_permissions(template.permissions),
            )
            for template in list_role_templates()
        ]

    def get_staff_access_response(self, user_id: str) -> StaffAccessResponse:
        user = self.get_access_user(user_id)
        staff_access = user.staff_access or StaffAccessProfile()
        return StaffAccessResponse(
            user_id=user_id,
            staff_role=staff_access.staff_role,
            permissions=staff_access.permissions,
            overrides=staff_access.overrides,
            effective_permissions=sorted_permissions(resolve_effective_permission_set(user)),
        )

    def _require_admin(self, user_id: str) -> None:
        profile = self.get_user_profile(user_id)
        if profile.get("role") != UserRole.ADMIN.value:
            raise HTTPException(status_code=400, detail="Staff access can only be managed for ADMIN users")

    @staticmethod
    def _require_known_permission(permission_code: str) -> None:
        if not is_known_permission(permission_code):
            raise HTTPException(status_code=400, detail=f"Unknown permission: {permission_code}")

    def assign_staff_role(self, user_id: str, staff_role: str, assigned_by: Optional[str] = None) -> StaffAccessProfile:
        """Assign (or replace) the staff role of an admin user"""
        role = parse_staff_role(staff_role)
        if role is None:
            raise HTTPException(status_code=400, detail=f"Unknown staff role: {staff_role}")
        self._require_admin(user_id)
        try:
            self.supabase.table("user_role_assignments").upsert({
                "user_id": user_id,
                "staff_role": role.value,
                "assigned_by": assigned_by,
                "assigned_at": _utcnow(),
            }, on_conflict="user_id").execute()
            logger.info(f"Assigned staff role {role.value} to user {user_id}")
        except Exception as e:
            logger.error(f"Error assigning staff role to user {user_id}: {e}")
            raise HTTPException(status_code=500, detail=str(e))
        return self.get_user_staff_access(user_id)

    def clear_staff_role(self, user_id: str) -> bool:
        try:
            result = self.supabase.table("user_role_assignments")\
                .delete()\
                .eq("user_id", user_id)\
                .execute()
            return len(result.data or []) > 0
        except Exception as e:
            logger.error(f"Error clearing staff role for user {user_id}: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    def grant_permission(self, user_id: str, permission_code: str, granted_by: Optional[str] = None) -> StaffAccessProfile:
        """Add an ad hoc permission outside of any role template"""
        self._require_known_permission(permission_code)
        self._require_admin(user_id)
        try:
            self.supabase.table("user_staff_permissions").upsert({
                "user_id": user_id,
                "permission_code": permission_code,
                "granted_by": granted_by,
                "granted_at": _utcnow(),
            }, on_conflict="user_id,permission_code").execute()
        except Exception as e:
            logger.error(f"Error granting {permission_code} to user {user_id}: {e}")
            raise HTTPException(status_code=500, detail=str(e))
        return self.get_user_staff_access(user_id)

    def revoke_permission(self, user_id: str, permission_code: str) -> bool:
        try:
            result = self.supabase.table("user_staff_permissions")\
                .delete()\
                .eq("user_id", user_id)\
                .eq("permission_code", permission_code)\
                .execute()
            return len(result.data or []) > 0
        except Exception as e:
            logger.error(f"Error revoking {permission_code} from user {user_id}: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    def set_permission_override(
        self,
        user_id: str,
        permission_code: str,
        allowed: bool,
        updated_by: Optional[str] = None
    ) -> PermissionOverride:
        """Upsert the single override for (user, permission)"""
        self._require_known_permission(permission_code)
        self._require_admin(user_id)
        try:
            result = self.supabase.table("user_permission_overrides").upsert({
                "user_id": user_id,
                "permission_code": permission_code,
                "allowed": allowed,
                "updated_by": updated_by,
                "updated_at": _utcnow(),
            }, on_conflict="user_id,permission_code").execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to save permission override")

            logger.info(f"Permission override {permission_code}={allowed} set for user {user_id}")
            return PermissionOverride(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error saving override {permission_code} for user {user_id}: {e}")
            raise HTTPException(status_code=500, detail=str(e))

    def remove_permission_override(self, user_id: str, permission_code: str) -> bool:
        try:
            result = self.supabase.table("user_permission_overrides")\
                .delete()\
                .eq("user_id", user_id)\
                .eq("permission_code", permission_code)\
                .execute()
            return len(result.data or []) > 0
        except Exception as e:
            logger.error(f"Error removing override {permission_code} for user {user_id}: {e}")
            raise HTTPException(status_code=500, detail=str(e))
