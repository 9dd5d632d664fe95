"""
Effective permission resolution for staff identities.

The result for a user is a pure function of their coarse role, their staff
access profile, the role template registry and the permission catalog.
Nothing here touches the database; callers load the AccessUser first.
"""

import logging
from typing import FrozenSet, Iterable, Optional, Union

from staffaccess.config.permissions_config import (
    ALL_PERMISSION_CODES,
    StaffRole,
    is_known_permission,
    lookup_role_template,
)
from staffaccess.modules.access.schemas import AccessUser, PermissionOverride, UserRole

logger = logging.getLogger(__name__)

FULL_CATALOG: FrozenSet[str] = frozenset(ALL_PERMISSION_CODES)

_BASELINE_PERMISSIONS = {
    UserRole.ADMIN.value: frozenset({"dashboard.overview.read"}),
    UserRole.PROVIDER.value: frozenset({
        "dashboard.overview.read",
        "cms.posts.read",
        "cms.posts.write",
        "cms.posts.submit",
    }),
}


def baseline_role_permissions(user_role: Union[UserRole, str, None]) -> FrozenSet[str]:
    """Permissions intrinsic to the coarse account role. Unrecognised roles get nothing."""
    if isinstance(user_role, UserRole):
        user_role = user_role.value
    return _BASELINE_PERMISSIONS.get(user_role, frozenset())


def is_super_admin(user: Optional[AccessUser]) -> bool:
    if user is None or not user.is_admin or user.staff_access is None:
        return False
    return user.staff_access.staff_role == StaffRole.SUPER_ADMIN.value


def is_legacy_admin(user: Optional[AccessUser]) -> bool:
    """
    Admin accounts created before staff roles existed carry no staff metadata at all.
    Any staff role, grant or override attached to the account means it has been
    migrated, and it never goes back to legacy status.
    """
    if user is None or not user.is_admin:
        return False
    return user.staff_access is None or user.staff_access.is_empty


def apply_overrides(
    permissions: Iterable[str],
    overrides: Iterable[PermissionOverride],
) -> FrozenSet[str]:
    """Apply allow/deny overrides in order; for duplicate codes the last entry wins"""
    result = set(permissions)
    for override in overrides:
        if not is_known_permission(override.permission_code):
            logger.debug(f"Ignoring override for unknown permission: {override.permission_code}")
            continue
        if override.allowed:
            result.add(override.permission_code)
        else:
            result.discard(override.permission_code)
    return frozenset(result)


def derive_permissions_for_user(user: Optional[AccessUser]) -> FrozenSet[str]:
    if user is None:
        return frozenset()

    # Super admins are override-proof
    if is_super_admin(user):
        return FULL_CATALOG

    if is_legacy_admin(user):
        return FULL_CATALOG

    permissions = set(baseline_role_permissions(user.role))

    # Staff metadata is only meaningful for admin accounts
    if not user.is_admin:
        return frozenset(permissions)

    staff_access = user.staff_access
    template = lookup_role_template(staff_access.staff_role)
    if template is not None:
        permissions |= template.permissions
    elif staff_access.staff_role:
        logger.debug(f"Unknown staff role {staff_access.staff_role} for user {user.id}; using baseline only")

    for code in staff_access.permissions:
        if is_known_permission(code):
            permissions.add(code)
        else:
            logger.debug(f"Ignoring unknown granted permission {code} for user {user.id}")

    return apply_overrides(permissions, staff_access.overrides)


def resolve_effective_permission_set(user: Optional[AccessUser]) -> FrozenSet[str]:
    """Entry point for callers gating on a user's permissions"""
    return derive_permissions_for_user(user)


def sorted_permissions(permissions: Iterable[str]) -> list:
    """Catalog order, for stable API output"""
    granted = set(permissions)
    return [code for code in ALL_PERMISSION_CODES if code in granted]
