from fastapi import APIRouter, Depends, HTTPException, status
from staffaccess.config.permissions_config import ALL_PERMISSION_CODES, is_known_permission
from staffaccess.core.dependencies import (
    get_access_service,
    get_current_access_user,
    get_permission_query,
    require_permission,
)
from staffaccess.core.query_cache import KeyedQueryCache
from staffaccess.modules.access.adapter import AccessSession
from staffaccess.modules.access.schemas import (
    AccessUser,
    EffectivePermissionsResponse,
    PermissionCheckResponse,
    PermissionGrant,
    PermissionOverride,
    PermissionOverrideSet,
    RoleTemplateResponse,
    StaffAccessProfile,
    StaffAccessResponse,
    StaffRoleAssign,
)
from staffaccess.modules.access.service import AccessService
from typing import List

router = APIRouter(prefix="/access", tags=["access"])


@router.get("/me/permissions", response_model=EffectivePermissionsResponse)
async def get_my_permissions(
    user: AccessUser = Depends(get_current_access_user),
    query: KeyedQueryCache = Depends(get_permission_query)
):
    """Effective permissions for the caller; server-confirmed when the RPC answers, else derived locally"""
    snapshot = await AccessSession(query, user).refresh()
    return EffectivePermissionsResponse(
        user_id=snapshot.user_id,
        permissions=snapshot.as_list(),
        source=snapshot.source,
        stale=snapshot.stale,
    )


@router.get("/me/permissions/{permission_code}", response_model=PermissionCheckResponse)
async def check_my_permission(
    permission_code: str,
    user: AccessUser = Depends(get_current_access_user),
    query: KeyedQueryCache = Depends(get_permission_query)
):
    """Check one permission for the caller; unknown codes are never allowed"""
    session = AccessSession(query, user)
    await session.refresh()
    return PermissionCheckResponse(permission=permission_code, allowed=session.can(permission_code))


@router.get("/catalog", response_model=List[str])
async def get_permission_catalog(
    user: AccessUser = Depends(require_permission("platform.config.read"))
):
    """List every permission code known to the platform"""
    return list(ALL_PERMISSION_CODES)


@router.get("/role-templates", response_model=List[RoleTemplateResponse])
async def list_role_templates(
    user: AccessUser = Depends(require_permission("platform.roles.assign")),
    service: AccessService = Depends(get_access_service)
):
    """List staff role templates"""
    return service.list_role_templates()


@router.get("/users/{user_id}/staff-access", response_model=StaffAccessResponse)
async def get_user_staff_access(
    user_id: str,
    user: AccessUser = Depends(require_permission("platform.roles.assign")),
    service: AccessService = Depends(get_access_service)
):
    """Get a user's staff role, grants, overrides and the resulting effective permissions"""
    return service.get_staff_access_response(user_id)


@router.put("/users/{user_id}/staff-role", response_model=StaffAccessProfile)
async def assign_staff_role(
    user_id: str,
    assignment: StaffRoleAssign,
    user: AccessUser = Depends(require_permission("platform.roles.assign")),
    service: AccessService = Depends(get_access_service),
    query: KeyedQueryCache = Depends(get_permission_query)
):
    """Assign or replace a user's staff role"""
    profile = service.assign_staff_role(user_id, assignment.staff_role, assigned_by=user.id)
    query.invalidate(user_id)
    return profile


@router.delete("/users/{user_id}/staff-role", status_code=204)
async def clear_staff_role(
    user_id: str,
    user: AccessUser = Depends(require_permission("platform.roles.assign")),
    service: AccessService = Depends(get_access_service),
    query: KeyedQueryCache = Depends(get_permission_query)
):
    """Remove a user's staff role"""
    if not service.clear_staff_role(user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Staff role assignment not found")
    query.invalidate(user_id)
    return None


@router.post("/users/{user_id}/grants", response_model=StaffAccessProfile, status_code=201)
async def grant_permission(
    user_id: str,
    grant: PermissionGrant,
    user: AccessUser = Depends(require_permission("platform.roles.assign")),
    service: AccessService = Depends(get_access_service),
    query: KeyedQueryCache = Depends(get_permission_query)
):
    """Grant a single permission outside of the user's role template"""
    profile = service.grant_permission(user_id, grant.permission_code, granted_by=user.id)
    query.invalidate(user_id)
    return profile


@router.delete("/users/{user_id}/grants/{permission_code}", status_code=204)
async def revoke_permission(
    user_id: str,
    permission_code: str,
    user: AccessUser = Depends(require_permission("platform.roles.assign")),
    service: AccessService = Depends(get_access_service),
    query: KeyedQueryCache = Depends(get_permission_query)
):
    """Revoke an ad hoc permission grant"""
    if not service.revoke_permission(user_id, permission_code):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Permission grant not found")
    query.invalidate(user_id)
    return None


@router.put("/users/{user_id}/overrides", response_model=PermissionOverride)
async def set_permission_override(
    user_id: str,
    override: PermissionOverrideSet,
    user: AccessUser = Depends(require_permission("platform.permissions.override")),
    service: AccessService = Depends(get_access_service),
    query: KeyedQueryCache = Depends(get_permission_query)
):
    """Allow or deny one permission for a user, replacing any existing override for it"""
    result = service.set_permission_override(
        user_id, override.permission_code, override.allowed, updated_by=user.id
    )
    query.invalidate(user_id)
    return result


@router.delete("/users/{user_id}/overrides/{permission_code}", status_code=204)
async def remove_permission_override(
    user_id: str,
    permission_code: str,
    user: AccessUser = Depends(require_permission("platform.permissions.override")),
    service: AccessService = Depends(get_access_service),
    query: KeyedQueryCache = Depends(get_permission_query)
):
    """Remove a user's override for one permission"""
    if not is_known_permission(permission_code):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown permission: {permission_code}")
    if not service.remove_permission_override(user_id, permission_code):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Permission override not found")
    query.invalidate(user_id)
    return None
