from fastapi import APIRouter, Depends
from staffaccess.core.dependencies import get_current_access_user, get_current_permissions
from staffaccess.modules.access.evaluator import is_super_admin, sorted_permissions
from staffaccess.modules.access.schemas import AccessUser
from staffaccess.modules.auth.schemas import CurrentUserResponse
from typing import FrozenSet

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user(
    user: AccessUser = Depends(get_current_access_user),
    permissions: FrozenSet[str] = Depends(get_current_permissions)
):
    """Get current authenticated user and their permissions (for frontend UI)."""
    return CurrentUserResponse(
        id=user.id,
        email=user.email,
        role=user.role,
        staff_role=user.staff_access.staff_role if user.staff_access else None,
        is_super_admin=is_super_admin(user),
        permissions=sorted_permissions(permissions),
    )
