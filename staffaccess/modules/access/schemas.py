from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum
from staffaccess.config.permissions_config import StaffRole


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    PROVIDER = "PROVIDER"
    CLIENT = "CLIENT"


class PermissionOverride(BaseModel):
    user_id: str
    permission_code: str
    allowed: bool
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    class Config:
        from_attributes = True


class StaffAccessProfile(BaseModel):
    # Kept as a raw string so an unregistered role read from storage fails closed instead of failing validation
    staff_role: Optional[str] = None
    permissions: List[str] = Field(default_factory=list)
    overrides: List[PermissionOverride] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.staff_role and not self.permissions and not self.overrides


class AccessUser(BaseModel):
    id: str
    email: Optional[str] = None
    # Raw coarse role; values outside UserRole resolve to no permissions
    role: Optional[str] = None
    staff_access: Optional[StaffAccessProfile] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


class RoleTemplateResponse(BaseModel):
    role: StaffRole
    description: str
    permissions: List[str]


class StaffRoleAssign(BaseModel):
    staff_role: str


class PermissionOverrideSet(BaseModel):
    permission_code: str
    allowed: bool


class PermissionGrant(BaseModel):
    permission_code: str


class StaffAccessResponse(BaseModel):
    user_id: str
    staff_role: Optional[str] = None
    permissions: List[str]
    overrides: List[PermissionOverride]
    effective_permissions: List[str]


class EffectivePermissionsResponse(BaseModel):
    user_id: Optional[str] = None
    permissions: List[str]
    source: str
    stale: bool = False


class PermissionCheckResponse(BaseModel):
    permission: str
    allowed: bool
