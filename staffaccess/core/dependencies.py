"""
Core dependencies for route protection and permission checking
"""

import asyncio
from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from staffaccess.core.query_cache import KeyedQueryCache
from staffaccess.database.supabase_client import get_supabase, get_service_supabase
from staffaccess.modules.access.adapter import build_permission_query
from staffaccess.modules.access.evaluator import resolve_effective_permission_set
from staffaccess.modules.access.schemas import AccessUser
from staffaccess.modules.access.service import AccessService
from staffaccess.modules.auth.service import AuthService
from staffaccess.modules.entitlements.gate import EntitlementGate
from staffaccess.modules.entitlements.service import EntitlementService
from supabase import Client
from typing import Any, Dict, FrozenSet, Optional
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()

_permission_query: Optional[KeyedQueryCache] = None
_entitlement_gate: Optional[EntitlementGate] = None


def _get_request_cache(request: Request) -> Dict[str, Any]:
    """Return request-scoped cache for access data (access_user, permission_names)."""
    if not hasattr(request.state, "access_cache"):
        request.state.access_cache = {}
    return request.state.access_cache


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase)


def get_access_service(supabase: Client = Depends(get_service_supabase)) -> AccessService:
    return AccessService(supabase)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(security),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    token = credentials.credentials
    user_data = auth_service.get_current_user(token)
    return user_data


def get_current_access_user(
    request: Request,
    user_data: dict = Depends(get_current_user_id),
    service: AccessService = Depends(get_access_service)
) -> AccessUser:
    """Load the caller's role and staff access from the database, once per request"""
    cache = _get_request_cache(request)
    if "access_user" not in cache:
        cache["access_user"] = service.get_access_user(user_data["id"], email=user_data.get("email"))
    return cache["access_user"]


def get_current_permissions(
    request: Request,
    user: AccessUser = Depends(get_current_access_user)
) -> FrozenSet[str]:
    cache = _get_request_cache(request)
    if "permission_names" not in cache:
        cache["permission_names"] = resolve_effective_permission_set(user)
    return cache["permission_names"]


def require_permission(required_permission: str):
    """Factory function to create permission check dependency"""
    def check_permission(
        user: AccessUser = Depends(get_current_access_user),
        permissions: FrozenSet[str] = Depends(get_current_permissions)
    ) -> AccessUser:
        """Re-derives the caller's permissions from server-side records before allowing the action"""
        if required_permission not in permissions:
            logger.info(f"Denied {required_permission} for user {user.id}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {required_permission}"
            )
        return user
    return check_permission


def get_permission_query() -> KeyedQueryCache:
    """Process-wide cache of server-confirmed permission lists, keyed by user id"""
    global _permission_query
    if _permission_query is None:
        async def fetch_remote(user_id: str):
            service = AccessService(get_service_supabase())
            return await asyncio.to_thread(service.fetch_effective_permissions, user_id)

        _permission_query = build_permission_query(fetch_remote)
    return _permission_query


def get_entitlement_service(supabase: Client = Depends(get_service_supabase)) -> EntitlementService:
    return EntitlementService(supabase)


def get_entitlement_gate() -> EntitlementGate:
    """Process-wide cache of provider entitlements, keyed by provider id"""
    global _entitlement_gate
    if _entitlement_gate is None:
        async def fetch(provider_id: str):
            service = EntitlementService(get_service_supabase())
            return await asyncio.to_thread(service.get_provider_entitlements, provider_id)

        _entitlement_gate = EntitlementGate(fetch)
    return _entitlement_gate


def reset_access_caches() -> None:
    """Cancel in-flight lookups and drop the process-wide caches"""
    global _permission_query, _entitlement_gate
    if _permission_query is not None:
        _permission_query.invalidate()
    if _entitlement_gate is not None:
        _entitlement_gate.invalidate()
    _permission_query = None
    _entitlement_gate = None
