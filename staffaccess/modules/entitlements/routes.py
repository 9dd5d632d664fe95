from fastapi import APIRouter, Depends, HTTPException, status
from staffaccess.core.dependencies import (
    get_current_access_user,
    get_current_permissions,
    get_entitlement_gate,
    get_entitlement_service,
    require_permission,
)
from staffaccess.modules.access.schemas import AccessUser
from staffaccess.modules.entitlements.gate import EntitlementGate
from staffaccess.modules.entitlements.schemas import (
    EntitlementOverride,
    EntitlementOverrideSet,
    FeatureCheckResponse,
    FeatureCode,
    ProviderEntitlementsResponse,
)
from staffaccess.modules.entitlements.service import EntitlementService
from typing import FrozenSet

router = APIRouter(prefix="/entitlements", tags=["entitlements"])


def check_provider_visibility(provider_id: str, user: AccessUser, permissions: FrozenSet[str]) -> None:
    """Providers see their own entitlements; staff need people.providers.read"""
    if user.id == provider_id or "people.providers.read" in permissions:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Insufficient permissions. Required: people.providers.read"
    )


@router.get("/providers/{provider_id}", response_model=ProviderEntitlementsResponse)
async def get_provider_entitlements(
    provider_id: str,
    user: AccessUser = Depends(get_current_access_user),
    permissions: FrozenSet[str] = Depends(get_current_permissions),
    gate: EntitlementGate = Depends(get_entitlement_gate)
):
    """Resolve every feature switch for a provider from its tier and overrides"""
    check_provider_visibility(provider_id, user, permissions)
    snapshot = await gate.get_entitlements(provider_id)
    return ProviderEntitlementsResponse(
        provider_id=provider_id,
        tier=snapshot.tier,
        entitlements=list(snapshot.entitlements),
        stale=snapshot.stale,
    )


@router.get("/providers/{provider_id}/features/{feature_code}", response_model=FeatureCheckResponse)
async def check_provider_feature(
    provider_id: str,
    feature_code: FeatureCode,
    user: AccessUser = Depends(get_current_access_user),
    permissions: FrozenSet[str] = Depends(get_current_permissions),
    gate: EntitlementGate = Depends(get_entitlement_gate)
):
    """Check whether a provider may use one feature"""
    check_provider_visibility(provider_id, user, permissions)
    enabled = await gate.can_use_feature(provider_id, feature_code)
    return FeatureCheckResponse(provider_id=provider_id, feature_code=feature_code, enabled=enabled)


@router.put("/providers/{provider_id}/overrides", response_model=EntitlementOverride)
async def set_entitlement_override(
    provider_id: str,
    override: EntitlementOverrideSet,
    user: AccessUser = Depends(require_permission("people.providers.moderate")),
    service: EntitlementService = Depends(get_entitlement_service),
    gate: EntitlementGate = Depends(get_entitlement_gate)
):
    """Enable or disable one feature for a provider regardless of tier"""
    result = service.set_entitlement_override(
        provider_id, override.feature_code, override.enabled, updated_by=user.id
    )
    gate.invalidate(provider_id)
    return result
