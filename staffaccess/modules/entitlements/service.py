import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple, Union

from fastapi import HTTPException
from supabase import Client

from staffaccess.config.entitlements_config import DEFAULT_TIER, TIER_ENTITLEMENTS
from staffaccess.modules.entitlements.schemas import (
    Entitlement,
    EntitlementOverride,
    FeatureCode,
    SubscriptionTier,
)

logger = logging.getLogger(__name__)


def parse_tier(tier: Union[SubscriptionTier, str, None]) -> SubscriptionTier:
    """Unknown or missing tiers fall back to the free tier"""
    if isinstance(tier, SubscriptionTier):
        return tier
    try:
        return SubscriptionTier(tier)
    except ValueError:
        return DEFAULT_TIER


def build_entitlements(
    tier: Union[SubscriptionTier, str, None],
    overrides: Iterable[EntitlementOverride],
) -> List[Entitlement]:
    features = dict(TIER_ENTITLEMENTS[parse_tier(tier)])
    overridden = set()
    for override in overrides:
        try:
            feature_code = FeatureCode(override.feature_code)
        except ValueError:
            logger.debug(f"Ignoring override for unknown feature: {override.feature_code}")
            continue
        features[feature_code] = override.enabled
        overridden.add(feature_code)

    return [
        Entitlement(
            feature_code=feature_code,
            enabled=enabled,
            source="override" if feature_code in overridden else "tier",
        )
        for feature_code, enabled in features.items()
    ]


def is_feature_enabled(entitlements: Iterable[Entitlement], feature_code: Union[FeatureCode, str]) -> bool:
    return any(item.feature_code == feature_code and item.enabled for item in entitlements)


class EntitlementService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_provider_tier(self, provider_id: str) -> SubscriptionTier:
        try:
            result = self.supabase.table("provider_profiles")\
                .select("subscription_tier")\
                .eq("id", provider_id)\
                .limit(1)\
                .execute()
            if not result.data:
                return DEFAULT_TIER
            return parse_tier(result.data[0].get("subscription_tier"))
        except Exception as e:
            logger.error(f"Error loading subscription tier for provider {provider_id}: {e}")
            raise

    def get_entitlement_overrides(self, provider_id: str) -> List[EntitlementOverride]:
        result = self.supabase.table("provider_entitlement_overrides")\
            .select("*")\
            .eq("provider_id", provider_id)\
            .order("updated_at")\
            .execute()
        return [
            EntitlementOverride(
                provider_id=provider_id,
                feature_code=row["feature_code"],
                enabled=bool(row.get("enabled")),
                updated_at=row.get("updated_at"),
                updated_by=row.get("updated_by"),
            )
            for row in (result.data or [])
            if row.get("feature_code")
        ]

    def get_provider_entitlements(self, provider_id: str) -> Tuple[SubscriptionTier, List[Entitlement]]:
        tier = self.get_provider_tier(provider_id)
        overrides = self.get_entitlement_overrides(provider_id)
        return tier, build_entitlements(tier, overrides)

    def can_use_feature(self, provider_id: str, feature_code: Union[FeatureCode, str]) -> bool:
        _, entitlements = self.get_provider_entitlements(provider_id)
        return is_feature_enabled(entitlements, feature_code)

    def set_entitlement_override(
        self,
        provider_id: str,
        feature_code: FeatureCode,
        enabled: bool,
        updated_by: Optional[str] = None
    ) -> EntitlementOverride:
        """Upsert the single override for (provider, feature)"""
        try:
            feature_code = FeatureCode(feature_code)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown feature: {feature_code}")
        try:
            result = self.supabase.table("provider_entitlement_overrides").upsert({
                "provider_id": provider_id,
                "feature_code": feature_code.value,
                "enabled": enabled,
                "updated_by": updated_by,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }, on_conflict="provider_id,feature_code").execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to save entitlement override")

            logger.info(f"Entitlement override {feature_code.value}={enabled} set for provider {provider_id}")
            return EntitlementOverride(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error saving entitlement override for provider {provider_id}: {e}")
            raise HTTPException(status_code=500, detail=str(e))
