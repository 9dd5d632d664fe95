from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime
from enum import Enum


class FeatureCode(str, Enum):
    BLOG_AUTHOR = "feature.blog.author"
    EXCHANGE_AUTHOR = "feature.exchange.author"
    EXCHANGE_PUBLISH_PAID = "feature.exchange.publish_paid"
    ANALYTICS_ADVANCED = "feature.analytics.advanced"
    TEAM_SEATS = "feature.team.seats"
    CLIENTS_REGISTRY = "feature.clients.registry"


class SubscriptionTier(str, Enum):
    FREE = "FREE"
    PROFESSIONAL = "PROFESSIONAL"
    PREMIUM = "PREMIUM"


class EntitlementOverride(BaseModel):
    provider_id: str
    feature_code: str
    enabled: bool
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    class Config:
        from_attributes = True


class Entitlement(BaseModel):
    feature_code: FeatureCode
    enabled: bool
    source: str  # "tier" | "override"


class EntitlementOverrideSet(BaseModel):
    feature_code: FeatureCode
    enabled: bool


class ProviderEntitlementsResponse(BaseModel):
    provider_id: str
    tier: SubscriptionTier
    entitlements: List[Entitlement]
    stale: bool = False


class FeatureCheckResponse(BaseModel):
    provider_id: str
    feature_code: FeatureCode
    enabled: bool
