"""
Subscription Tier Entitlements Configuration
Feature switches granted by each provider subscription tier. Per-provider
overrides stored in provider_entitlement_overrides take precedence.
"""

from staffaccess.modules.entitlements.schemas import FeatureCode, SubscriptionTier

DEFAULT_TIER = SubscriptionTier.FREE

TIER_ENTITLEMENTS = {
    SubscriptionTier.FREE: {
        FeatureCode.BLOG_AUTHOR: True,
        FeatureCode.EXCHANGE_AUTHOR: True,
        FeatureCode.EXCHANGE_PUBLISH_PAID: False,
        FeatureCode.ANALYTICS_ADVANCED: False,
        FeatureCode.TEAM_SEATS: False,
        FeatureCode.CLIENTS_REGISTRY: True,
    },
    SubscriptionTier.PROFESSIONAL: {
        FeatureCode.BLOG_AUTHOR: True,
        FeatureCode.EXCHANGE_AUTHOR: True,
        FeatureCode.EXCHANGE_PUBLISH_PAID: True,
        FeatureCode.ANALYTICS_ADVANCED: True,
        FeatureCode.TEAM_SEATS: False,
        FeatureCode.CLIENTS_REGISTRY: True,
    },
    SubscriptionTier.PREMIUM: {
        FeatureCode.BLOG_AUTHOR: True,
        FeatureCode.EXCHANGE_AUTHOR: True,
        FeatureCode.EXCHANGE_PUBLISH_PAID: True,
        FeatureCode.ANALYTICS_ADVANCED: True,
        FeatureCode.TEAM_SEATS: True,
        FeatureCode.CLIENTS_REGISTRY: True,
    },
}
