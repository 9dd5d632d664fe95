"""Cached feature entitlement checks for provider subscriptions."""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Tuple, Union

from staffaccess.config import settings
from staffaccess.config.entitlements_config import DEFAULT_TIER
from staffaccess.core.query_cache import KeyedQueryCache
from staffaccess.modules.entitlements.schemas import Entitlement, FeatureCode, SubscriptionTier
from staffaccess.modules.entitlements.service import is_feature_enabled

logger = logging.getLogger(__name__)

EntitlementFetch = Callable[[str], Awaitable[Tuple[SubscriptionTier, List[Entitlement]]]]


@dataclass(frozen=True)
class EntitlementSnapshot:
    provider_id: str
    tier: SubscriptionTier = DEFAULT_TIER
    entitlements: Tuple[Entitlement, ...] = field(default_factory=tuple)
    stale: bool = False

    def can_use_feature(self, feature_code: Union[FeatureCode, str]) -> bool:
        return is_feature_enabled(self.entitlements, feature_code)


class EntitlementGate:
    def __init__(self, fetch: EntitlementFetch, ttl: Optional[float] = None, timeout: Optional[float] = None):
        self._query = KeyedQueryCache(
            fetch,
            ttl=settings.entitlement_cache_ttl if ttl is None else ttl,
            timeout=settings.remote_permissions_timeout if timeout is None else timeout,
        )

    async def get_entitlements(self, provider_id: Optional[str]) -> EntitlementSnapshot:
        """Never raises; a failed lookup yields an empty, stale snapshot so every feature reads as disabled"""
        if not provider_id:
            return EntitlementSnapshot(provider_id="")
        try:
            tier, entitlements = await self._query.get(provider_id)
        except Exception as e:
            logger.warning(f"Entitlement lookup failed for provider {provider_id}: {e}")
            return EntitlementSnapshot(provider_id=provider_id, stale=True)
        return EntitlementSnapshot(provider_id=provider_id, tier=tier, entitlements=tuple(entitlements))

    async def can_use_feature(self, provider_id: Optional[str], feature_code: Union[FeatureCode, str]) -> bool:
        snapshot = await self.get_entitlements(provider_id)
        return snapshot.can_use_feature(feature_code)

    def invalidate(self, provider_id: Optional[str] = None) -> None:
        self._query.invalidate(provider_id)
