"""
Consumer-side access resolution.

An AccessSession answers "can this identity do X" from two sources:
the local derivation over already-loaded identity data (instant, UI affordance only)
and the server-confirmed permission list (authoritative, async). The remote list
wins whenever it is available; a failed fetch degrades to the local result and
marks the snapshot stale instead of raising.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, FrozenSet, Iterable, List, Optional

from staffaccess.config import settings
from staffaccess.config.permissions_config import is_known_permission
from staffaccess.core.query_cache import KeyedQueryCache
from staffaccess.modules.access.evaluator import resolve_effective_permission_set, sorted_permissions
from staffaccess.modules.access.schemas import AccessUser

logger = logging.getLogger(__name__)

SOURCE_REMOTE = "remote"
SOURCE_LOCAL = "local"
SOURCE_NONE = "none"

RemotePermissionFetch = Callable[[str], Awaitable[Iterable[str]]]


@dataclass(frozen=True)
class AccessSnapshot:
    user_id: Optional[str]
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    source: str = SOURCE_NONE
    stale: bool = False

    @property
    def is_authoritative(self) -> bool:
        return self.source == SOURCE_REMOTE and not self.stale

    def can(self, permission: str) -> bool:
        return permission in self.permissions

    def as_list(self) -> List[str]:
        return sorted_permissions(self.permissions)


def build_permission_query(
    fetch_remote: RemotePermissionFetch,
    ttl: Optional[float] = None,
    timeout: Optional[float] = None,
) -> KeyedQueryCache:
    """Wrap a remote permission fetch in a cache keyed by user id; codes outside the catalog are dropped"""

    async def fetch(user_id: str) -> FrozenSet[str]:
        raw = await fetch_remote(user_id)
        if raw is None:
            raise ValueError(f"Remote permission fetch for {user_id} returned no data")
        return frozenset(code for code in raw if is_known_permission(code))

    return KeyedQueryCache(
        fetch,
        ttl=settings.access_cache_ttl if ttl is None else ttl,
        timeout=settings.remote_permissions_timeout if timeout is None else timeout,
    )


class AccessSession:
    """Permission view for one identity at a time; switching identity discards results for the previous one"""

    def __init__(self, query: KeyedQueryCache, user: Optional[AccessUser] = None):
        self._query = query
        self._user = user
        self._epoch = 0
        self._snapshot: Optional[AccessSnapshot] = None
        self._pending: Optional[asyncio.Task] = None
        self._abandoned: Optional[asyncio.Task] = None

    @property
    def user(self) -> Optional[AccessUser]:
        return self._user

    @property
    def snapshot(self) -> Optional[AccessSnapshot]:
        return self._snapshot

    def local(self) -> AccessSnapshot:
        user = self._user
        return AccessSnapshot(
            user_id=user.id if user else None,
            permissions=resolve_effective_permission_set(user),
            source=SOURCE_LOCAL if user else SOURCE_NONE,
        )

    @property
    def permissions(self) -> FrozenSet[str]:
        """Remote result if one is available, else the local derivation"""
        if self._user is None:
            return frozenset()
        if self._snapshot is not None and self._snapshot.is_authoritative:
            return self._snapshot.permissions
        cached = self._query.peek(self._user.id)
        if cached is not None:
            return cached
        return resolve_effective_permission_set(self._user)

    def can(self, permission: str) -> bool:
        """Synchronous check, suitable for show/hide and enable/disable decisions only"""
        return permission in self.permissions

    def switch_identity(self, user: Optional[AccessUser]) -> None:
        previous = self._user
        if previous is not None and user is not None and previous.id == user.id:
            self._user = user
            return
        self._user = user
        self._epoch += 1
        self._snapshot = None
        if self._pending is not None and not self._pending.done():
            self._abandoned = self._pending
            self._pending.cancel()
            logger.debug(f"Cancelled permission fetch for {previous.id if previous else None} after identity switch")
        self._pending = None

    async def refresh(self) -> AccessSnapshot:
        user = self._user
        epoch = self._epoch
        if user is None:
            snapshot = AccessSnapshot(user_id=None)
            self._snapshot = snapshot
            return snapshot

        task = asyncio.ensure_future(self._query.get(user.id))
        self._pending = task
        try:
            permissions = await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task is not self._abandoned or (current is not None and current.cancelling()):
                raise
            # Identity changed while the fetch was in flight; the result belongs to nobody now
            return self._local_for(user, stale=True)
        except Exception as e:
            logger.warning(f"Remote permission fetch failed for user {user.id}, using local derivation: {e}")
            snapshot = self._local_for(user, stale=True)
        else:
            snapshot = AccessSnapshot(user_id=user.id, permissions=permissions, source=SOURCE_REMOTE)
        finally:
            if self._pending is task:
                self._pending = None

        if epoch == self._epoch:
            self._snapshot = snapshot
        return snapshot

    async def can_destructive(self, permission: str) -> bool:
        """Only a fresh server-confirmed result may allow an irreversible action"""
        snapshot = await self.refresh()
        return snapshot.is_authoritative and snapshot.can(permission)

    def invalidate(self) -> None:
        if self._user is not None:
            self._query.invalidate(self._user.id)
        self._snapshot = None

    @staticmethod
    def _local_for(user: AccessUser, stale: bool) -> AccessSnapshot:
        return AccessSnapshot(
            user_id=user.id,
            permissions=resolve_effective_permission_set(user),
            source=SOURCE_LOCAL,
            stale=stale,
        )
