"""Row-store backed authorization adapter."""

import structlog

from metrics_ingest.application.services.request_cache import RequestCache
from metrics_ingest.domain.entities import SyncScope
from metrics_ingest.domain.enums import SyncAction
from metrics_ingest.domain.ports import AuthorizationPort, RowStorePort

logger = structlog.get_logger()

GRANTS_TABLE = "sync_grants"


class RowStoreAuthorization(AuthorizationPort):
    """Grants stored as ``sync_grants`` rows, read through the request cache.

    An actor may always act in its own personal scope. Client scopes need a
    grant row listing the allowed actions.
    """

    def __init__(self, row_store: RowStorePort, cache: RequestCache, ttl_seconds: float = 300.0) -> None:
        """Initialize authorization adapter."""
        self.row_store = row_store
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    async def can_perform(self, actor_id: str, scope: SyncScope, action: SyncAction) -> bool:
        """Return True if the actor may perform the action in the scope."""
        if scope.is_personal:
            return scope.actor_id == actor_id

        actions = await self.cache.get_or_compute(
            _cache_key(actor_id, scope),
            self.ttl_seconds,
            lambda: self._load_actions(actor_id, scope),
        )
        allowed = action.value in actions
        if not allowed:
            logger.info("authorization_denied", actor_id=actor_id, scope_key=scope.key, action=action.value)
        return allowed

    async def grant(self, actor_id: str, scope: SyncScope, actions: list[SyncAction]) -> None:
        """Persist the allowed actions of an actor in a scope."""
        await self.row_store.upsert(
            GRANTS_TABLE,
            (actor_id, scope.key),
            {
                "actor_id": actor_id,
                "scope_key": scope.key,
                "actions": sorted(a.value for a in actions),
            },
        )
        self.cache.invalidate(_cache_key(actor_id, scope))

    async def _load_actions(self, actor_id: str, scope: SyncScope) -> frozenset[str]:
        row = await self.row_store.get(GRANTS_TABLE, (actor_id, scope.key))
        if row is None:
            return frozenset()
        return frozenset(str(a) for a in row.get("actions") or [])


def _cache_key(actor_id: str, scope: SyncScope) -> str:
    return f"grants:{actor_id}:{scope.key}"
