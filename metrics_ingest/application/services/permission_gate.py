"""Fail-closed permission check shared by the use cases."""

import structlog

from metrics_ingest.domain.entities import SyncScope
from metrics_ingest.domain.enums import SyncAction
from metrics_ingest.domain.ports import AuthorizationPort

logger = structlog.get_logger()


async def is_allowed(
    authorization: AuthorizationPort,
    actor_id: str,
    scope: SyncScope,
    action: SyncAction,
) -> bool:
    """Whether actor may perform action in scope; a failing check denies."""
    try:
        return await authorization.can_perform(actor_id, scope, action)
    except Exception as e:
        logger.warning(
            "authorization_check_failed",
            actor_id=actor_id,
            scope_key=scope.key,
            action=action.value,
            error=str(e),
        )
        return False
