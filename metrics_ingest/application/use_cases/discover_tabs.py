"""Discover the tabs of a spreadsheet on behalf of an actor."""

import structlog

from metrics_ingest.application.services.permission_gate import is_allowed
from metrics_ingest.application.services.reference_resolver import extract_id
from metrics_ingest.domain.entities import SheetTab, SyncScope
from metrics_ingest.domain.enums import SyncAction
from metrics_ingest.domain.errors import MalformedReferenceError, PermissionDeniedError
from metrics_ingest.domain.ports import AuthorizationPort, CredentialsPort, SheetsSourcePort

logger = structlog.get_logger()


async def run(
    actor_id: str,
    scope: SyncScope,
    source_ref: str,
    authorization: AuthorizationPort,
    sheets: SheetsSourcePort,
    credentials: CredentialsPort,
) -> list[SheetTab]:
    """List the tabs of the referenced spreadsheet.

    Raises:
        PermissionDeniedError: If the actor may not discover in the scope,
            or the permission check itself fails.
        MalformedReferenceError: If the reference is blank.
        DomainError: Upstream failures as mapped by the sheets adapter.
    """
    if not await is_allowed(authorization, actor_id, scope, SyncAction.DISCOVER):
        raise PermissionDeniedError(f"Actor {actor_id} may not discover sheets in scope {scope.key}")

    if not source_ref or not source_ref.strip():
        raise MalformedReferenceError("Source reference is empty", source_ref or "")

    ref = extract_id(source_ref)
    if not ref.confident:
        logger.warning("source_reference_low_confidence", raw=source_ref, source_id=ref.source_id)

    creds = await credentials.get_credentials(actor_id, scope)
    tabs = await sheets.discover_tabs(ref, creds)
    logger.info("tabs_discovered", actor_id=actor_id, scope_key=scope.key, source_id=ref.source_id, tab_count=len(tabs))
    return tabs
