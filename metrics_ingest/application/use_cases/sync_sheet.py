"""Sync one spreadsheet tab into the metrics store - main orchestration."""

import asyncio
import time
from typing import Awaitable, TypeVar

import structlog

from metrics_ingest.application.services.metrics_store import MetricsStore
from metrics_ingest.application.services.permission_gate import is_allowed
from metrics_ingest.application.services.reference_resolver import extract_id
from metrics_ingest.application.services.row_mapper import MappingContext, map_rows
from metrics_ingest.application.services.sync_status_store import SyncStatusStore
from metrics_ingest.application.services.value_parsing import tab_name_from_sheet
from metrics_ingest.domain.entities import (
    SheetsCredentials,
    SheetSelector,
    SheetTab,
    SourceReference,
    SyncError,
    SyncResult,
    SyncScope,
)
from metrics_ingest.domain.enums import ErrorKind, SyncAction, SyncOutcome, SyncState
from metrics_ingest.domain.errors import (
    DomainError,
    MalformedReferenceError,
    PermissionDeniedError,
    PersistenceError,
    UpstreamRejectedError,
    UpstreamTimeoutError,
)
from metrics_ingest.domain.ports import (
    AuthorizationPort,
    CredentialsPort,
    MetricConfigPort,
    SheetsSourcePort,
)
from metrics_ingest.domain.types import RawRow
from metrics_ingest.infrastructure.observability.metrics import (
    status_write_failures,
    sync_duration_seconds,
    syncs_failed,
    syncs_started,
    syncs_succeeded,
)

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_RANGE = "A:AZ"


class SyncOrchestrator:
    """Permission-gated sync of one spreadsheet tab.

    ``sync`` never raises: every failure comes back as a ``SyncResult``
    with a typed error. Permission and reference errors are returned before
    any status record is touched; later failures are recorded as ERROR.
    """

    def __init__(
        self,
        authorization: AuthorizationPort,
        sheets: SheetsSourcePort,
        credentials: CredentialsPort,
        metric_config: MetricConfigPort,
        status_store: SyncStatusStore,
        metrics_store: MetricsStore,
        default_range: str = DEFAULT_RANGE,
        fetch_budget_seconds: float = 20.0,
    ) -> None:
        """Initialize orchestrator."""
        self.authorization = authorization
        self.sheets = sheets
        self.credentials = credentials
        self.metric_config = metric_config
        self.status_store = status_store
        self.metrics_store = metrics_store
        self.default_range = default_range
        self.fetch_budget_seconds = fetch_budget_seconds

    async def sync(self, actor_id: str, scope: SyncScope, selector: SheetSelector) -> SyncResult:
        """Sync the selected sheet into the scope's metrics."""
        started_at = time.perf_counter()
        syncs_started.inc()
        result = SyncResult(outcome=SyncOutcome.FAILED, scope=scope)
        status_started = False

        try:
            if not await is_allowed(self.authorization, actor_id, scope, SyncAction.SYNC):
                raise PermissionDeniedError(f"Actor {actor_id} may not sync in scope {scope.key}")

            ref = self._resolve(selector.source_ref, result)
            result.source_id = ref.source_id

            logger.info("sync_started", actor_id=actor_id, scope_key=scope.key, source_id=ref.source_id)

            credentials: SheetsCredentials | None = None
            tabs: list[SheetTab] | None = None
            sheet_name = selector.sheet_name
            if not sheet_name:
                # No status record can exist before the sheet is known
                credentials = await self.credentials.get_credentials(actor_id, scope)
                tabs = await self._within_budget(self.sheets.discover_tabs(ref, credentials))
                if not tabs:
                    raise UpstreamRejectedError(f"Spreadsheet {ref.source_id} has no tabs")
                sheet_name = tabs[0].name
            result.sheet_name = sheet_name

            await self._note_previous_status(scope, sheet_name, result)
            await self._write_status(self.status_store.start_sync(scope, sheet_name), result)
            status_started = True

            if credentials is None:
                credentials = await self.credentials.get_credentials(actor_id, scope)

            cell_range = selector.range or self.default_range
            tab, rows = await self._within_budget(self._fetch(ref, sheet_name, tabs, cell_range, credentials))
            result.tab_gid = tab.gid
            result.rows_read = len(rows)

            config = await self.metric_config.get_configured_metrics(scope)
            context = MappingContext(
                scope=scope,
                source=ref,
                sheet_name=sheet_name,
                tab_name=selector.tab_name or tab_name_from_sheet(sheet_name),
                tab_gid=tab.gid,
            )
            mapped = map_rows(rows, config, context)
            upserted = await self.metrics_store.upsert_batch(mapped.metrics)

            result.skipped_rows = mapped.skipped_rows
            result.dropped_columns = sorted(mapped.dropped_columns)
            result.inserted = upserted.inserted
            result.updated = upserted.updated
            result.failed_rows = sorted(mapped.failures + upserted.failed, key=lambda f: f.row_index)
            result.outcome = SyncOutcome.PARTIAL_SUCCESS if result.failed_rows else SyncOutcome.SUCCESS

            await self._write_status(self.status_store.complete_success(scope, sheet_name), result)

            syncs_succeeded.labels(outcome=result.outcome.value).inc()
            logger.info(
                "sync_completed",
                scope_key=scope.key,
                source_id=ref.source_id,
                sheet_name=sheet_name,
                outcome=result.outcome.value,
                rows_read=result.rows_read,
                inserted=result.inserted,
                updated=result.updated,
                failed_rows=len(result.failed_rows),
                skipped_rows=result.skipped_rows,
            )

        except Exception as e:
            result.outcome = SyncOutcome.FAILED
            result.error = _classify_error(e)
            syncs_failed.labels(error_kind=result.error.kind.value).inc()
            logger.error(
                "sync_failed",
                actor_id=actor_id,
                scope_key=scope.key,
                source_id=result.source_id,
                sheet_name=result.sheet_name,
                error_kind=result.error.kind.value,
                error_message=result.error.message,
                exc_info=result.error.kind == ErrorKind.INTERNAL,
            )
            if status_started and result.sheet_name:
                await self._write_status(
                    self.status_store.complete_error(scope, result.sheet_name, result.error.message),
                    result,
                )

        finally:
            sync_duration_seconds.observe(time.perf_counter() - started_at)

        return result

    def _resolve(self, raw: str, result: SyncResult) -> SourceReference:
        if not raw or not raw.strip():
            raise MalformedReferenceError("Source reference is empty", raw or "")
        ref = extract_id(raw)
        if not ref.confident:
            warning = f"Could not recognize a spreadsheet URL or ID in {raw.strip()!r}; using it as-is"
            result.warnings.append(warning)
            logger.warning("source_reference_low_confidence", raw=raw, source_id=ref.source_id)
        return ref

    async def _note_previous_status(self, scope: SyncScope, sheet_name: str, result: SyncResult) -> None:
        """Log crash leftovers and overlapping syncs; no lease is taken."""
        try:
            previous = await self.status_store.get(scope, sheet_name)
        except PersistenceError as e:
            result.warnings.append(f"Could not read sync status: {e}")
            return

        if self.status_store.is_stale(previous):
            logger.warning(
                "stale_sync_recovered",
                scope_key=scope.key,
                sheet_name=sheet_name,
                last_sync_at=previous.last_sync_at.isoformat() if previous.last_sync_at else None,
            )
        elif previous.status == SyncState.SYNCING:
            logger.info("concurrent_sync_detected", scope_key=scope.key, sheet_name=sheet_name)

    async def _write_status(self, write: Awaitable[object], result: SyncResult) -> None:
        """Await a status write, downgrading persistence failures to warnings."""
        try:
            await write
        except PersistenceError as e:
            status_write_failures.inc()
            result.warnings.append(f"Sync status could not be saved: {e}")
            logger.warning("sync_status_write_failed", scope_key=result.scope.key, error=str(e))

    async def _within_budget(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.fetch_budget_seconds)
        except asyncio.TimeoutError:
            raise UpstreamTimeoutError(
                f"Spreadsheet fetch exceeded {self.fetch_budget_seconds:g}s budget"
            ) from None

    async def _fetch(
        self,
        ref: SourceReference,
        sheet_name: str,
        tabs: list[SheetTab] | None,
        cell_range: str,
        credentials: SheetsCredentials,
    ) -> tuple[SheetTab, list[RawRow]]:
        """Confirm the tab exists, then read its range."""
        if tabs is None:
            tabs = await self.sheets.discover_tabs(ref, credentials)
        tab = next((t for t in tabs if t.name == sheet_name), None)
        if tab is None:
            raise UpstreamRejectedError(f"Tab {sheet_name!r} not found in spreadsheet {ref.source_id}")
        rows = await self.sheets.fetch_range(ref, tab, cell_range, credentials)
        return tab, rows


def _classify_error(error: Exception) -> SyncError:
    """Classify error into a typed, user-facing sync error."""
    if isinstance(error, DomainError):
        return SyncError(kind=error.kind, message=str(error) or error.kind.value, retryable=error.retryable)
    return SyncError(kind=ErrorKind.INTERNAL, message=f"Unexpected error: {error}", retryable=False)
