"""Durable sync status state machine."""

from dataclasses import replace
from datetime import datetime, timedelta

import structlog

from metrics_ingest.domain.entities import SyncScope, SyncStatusRecord
from metrics_ingest.domain.enums import SyncState
from metrics_ingest.domain.ports import ClockPort, RowStorePort
from metrics_ingest.domain.types import RowDict, SyncStatusRowDict, Timestamp

logger = structlog.get_logger()

SYNC_STATUS_TABLE = "sync_status"
DEFAULT_STALE_AFTER = timedelta(minutes=2)


class SyncStatusStore:
    """Per-(scope, sheet) sync lifecycle, persisted in the row store.

    States move NEVER_SYNCED -> SYNCING -> SUCCESS | ERROR -> SYNCING ...
    Records are created on the first attempt and never deleted here.
    Row store failures propagate as PersistenceError; callers decide
    whether they are fatal.
    """

    def __init__(
        self,
        row_store: RowStorePort,
        clock: ClockPort,
        stale_after: timedelta = DEFAULT_STALE_AFTER,
    ) -> None:
        """Initialize status store."""
        self.row_store = row_store
        self.clock = clock
        self.stale_after = stale_after

    async def get(self, scope: SyncScope, sheet_name: str) -> SyncStatusRecord:
        """Current record; NEVER_SYNCED if none was persisted yet."""
        row = await self.row_store.get(SYNC_STATUS_TABLE, _key(scope, sheet_name))
        if row is None:
            return SyncStatusRecord(scope_key=scope.key, sheet_name=sheet_name)
        return _from_row(row)

    async def list_for_scope(self, scope: SyncScope) -> list[SyncStatusRecord]:
        """All records of a scope, ordered by sheet name."""
        rows = await self.row_store.query(SYNC_STATUS_TABLE, {"scope_key": scope.key})
        records = [_from_row(row) for row in rows]
        return sorted(records, key=lambda r: r.sheet_name)

    async def start_sync(self, scope: SyncScope, sheet_name: str) -> SyncStatusRecord:
        """Any state -> SYNCING."""
        current = await self.get(scope, sheet_name)
        updated = replace(
            current,
            status=SyncState.SYNCING,
            last_sync_at=self.clock.now(),
            total_attempts=current.total_attempts + 1,
        )
        await self._save(scope, updated)
        logger.info(
            "sync_status_syncing",
            scope_key=scope.key,
            sheet_name=sheet_name,
            previous_status=current.status.value,
            total_attempts=updated.total_attempts,
        )
        return updated

    async def complete_success(self, scope: SyncScope, sheet_name: str) -> SyncStatusRecord:
        """SYNCING -> SUCCESS."""
        current = await self.get(scope, sheet_name)
        self._check_transition(current, SyncState.SUCCESS)
        now = self.clock.now()
        updated = replace(
            current,
            status=SyncState.SUCCESS,
            last_sync_at=current.last_sync_at or now,
            last_success_at=now,
            error_message=None,
            success_count=current.success_count + 1,
        )
        await self._save(scope, updated)
        logger.info(
            "sync_status_success",
            scope_key=scope.key,
            sheet_name=sheet_name,
            success_count=updated.success_count,
        )
        return updated

    async def complete_error(self, scope: SyncScope, sheet_name: str, message: str) -> SyncStatusRecord:
        """SYNCING -> ERROR; last_success_at is left untouched."""
        current = await self.get(scope, sheet_name)
        self._check_transition(current, SyncState.ERROR)
        updated = replace(
            current,
            status=SyncState.ERROR,
            last_sync_at=current.last_sync_at or self.clock.now(),
            error_message=message or "Unknown error",
        )
        await self._save(scope, updated)
        logger.info(
            "sync_status_error",
            scope_key=scope.key,
            sheet_name=sheet_name,
            error_message=updated.error_message,
        )
        return updated

    def is_stale(self, record: SyncStatusRecord) -> bool:
        """True if a SYNCING record outlived the expected sync duration."""
        if record.status != SyncState.SYNCING or record.last_sync_at is None:
            return False
        return self.clock.now() - record.last_sync_at > self.stale_after

    def _check_transition(self, current: SyncStatusRecord, target: SyncState) -> None:
        # Concurrent syncs of the same sheet may complete out of order
        if current.status != SyncState.SYNCING:
            logger.warning(
                "sync_status_unexpected_transition",
                scope_key=current.scope_key,
                sheet_name=current.sheet_name,
                from_status=current.status.value,
                to_status=target.value,
            )

    async def _save(self, scope: SyncScope, record: SyncStatusRecord) -> None:
        await self.row_store.upsert(SYNC_STATUS_TABLE, _key(scope, record.sheet_name), _to_row(record))


def _key(scope: SyncScope, sheet_name: str) -> tuple[str, str]:
    return (scope.key, sheet_name)


def _to_row(record: SyncStatusRecord) -> SyncStatusRowDict:
    return {
        "scope_key": record.scope_key,
        "sheet_name": record.sheet_name,
        "status": record.status.value,
        "last_sync_at": _format_ts(record.last_sync_at),
        "last_success_at": _format_ts(record.last_success_at),
        "error_message": record.error_message,
        "total_attempts": record.total_attempts,
        "success_count": record.success_count,
    }


def _from_row(row: RowDict) -> SyncStatusRecord:
    return SyncStatusRecord(
        scope_key=str(row["scope_key"]),
        sheet_name=str(row["sheet_name"]),
        status=SyncState(row["status"]),
        last_sync_at=_parse_ts(row.get("last_sync_at")),
        last_success_at=_parse_ts(row.get("last_success_at")),
        error_message=row.get("error_message"),
        total_attempts=int(row.get("total_attempts") or 0),
        success_count=int(row.get("success_count") or 0),
    )


def _format_ts(ts: Timestamp | None) -> str | None:
    return ts.isoformat() if ts is not None else None


def _parse_ts(value: object) -> Timestamp | None:
    if not value:
        return None
    return datetime.fromisoformat(str(value))
