"""Sync request and result DTOs."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from metrics_ingest.domain.entities import (
    RowFailure,
    SheetSelector,
    SheetTab,
    SyncResult,
    SyncScope,
    SyncStatusRecord,
)
from metrics_ingest.domain.enums import SyncOutcome


class SyncRequest(BaseModel):
    """Manual sync trigger."""

    model_config = ConfigDict(populate_by_name=True)

    actor_id: str = Field(alias="actorId", min_length=1)
    client_id: str | None = Field(None, alias="clientId")
    source_ref: str = Field(alias="sourceRef")
    sheet_name: str | None = Field(None, alias="sheetName")
    tab_name: str | None = Field(None, alias="tabName")
    range: str | None = None

    @field_validator("client_id", "sheet_name", "tab_name", "range")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    @property
    def scope(self) -> SyncScope:
        return SyncScope(actor_id=self.actor_id, client_id=self.client_id)

    def to_selector(self) -> SheetSelector:
        return SheetSelector(
            source_ref=self.source_ref,
            sheet_name=self.sheet_name,
            tab_name=self.tab_name,
            range=self.range,
        )


class FailedRowPayload(BaseModel):
    """A row that failed mapping or persistence."""

    model_config = ConfigDict(populate_by_name=True)

    row_index: int = Field(alias="rowIndex")
    column: str | None = None
    reason: str
    raw: str | None = None

    @classmethod
    def from_failure(cls, failure: RowFailure) -> "FailedRowPayload":
        return cls(row_index=failure.row_index, column=failure.column, reason=failure.reason, raw=failure.raw)


class ErrorPayload(BaseModel):
    """Typed error of a failed sync."""

    kind: str
    message: str
    retryable: bool


class SyncResultPayload(BaseModel):
    """JSON shape of a sync result."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    outcome: SyncOutcome
    scope_key: str = Field(alias="scopeKey")
    source_id: str | None = Field(None, alias="sourceId")
    sheet_name: str | None = Field(None, alias="sheetName")
    tab_gid: str | None = Field(None, alias="tabGid")
    rows_read: int = Field(0, alias="rowsRead")
    skipped_rows: int = Field(0, alias="skippedRows")
    inserted: int = 0
    updated: int = 0
    failed_rows: list[FailedRowPayload] | None = Field(None, alias="failedRows")
    dropped_columns: list[str] = Field(default_factory=list, alias="droppedColumns")
    warnings: list[str] = Field(default_factory=list)
    error: ErrorPayload | None = None

    @classmethod
    def from_result(cls, result: SyncResult) -> "SyncResultPayload":
        error = None
        if result.error is not None:
            error = ErrorPayload(
                kind=result.error.kind.value,
                message=result.error.message,
                retryable=result.error.retryable,
            )
        return cls(
            success=result.success,
            outcome=result.outcome,
            scope_key=result.scope.key,
            source_id=result.source_id,
            sheet_name=result.sheet_name,
            tab_gid=result.tab_gid,
            rows_read=result.rows_read,
            skipped_rows=result.skipped_rows,
            inserted=result.inserted,
            updated=result.updated,
            failed_rows=[FailedRowPayload.from_failure(f) for f in result.failed_rows] or None,
            dropped_columns=result.dropped_columns,
            warnings=result.warnings,
            error=error,
        )


class TabPayload(BaseModel):
    """One discovered spreadsheet tab."""

    name: str
    gid: str
    url: str

    @classmethod
    def from_tab(cls, tab: SheetTab) -> "TabPayload":
        return cls(name=tab.name, gid=tab.gid, url=tab.url)


class SyncStatusPayload(BaseModel):
    """JSON shape of a sync status record."""

    model_config = ConfigDict(populate_by_name=True)

    scope_key: str = Field(alias="scopeKey")
    sheet_name: str = Field(alias="sheetName")
    status: str
    last_sync_at: str | None = Field(None, alias="lastSyncAt")
    last_success_at: str | None = Field(None, alias="lastSuccessAt")
    error_message: str | None = Field(None, alias="errorMessage")
    total_attempts: int = Field(0, alias="totalAttempts")
    success_count: int = Field(0, alias="successCount")
    stale: bool = False

    @classmethod
    def from_record(cls, record: SyncStatusRecord, stale: bool = False) -> "SyncStatusPayload":
        return cls(
            scope_key=record.scope_key,
            sheet_name=record.sheet_name,
            status=record.status.value,
            last_sync_at=record.last_sync_at.isoformat() if record.last_sync_at else None,
            last_success_at=record.last_success_at.isoformat() if record.last_success_at else None,
            error_message=record.error_message,
            total_attempts=record.total_attempts,
            success_count=record.success_count,
            stale=stale,
        )
