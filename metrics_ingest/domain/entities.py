"""Domain entities."""

from dataclasses import dataclass, field
from datetime import date

from metrics_ingest.domain.enums import (
    ErrorKind,
    MetricType,
    SourceKind,
    SyncOutcome,
    SyncState,
)
from metrics_ingest.domain.types import Timestamp

PERSONAL_SCOPE = "personal"


@dataclass(frozen=True)
class SyncScope:
    """Who a sync or status record belongs to."""

    actor_id: str
    client_id: str | None = None

    @property
    def key(self) -> str:
        """Stable string key of the scope."""
        return f"{self.actor_id}:{self.client_id or PERSONAL_SCOPE}"

    @property
    def is_personal(self) -> bool:
        return self.client_id is None


@dataclass(frozen=True)
class SourceReference:
    """Canonical identifier of an external data source."""

    kind: SourceKind
    source_id: str
    raw: str = ""
    confident: bool = True

    @classmethod
    def google_sheet(cls, spreadsheet_id: str, raw: str | None = None, confident: bool = True) -> "SourceReference":
        return cls(SourceKind.GOOGLE_SHEETS, spreadsheet_id, spreadsheet_id if raw is None else raw, confident)


@dataclass(frozen=True)
class SheetTab:
    """One discovered tab of a spreadsheet."""

    name: str
    gid: str
    url: str


@dataclass(frozen=True)
class SheetsCredentials:
    """Bearer credentials used against the spreadsheet API."""

    access_token: str = field(repr=False)


@dataclass(frozen=True)
class SheetSelector:
    """Which sheet of which source a sync should ingest."""

    source_ref: str
    sheet_name: str | None = None
    tab_name: str | None = None
    range: str | None = None


@dataclass(frozen=True)
class SyncStatusRecord:
    """Sync lifecycle record for a (scope, sheet) pair."""

    scope_key: str
    sheet_name: str
    status: SyncState = SyncState.NEVER_SYNCED
    last_sync_at: Timestamp | None = None
    last_success_at: Timestamp | None = None
    error_message: str | None = None
    total_attempts: int = 0
    success_count: int = 0


@dataclass(frozen=True)
class MetricColumnConfig:
    """Configuration of one spreadsheet column to materialize."""

    metric_name: str
    metric_type: MetricType
    category: str | None = None
    target_value: float | None = None


@dataclass(frozen=True)
class Metric:
    """One ingested metric value."""

    scope: SyncScope
    date: date
    category: str
    metric_name: str
    value: float
    metric_type: MetricType
    source_kind: SourceKind
    source_id: str
    sheet_name: str
    tab_name: str
    tab_gid: str = "0"
    is_calculated: bool = False
    target_value: float | None = None
    # Position of the raw row this metric was mapped from, when known
    source_row: int | None = field(default=None, compare=False)


@dataclass(frozen=True)
class RowFailure:
    """A row (or cell) that could not be ingested."""

    row_index: int
    reason: str
    column: str | None = None
    raw: str | None = None


@dataclass
class UpsertResult:
    """Outcome of a metrics batch upsert."""

    inserted: int = 0
    updated: int = 0
    superseded: int = 0
    failed: list[RowFailure] = field(default_factory=list)


@dataclass(frozen=True)
class SyncError:
    """Structured error of a failed sync."""

    kind: ErrorKind
    message: str
    retryable: bool = False


@dataclass
class SyncResult:
    """Structured outcome of a sync invocation."""

    outcome: SyncOutcome
    scope: SyncScope
    source_id: str | None = None
    sheet_name: str | None = None
    tab_gid: str | None = None
    rows_read: int = 0
    skipped_rows: int = 0
    inserted: int = 0
    updated: int = 0
    failed_rows: list[RowFailure] = field(default_factory=list)
    dropped_columns: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: SyncError | None = None

    @property
    def success(self) -> bool:
        return self.outcome != SyncOutcome.FAILED
