"""Domain types and aliases."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, TypedDict

Timestamp = datetime

# One spreadsheet row keyed by header name
RawRow = dict[str, str]

# Unique key of a persisted row, one string per key component
UniqueKey = tuple[str, ...]

# JSON-serializable types (recursive)
if TYPE_CHECKING:
    JsonValue = str | int | float | bool | None | dict[str, "JsonValue"] | list["JsonValue"]
else:
    JsonValue = str | int | float | bool | None | dict | list

RowDict = dict[str, JsonValue]


class SyncStatusRowDict(TypedDict):
    """Persisted sync status row."""

    scope_key: str
    sheet_name: str
    status: str
    last_sync_at: str | None
    last_success_at: str | None
    error_message: str | None
    total_attempts: int
    success_count: int


class MetricRowDict(TypedDict):
    """Persisted metric row."""

    actor_id: str
    client_id: str | None
    date: str
    category: str
    metric_name: str
    value: float
    metric_type: str
    source_kind: str
    google_sheet_id: str | None
    data_source_id: str
    sheet_name: str
    tab_name: str
    tab_gid: str
    is_calculated: bool
    target_value: float | None


class StoredRecordDict(TypedDict):
    """Envelope of a row persisted by an object-store backed row store."""

    table: str
    key: list[str]
    row: RowDict
