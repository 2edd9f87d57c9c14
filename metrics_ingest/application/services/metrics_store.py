"""Idempotent metrics upsert store."""

import asyncio
import math
from datetime import date
from typing import Callable

import structlog

from metrics_ingest.domain.entities import Metric, RowFailure, SyncScope, UpsertResult
from metrics_ingest.domain.enums import MetricType, SourceKind
from metrics_ingest.domain.errors import RowMappingError
from metrics_ingest.domain.ports import RowStorePort
from metrics_ingest.domain.types import MetricRowDict, RowDict, UniqueKey
from metrics_ingest.infrastructure.observability.metrics import metric_upserts

logger = structlog.get_logger()

METRICS_TABLE = "metrics"


def _google_sheets_key(metric: Metric) -> UniqueKey:
    """(scope, google_sheet_id, sheet, tab, date, category, name, type)."""
    return (
        SourceKind.GOOGLE_SHEETS.value,
        metric.scope.actor_id,
        metric.scope.client_id or "",
        metric.source_id,
        metric.sheet_name,
        metric.tab_name,
        metric.date.isoformat(),
        metric.category,
        metric.metric_name,
        metric.metric_type.value,
    )


def _file_import_key(metric: Metric) -> UniqueKey:
    """(scope, data_source_id, sheet, tab, date, category, name, type)."""
    return (
        SourceKind.FILE_IMPORT.value,
        metric.scope.actor_id,
        metric.scope.client_id or "",
        metric.source_id,
        metric.sheet_name,
        metric.tab_name,
        metric.date.isoformat(),
        metric.category,
        metric.metric_name,
        metric.metric_type.value,
    )


# Each source kind owns its uniqueness space; the kind tag keeps them apart
_UNIQUENESS_KEYS: dict[SourceKind, Callable[[Metric], UniqueKey]] = {
    SourceKind.GOOGLE_SHEETS: _google_sheets_key,
    SourceKind.FILE_IMPORT: _file_import_key,
}


def uniqueness_key(metric: Metric) -> UniqueKey:
    """Uniqueness key of a metric according to its source kind."""
    key_func = _UNIQUENESS_KEYS.get(metric.source_kind)
    if key_func is None:
        raise RowMappingError(f"Unsupported source kind: {metric.source_kind}")
    return key_func(metric)


class MetricsStore:
    """Row-atomic, idempotent upserts of ingested metrics."""

    def __init__(self, row_store: RowStorePort, max_concurrency: int = 8) -> None:
        """Initialize metrics store."""
        self.row_store = row_store
        self.max_concurrency = max(1, max_concurrency)

    async def upsert_batch(self, rows: list[Metric]) -> UpsertResult:
        """Insert or update every valid row under its uniqueness key.

        Invalid rows and rows whose write fails are reported in ``failed``
        without aborting the rest of the batch. Rows sharing a key inside
        one batch collapse to the last one. Failures are indexed by the
        metric's ``source_row`` when it has one, else by its position in
        ``rows``.
        """
        result = UpsertResult()
        latest: dict[UniqueKey, tuple[int, Metric]] = {}

        for position, metric in enumerate(rows):
            index = position if metric.source_row is None else metric.source_row
            try:
                _validate(metric)
                key = uniqueness_key(metric)
            except RowMappingError as e:
                result.failed.append(RowFailure(row_index=index, column=metric.metric_name, reason=str(e)))
                continue
            if key in latest:
                result.superseded += 1
            latest[key] = (index, metric)

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def write(key: UniqueKey, index: int, metric: Metric) -> None:
            async with semaphore:
                try:
                    inserted = await self.row_store.upsert(METRICS_TABLE, key, _to_row(metric))
                except Exception as e:
                    # Any write failure, persistence or transport, fails only this row
                    logger.warning(
                        "metric_upsert_failed",
                        scope_key=metric.scope.key,
                        metric_name=metric.metric_name,
                        date=metric.date.isoformat(),
                        row_index=index,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    result.failed.append(RowFailure(row_index=index, column=metric.metric_name, reason=str(e)))
                    return
            if inserted:
                result.inserted += 1
            else:
                result.updated += 1

        await asyncio.gather(*[write(key, index, metric) for key, (index, metric) in latest.items()])
        result.failed.sort(key=lambda f: f.row_index)

        metric_upserts.labels(outcome="inserted").inc(result.inserted)
        metric_upserts.labels(outcome="updated").inc(result.updated)
        metric_upserts.labels(outcome="failed").inc(len(result.failed))

        logger.info(
            "metrics_batch_upserted",
            row_count=len(rows),
            inserted=result.inserted,
            updated=result.updated,
            superseded=result.superseded,
            failed=len(result.failed),
        )
        return result

    async def query(
        self,
        scope: SyncScope,
        source_kind: SourceKind | None = None,
        source_id: str | None = None,
    ) -> list[Metric]:
        """Stored metrics of a scope, optionally narrowed to one source."""
        row_filter: RowDict = {"actor_id": scope.actor_id, "client_id": scope.client_id}
        if source_kind is not None:
            row_filter["source_kind"] = source_kind.value
        if source_id is not None:
            row_filter["data_source_id"] = source_id
        rows = await self.row_store.query(METRICS_TABLE, row_filter)
        metrics = [_from_row(row) for row in rows]
        return sorted(metrics, key=lambda m: (m.date, m.metric_name))


def _validate(metric: Metric) -> None:
    """Reject rows that must never reach the store."""
    if isinstance(metric.value, bool) or not isinstance(metric.value, (int, float)):
        raise RowMappingError(f"Invalid numeric value: {metric.value!r}")
    if not math.isfinite(metric.value):
        raise RowMappingError(f"Non-finite numeric value: {metric.value!r}")
    if not isinstance(metric.metric_type, MetricType):
        raise RowMappingError(f"Invalid metric type: {metric.metric_type!r}")
    if not isinstance(metric.date, date):
        raise RowMappingError(f"Invalid date: {metric.date!r}")

    required = {
        "actor_id": metric.scope.actor_id,
        "category": metric.category,
        "metric_name": metric.metric_name,
        "source_id": metric.source_id,
        "sheet_name": metric.sheet_name,
        "tab_name": metric.tab_name,
    }
    missing = [name for name, value in required.items() if not value]
    if missing:
        raise RowMappingError(f"Missing required dimension(s): {', '.join(missing)}")


def _to_row(metric: Metric) -> MetricRowDict:
    is_sheet = metric.source_kind == SourceKind.GOOGLE_SHEETS
    return {
        "actor_id": metric.scope.actor_id,
        "client_id": metric.scope.client_id,
        "date": metric.date.isoformat(),
        "category": metric.category,
        "metric_name": metric.metric_name,
        "value": float(metric.value),
        "metric_type": metric.metric_type.value,
        "source_kind": metric.source_kind.value,
        "google_sheet_id": metric.source_id if is_sheet else None,
        "data_source_id": metric.source_id,
        "sheet_name": metric.sheet_name,
        "tab_name": metric.tab_name,
        "tab_gid": metric.tab_gid,
        "is_calculated": metric.is_calculated,
        "target_value": metric.target_value,
    }


def _from_row(row: RowDict) -> Metric:
    target = row.get("target_value")
    return Metric(
        scope=SyncScope(actor_id=str(row["actor_id"]), client_id=row.get("client_id")),
        date=date.fromisoformat(str(row["date"])),
        category=str(row["category"]),
        metric_name=str(row["metric_name"]),
        value=float(row["value"]),
        metric_type=MetricType(row["metric_type"]),
        source_kind=SourceKind(row["source_kind"]),
        source_id=str(row["data_source_id"]),
        sheet_name=str(row["sheet_name"]),
        tab_name=str(row["tab_name"]),
        tab_gid=str(row.get("tab_gid") or "0"),
        is_calculated=bool(row.get("is_calculated")),
        target_value=float(target) if target is not None else None,
    )
