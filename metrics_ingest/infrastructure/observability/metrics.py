"""Prometheus metrics."""

from prometheus_client import Counter, Histogram

syncs_started = Counter(
    "sheet_syncs_started_total",
    "Total number of sheet syncs started",
)

syncs_succeeded = Counter(
    "sheet_syncs_succeeded_total",
    "Total number of sheet syncs succeeded",
    ["outcome"],
)

syncs_failed = Counter(
    "sheet_syncs_failed_total",
    "Total number of sheet syncs failed",
    ["error_kind"],
)

sync_duration_seconds = Histogram(
    "sheet_sync_duration_seconds",
    "Duration of sheet syncs in seconds",
    buckets=[0.5, 1, 2, 5, 10, 20, 30, 60],
)

metric_upserts = Counter(
    "metric_upserts_total",
    "Metric rows processed by the metrics store",
    ["outcome"],
)

status_write_failures = Counter(
    "sync_status_write_failures_total",
    "Sync status writes that failed and were downgraded to warnings",
)

cache_lookups = Counter(
    "request_cache_lookups_total",
    "Request cache lookups",
    ["cache", "outcome"],
)
