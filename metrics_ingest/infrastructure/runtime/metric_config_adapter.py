"""Row-store backed metric configuration adapter."""

import structlog

from metrics_ingest.application.services.request_cache import RequestCache
from metrics_ingest.domain.entities import MetricColumnConfig, SyncScope
from metrics_ingest.domain.enums import MetricType
from metrics_ingest.domain.ports import MetricConfigPort, RowStorePort

logger = structlog.get_logger()

METRIC_CONFIGS_TABLE = "metric_configs"


class RowStoreMetricConfig(MetricConfigPort):
    """Per-scope column configuration, read through the request cache."""

    def __init__(self, row_store: RowStorePort, cache: RequestCache, ttl_seconds: float = 300.0) -> None:
        """Initialize metric config adapter."""
        self.row_store = row_store
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    async def get_configured_metrics(self, scope: SyncScope) -> dict[str, MetricColumnConfig]:
        """Map of sheet column name to metric configuration for enabled columns."""
        return await self.cache.get_or_compute(
            _cache_key(scope),
            self.ttl_seconds,
            lambda: self._load(scope),
        )

    async def configure_column(
        self,
        scope: SyncScope,
        sheet_column_name: str,
        config: MetricColumnConfig,
        is_enabled: bool = True,
    ) -> None:
        """Create or replace the configuration of one sheet column."""
        await self.row_store.upsert(
            METRIC_CONFIGS_TABLE,
            (scope.key, sheet_column_name),
            {
                "scope_key": scope.key,
                "sheet_column_name": sheet_column_name,
                "metric_name": config.metric_name,
                "metric_type": config.metric_type.value,
                "category": config.category,
                "target_value": config.target_value,
                "is_enabled": is_enabled,
            },
        )
        self.cache.invalidate(_cache_key(scope))

    async def _load(self, scope: SyncScope) -> dict[str, MetricColumnConfig]:
        rows = await self.row_store.query(METRIC_CONFIGS_TABLE, {"scope_key": scope.key})
        configs: dict[str, MetricColumnConfig] = {}
        for row in rows:
            if not row.get("is_enabled", True):
                continue
            try:
                metric_type = MetricType(row.get("metric_type") or MetricType.NUMBER.value)
            except ValueError:
                logger.warning(
                    "metric_config_invalid_type",
                    scope_key=scope.key,
                    column=row.get("sheet_column_name"),
                    metric_type=row.get("metric_type"),
                )
                continue
            column = str(row["sheet_column_name"])
            target = row.get("target_value")
            configs[column] = MetricColumnConfig(
                metric_name=str(row.get("metric_name") or column),
                metric_type=metric_type,
                category=row.get("category") or None,
                target_value=float(target) if target is not None else None,
            )
        logger.debug("metric_config_loaded", scope_key=scope.key, column_count=len(configs))
        return configs


def _cache_key(scope: SyncScope) -> str:
    return f"metric_config:{scope.key}"
