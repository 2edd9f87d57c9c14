"""Wiring of adapters and services for one tenant context."""

from dataclasses import dataclass
from datetime import timedelta

import httpx
import structlog

from metrics_ingest.application.services.metrics_store import MetricsStore
from metrics_ingest.application.services.request_cache import RequestCache
from metrics_ingest.application.services.sync_status_store import SyncStatusStore
from metrics_ingest.application.use_cases.sync_sheet import SyncOrchestrator
from metrics_ingest.domain.ports import RowStorePort
from metrics_ingest.infrastructure.aws.s3_io import S3IO
from metrics_ingest.infrastructure.config.settings import Settings
from metrics_ingest.infrastructure.google.sheets_client import GoogleSheetsClient
from metrics_ingest.infrastructure.runtime.authorization_adapter import RowStoreAuthorization
from metrics_ingest.infrastructure.runtime.clock import SystemClock
from metrics_ingest.infrastructure.runtime.credentials import StaticCredentialsProvider
from metrics_ingest.infrastructure.runtime.metric_config_adapter import RowStoreMetricConfig
from metrics_ingest.infrastructure.store.memory_row_store import InMemoryRowStore
from metrics_ingest.infrastructure.store.s3_row_store import S3RowStore

logger = structlog.get_logger()


@dataclass
class Application:
    """Everything a command needs, owned by one tenant context."""

    settings: Settings
    row_store: RowStorePort
    cache: RequestCache
    sheets: GoogleSheetsClient
    credentials: StaticCredentialsProvider
    authorization: RowStoreAuthorization
    metric_config: RowStoreMetricConfig
    status_store: SyncStatusStore
    metrics_store: MetricsStore
    orchestrator: SyncOrchestrator

    async def aclose(self) -> None:
        """Release connections and drop cached reads."""
        self.cache.clear()
        await self.sheets.aclose()


def build_row_store(settings: Settings) -> RowStorePort:
    """Row store selected by ``row_store_backend``."""
    if settings.row_store_backend == "s3":
        return S3RowStore(S3IO(settings), settings.row_store_prefix)
    return InMemoryRowStore()


def build_application(
    settings: Settings,
    row_store: RowStorePort | None = None,
    sheets_transport: httpx.AsyncBaseTransport | None = None,
) -> Application:
    """Build the service graph for one tenant context."""
    row_store = row_store or build_row_store(settings)
    cache = RequestCache(name="tenant")
    clock = SystemClock()

    sheets = GoogleSheetsClient(
        base_url=settings.sheets_api_base_url,
        timeout_seconds=settings.sheets_request_timeout_seconds,
        max_attempts=settings.sheets_max_attempts,
        retry_wait_seconds=settings.sheets_retry_wait_seconds,
        transport=sheets_transport,
    )
    credentials = StaticCredentialsProvider(settings.sheets_access_token)
    authorization = RowStoreAuthorization(row_store, cache, settings.config_cache_ttl_seconds)
    metric_config = RowStoreMetricConfig(row_store, cache, settings.config_cache_ttl_seconds)
    status_store = SyncStatusStore(
        row_store,
        clock,
        stale_after=timedelta(seconds=settings.sync_stale_after_seconds),
    )
    metrics_store = MetricsStore(row_store, max_concurrency=settings.upsert_concurrency)

    orchestrator = SyncOrchestrator(
        authorization=authorization,
        sheets=sheets,
        credentials=credentials,
        metric_config=metric_config,
        status_store=status_store,
        metrics_store=metrics_store,
        default_range=settings.sheets_default_range,
        fetch_budget_seconds=settings.sheets_fetch_budget_seconds,
    )

    logger.info(
        "application_built",
        row_store_backend=settings.row_store_backend,
        bucket=settings.aws_s3_bucket,
        has_sheets_token=bool(settings.sheets_access_token),
    )
    return Application(
        settings=settings,
        row_store=row_store,
        cache=cache,
        sheets=sheets,
        credentials=credentials,
        authorization=authorization,
        metric_config=metric_config,
        status_store=status_store,
        metrics_store=metrics_store,
        orchestrator=orchestrator,
    )
