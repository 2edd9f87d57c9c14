"""Integration test: sheet sync through real adapters and an in-memory store."""

from datetime import date

import httpx
import pytest
import pytest_asyncio

from metrics_ingest.domain.entities import MetricColumnConfig, SheetSelector, SyncScope
from metrics_ingest.domain.enums import MetricType, SourceKind, SyncAction, SyncOutcome, SyncState
from metrics_ingest.infrastructure.config.settings import Settings
from metrics_ingest.infrastructure.runtime.bootstrap import build_application
from metrics_ingest.infrastructure.store.memory_row_store import InMemoryRowStore

SHEET_ID = "1AbCdEfGhIjKlMnOpQrStUvWxYz0123456789"
SHEET_URL = f"https://docs.google.com/spreadsheets/d/{SHEET_ID}/edit#gid=0"
CLIENT = SyncScope(actor_id="owner-1", client_id="acme")


class FakeSheetsApi:
    """Minimal Sheets v4 API with editable tab contents."""

    def __init__(self) -> None:
        self.values = {
            "Acme - Weekly": [
                ["Date", "Show Rate", "Ad Spend", "Notes"],
                ["2024-01-15", "5%", "$1,200", "launch"],
                ["01/16/2024", "7.5%", "(50)", ""],
                ["2024-01-17", "0", "0", ""],
            ]
        }
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.headers.get("Authorization") != "Bearer token-abc":
            return httpx.Response(401, json={"error": {"status": "UNAUTHENTICATED", "message": "bad token"}})
        if "/values/" in request.url.path:
            tab = request.url.path.split("/values/", 1)[1].rsplit("!", 1)[0].strip("'")
            if tab not in self.values:
                return httpx.Response(400, json={"error": {"status": "INVALID_ARGUMENT", "message": "bad range"}})
            return httpx.Response(200, json={"values": self.values[tab]})
        sheets = [{"properties": {"title": title, "sheetId": 100 + i}} for i, title in enumerate(self.values)]
        return httpx.Response(200, json={"sheets": sheets})


@pytest.fixture
def api():
    """Create fake Sheets API."""
    return FakeSheetsApi()


@pytest_asyncio.fixture
async def application(api):
    """Build the application over the fake API and an in-memory store."""
    settings = Settings(
        _env_file=None,
        sheets_access_token="token-abc",
        sheets_max_attempts=1,
        sheets_retry_wait_seconds=0,
    )
    app = build_application(settings, row_store=InMemoryRowStore(), sheets_transport=httpx.MockTransport(api.handler))

    await app.authorization.grant("analyst-1", CLIENT, [SyncAction.SYNC, SyncAction.DISCOVER])
    await app.metric_config.configure_column(
        CLIENT,
        "Show Rate",
        MetricColumnConfig(metric_name="Show Rate", metric_type=MetricType.PERCENTAGE),
    )
    await app.metric_config.configure_column(
        CLIENT,
        "Ad Spend",
        MetricColumnConfig(metric_name="Ad Spend", metric_type=MetricType.CURRENCY, target_value=1000.0),
    )
    yield app
    await app.aclose()


@pytest.mark.asyncio
async def test_sync_ingests_configured_columns(application):
    """Test that a sheet URL syncs into typed metrics."""
    result = await application.orchestrator.sync("analyst-1", CLIENT, SheetSelector(source_ref=SHEET_URL))

    assert result.outcome == SyncOutcome.SUCCESS
    assert result.sheet_name == "Acme - Weekly"
    assert result.tab_gid == "100"
    assert result.rows_read == 3
    assert result.skipped_rows == 1
    assert result.inserted == 4
    assert result.dropped_columns == ["Notes"]

    metrics = await application.metrics_store.query(CLIENT, source_kind=SourceKind.GOOGLE_SHEETS)
    by_key = {(m.date, m.metric_name): m for m in metrics}

    show_rate = by_key[(date(2024, 1, 15), "Show Rate")]
    assert show_rate.value == 5.0
    assert show_rate.metric_type == MetricType.PERCENTAGE
    assert show_rate.tab_name == "Weekly"
    assert show_rate.source_id == SHEET_ID

    assert by_key[(date(2024, 1, 16), "Ad Spend")].value == -50.0
    assert by_key[(date(2024, 1, 15), "Ad Spend")].target_value == 1000.0

    record = await application.status_store.get(CLIENT, "Acme - Weekly")
    assert record.status == SyncState.SUCCESS
    assert record.success_count == 1


@pytest.mark.asyncio
async def test_resync_converges_to_latest_values(application, api):
    """Test that re-syncing after an edit updates in place."""
    selector = SheetSelector(source_ref=SHEET_ID, sheet_name="Acme - Weekly")
    await application.orchestrator.sync("analyst-1", CLIENT, selector)

    api.values["Acme - Weekly"][1][1] = "6%"
    result = await application.orchestrator.sync("analyst-1", CLIENT, selector)

    assert (result.inserted, result.updated) == (0, 4)
    metrics = await application.metrics_store.query(CLIENT)
    assert len(metrics) == 4
    show_rate = next(m for m in metrics if m.metric_name == "Show Rate" and m.date == date(2024, 1, 15))
    assert show_rate.value == 6.0

    record = await application.status_store.get(CLIENT, "Acme - Weekly")
    assert record.total_attempts == 2
    assert record.success_count == 2


@pytest.mark.asyncio
async def test_actor_without_grant_changes_nothing(application):
    """Test the permission gate end to end."""
    result = await application.orchestrator.sync(
        "stranger",
        CLIENT,
        SheetSelector(source_ref=SHEET_ID, sheet_name="Acme - Weekly"),
    )

    assert result.error.kind.value == "PermissionDenied"
    assert await application.status_store.list_for_scope(CLIENT) == []
    assert await application.metrics_store.query(CLIENT) == []


@pytest.mark.asyncio
async def test_expired_token_records_error(application):
    """Test that a rejected token ends the sync in ERROR."""
    application.credentials._access_token = "expired"

    result = await application.orchestrator.sync(
        "analyst-1",
        CLIENT,
        SheetSelector(source_ref=SHEET_ID, sheet_name="Acme - Weekly"),
    )

    assert result.error.kind.value == "AuthExpired"
    assert result.error.retryable is True
    record = await application.status_store.get(CLIENT, "Acme - Weekly")
    assert record.status == SyncState.ERROR
    assert "bad token" in record.error_message
