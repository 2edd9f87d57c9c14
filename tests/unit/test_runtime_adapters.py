"""Unit tests for authorization, metric config and credential adapters."""

import pytest

from metrics_ingest.application.services.request_cache import RequestCache
from metrics_ingest.domain.entities import MetricColumnConfig, SyncScope
from metrics_ingest.domain.enums import MetricType, SyncAction
from metrics_ingest.domain.errors import AuthExpiredError
from metrics_ingest.infrastructure.runtime.authorization_adapter import RowStoreAuthorization
from metrics_ingest.infrastructure.runtime.credentials import StaticCredentialsProvider
from metrics_ingest.infrastructure.runtime.metric_config_adapter import RowStoreMetricConfig
from metrics_ingest.infrastructure.store.memory_row_store import InMemoryRowStore

CLIENT_SCOPE = SyncScope(actor_id="owner", client_id="client-1")


@pytest.fixture
def row_store():
    """Create in-memory row store."""
    return InMemoryRowStore()


@pytest.fixture
def cache():
    """Create request cache."""
    return RequestCache(name="test")


@pytest.mark.asyncio
async def test_personal_scope_allowed_for_owner_only(row_store, cache):
    """Test that only the owner may act in a personal scope."""
    authorization = RowStoreAuthorization(row_store, cache)
    personal = SyncScope(actor_id="user-1")

    assert await authorization.can_perform("user-1", personal, SyncAction.SYNC) is True
    assert await authorization.can_perform("user-2", personal, SyncAction.SYNC) is False


@pytest.mark.asyncio
async def test_client_scope_requires_grant(row_store, cache):
    """Test grant based access to client scopes."""
    authorization = RowStoreAuthorization(row_store, cache)

    assert await authorization.can_perform("user-1", CLIENT_SCOPE, SyncAction.SYNC) is False

    await authorization.grant("user-1", CLIENT_SCOPE, [SyncAction.DISCOVER])
    assert await authorization.can_perform("user-1", CLIENT_SCOPE, SyncAction.DISCOVER) is True
    assert await authorization.can_perform("user-1", CLIENT_SCOPE, SyncAction.SYNC) is False


@pytest.mark.asyncio
async def test_grants_are_read_through_cache(row_store, cache):
    """Test that repeated checks hit the row store once."""
    await row_store.upsert(
        "sync_grants",
        ("user-1", CLIENT_SCOPE.key),
        {"actor_id": "user-1", "scope_key": CLIENT_SCOPE.key, "actions": ["sync"]},
    )
    reads = 0
    original_get = row_store.get

    async def counting_get(table, unique_key):
        nonlocal reads
        reads += 1
        return await original_get(table, unique_key)

    row_store.get = counting_get
    authorization = RowStoreAuthorization(row_store, cache)

    for _ in range(3):
        assert await authorization.can_perform("user-1", CLIENT_SCOPE, SyncAction.SYNC) is True

    assert reads == 1


@pytest.mark.asyncio
async def test_metric_config_round_trip(row_store, cache):
    """Test configuring columns and reading enabled ones back."""
    metric_config = RowStoreMetricConfig(row_store, cache)
    await metric_config.configure_column(
        CLIENT_SCOPE,
        "Show Rate",
        MetricColumnConfig(metric_name="Show Rate", metric_type=MetricType.PERCENTAGE, target_value=30.0),
    )
    await metric_config.configure_column(
        CLIENT_SCOPE,
        "Notes",
        MetricColumnConfig(metric_name="Notes", metric_type=MetricType.NUMBER),
        is_enabled=False,
    )

    configs = await metric_config.get_configured_metrics(CLIENT_SCOPE)

    assert list(configs) == ["Show Rate"]
    assert configs["Show Rate"].metric_type == MetricType.PERCENTAGE
    assert configs["Show Rate"].target_value == 30.0


@pytest.mark.asyncio
async def test_metric_config_invalidated_on_write(row_store, cache):
    """Test that configuring a column refreshes the cached configuration."""
    metric_config = RowStoreMetricConfig(row_store, cache)
    assert await metric_config.get_configured_metrics(CLIENT_SCOPE) == {}

    await metric_config.configure_column(
        CLIENT_SCOPE,
        "Leads",
        MetricColumnConfig(metric_name="Leads", metric_type=MetricType.NUMBER),
    )

    assert list(await metric_config.get_configured_metrics(CLIENT_SCOPE)) == ["Leads"]


@pytest.mark.asyncio
async def test_metric_config_skips_unknown_types(row_store, cache):
    """Test that rows with an unknown metric type are ignored."""
    await row_store.upsert(
        "metric_configs",
        (CLIENT_SCOPE.key, "Weird"),
        {"scope_key": CLIENT_SCOPE.key, "sheet_column_name": "Weird", "metric_type": "ratio", "is_enabled": True},
    )

    assert await RowStoreMetricConfig(row_store, cache).get_configured_metrics(CLIENT_SCOPE) == {}


@pytest.mark.asyncio
async def test_static_credentials():
    """Test handing out the configured token."""
    credentials = await StaticCredentialsProvider("tok").get_credentials("user-1", CLIENT_SCOPE)

    assert credentials.access_token == "tok"
    assert "tok" not in repr(credentials)


@pytest.mark.asyncio
async def test_static_credentials_missing_token():
    """Test that a missing token asks for re-authentication."""
    with pytest.raises(AuthExpiredError):
        await StaticCredentialsProvider(None).get_credentials("user-1", CLIENT_SCOPE)
