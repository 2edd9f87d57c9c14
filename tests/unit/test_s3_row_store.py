"""Unit tests for the S3-backed row store."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from metrics_ingest.domain.errors import PersistenceError
from metrics_ingest.infrastructure.aws.s3_io import S3IO
from metrics_ingest.infrastructure.aws.s3_path import S3Path
from metrics_ingest.infrastructure.store.s3_row_store import S3RowStore


class FakeS3IO:
    """Dictionary-backed stand-in exposing the S3IO methods the store uses."""

    def __init__(self) -> None:
        self.objects: dict[str, dict] = {}

    async def object_exists(self, key: str) -> bool:
        return key in self.objects

    async def put_json(self, key: str, data: dict) -> None:
        self.objects[key] = data

    async def get_json(self, key: str) -> dict | None:
        return self.objects.get(key)

    async def list_keys(self, prefix: str) -> list[str]:
        return [k for k in self.objects if k.startswith(prefix)]


@pytest.fixture
def s3():
    """Create fake S3 I/O."""
    return FakeS3IO()


@pytest.fixture
def store(s3):
    """Create row store over the fake S3 I/O."""
    return S3RowStore(s3, "root")


@pytest.mark.asyncio
async def test_upsert_writes_one_object_per_key(store, s3):
    """Test insert then replace of the same key."""
    assert await store.upsert("metrics", ("a", "b"), {"value": 1.0}) is True
    assert await store.upsert("metrics", ("a", "b"), {"value": 2.0}) is False

    key = S3Path.row_key("root", "metrics", ("a", "b"))
    assert list(s3.objects) == [key]
    assert s3.objects[key] == {"table": "metrics", "key": ["a", "b"], "row": {"value": 2.0}}


@pytest.mark.asyncio
async def test_get(store):
    """Test reading rows back."""
    await store.upsert("metrics", ("a",), {"value": 1.0})

    assert await store.get("metrics", ("a",)) == {"value": 1.0}
    assert await store.get("metrics", ("b",)) is None


@pytest.mark.asyncio
async def test_query_filters_within_table(store):
    """Test that queries only scan one table and filter rows."""
    await store.upsert("metrics", ("1",), {"scope_key": "a"})
    await store.upsert("metrics", ("2",), {"scope_key": "b"})
    await store.upsert("sync_status", ("3",), {"scope_key": "a"})

    assert await store.query("metrics", {"scope_key": "a"}) == [{"scope_key": "a"}]


@pytest.mark.asyncio
async def test_malformed_object_raises_persistence_error(store, s3):
    """Test that an object without a row envelope is rejected."""
    s3.objects[S3Path.row_key("root", "metrics", ("x",))] = {"unexpected": True}

    with pytest.raises(PersistenceError):
        await store.get("metrics", ("x",))


@pytest.mark.asyncio
async def test_write_failure_propagates():
    """Test that S3 write failures surface as PersistenceError."""
    s3_io = MagicMock(spec=S3IO)
    s3_io.object_exists = AsyncMock(return_value=False)
    s3_io.put_json = AsyncMock(side_effect=PersistenceError("Failed to write S3 object"))
    store = S3RowStore(s3_io, "root")

    with pytest.raises(PersistenceError):
        await store.upsert("metrics", ("a",), {"value": 1.0})


@pytest.mark.asyncio
async def test_unreadable_existing_object_is_not_reported_as_insert():
    """Test that a failed existence check aborts the upsert before writing."""
    s3_io = MagicMock(spec=S3IO)
    s3_io.object_exists = AsyncMock(side_effect=PersistenceError("Failed to check S3 object: AccessDenied"))
    s3_io.put_json = AsyncMock()
    store = S3RowStore(s3_io, "root")

    with pytest.raises(PersistenceError, match="AccessDenied"):
        await store.upsert("metrics", ("a",), {"value": 1.0})

    s3_io.put_json.assert_not_called()
