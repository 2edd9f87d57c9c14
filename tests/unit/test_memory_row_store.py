"""Unit tests for the in-memory row store."""

import pytest

from metrics_ingest.infrastructure.store.memory_row_store import InMemoryRowStore


@pytest.fixture
def store():
    """Create empty store."""
    return InMemoryRowStore()


@pytest.mark.asyncio
async def test_upsert_reports_insert_then_update(store):
    """Test the inserted flag of upserts."""
    assert await store.upsert("t", ("a",), {"v": 1}) is True
    assert await store.upsert("t", ("a",), {"v": 2}) is False
    assert await store.get("t", ("a",)) == {"v": 2}
    assert store.count("t") == 1


@pytest.mark.asyncio
async def test_get_missing(store):
    """Test reading an unknown key."""
    assert await store.get("t", ("missing",)) is None


@pytest.mark.asyncio
async def test_query_filters_on_every_field(store):
    """Test equality filtering."""
    await store.upsert("t", ("1",), {"scope": "a", "kind": "x"})
    await store.upsert("t", ("2",), {"scope": "a", "kind": "y"})
    await store.upsert("t", ("3",), {"scope": "b", "kind": "x"})

    assert len(await store.query("t", {"scope": "a"})) == 2
    assert await store.query("t", {"scope": "a", "kind": "y"}) == [{"scope": "a", "kind": "y"}]
    assert await store.query("other", {}) == []


@pytest.mark.asyncio
async def test_returned_rows_are_copies(store):
    """Test that callers cannot mutate stored rows."""
    row = {"values": [1]}
    await store.upsert("t", ("1",), row)
    row["values"].append(2)

    fetched = await store.get("t", ("1",))
    fetched["values"].append(3)

    assert await store.get("t", ("1",)) == {"values": [1]}
