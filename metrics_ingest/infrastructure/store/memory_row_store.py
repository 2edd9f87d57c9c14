"""In-process row store."""

import asyncio
import copy

from metrics_ingest.domain.ports import RowStorePort
from metrics_ingest.domain.types import RowDict, UniqueKey


class InMemoryRowStore(RowStorePort):
    """Row store backed by dictionaries; each upsert is atomic per key."""

    def __init__(self) -> None:
        """Initialize empty store."""
        self._tables: dict[str, dict[UniqueKey, RowDict]] = {}
        self._lock = asyncio.Lock()

    async def upsert(self, table: str, unique_key: UniqueKey, row: RowDict) -> bool:
        """Insert or replace the row stored under unique_key."""
        async with self._lock:
            rows = self._tables.setdefault(table, {})
            inserted = unique_key not in rows
            rows[unique_key] = copy.deepcopy(dict(row))
            return inserted

    async def get(self, table: str, unique_key: UniqueKey) -> RowDict | None:
        """Get the row stored under unique_key."""
        row = self._tables.get(table, {}).get(unique_key)
        return copy.deepcopy(row) if row is not None else None

    async def query(self, table: str, row_filter: RowDict) -> list[RowDict]:
        """Rows whose fields equal every item of row_filter."""
        return [
            copy.deepcopy(row)
            for row in self._tables.get(table, {}).values()
            if all(row.get(field) == value for field, value in row_filter.items())
        ]

    def count(self, table: str) -> int:
        """Number of rows in a table."""
        return len(self._tables.get(table, {}))
