"""S3-backed row store."""

import asyncio

import structlog

from metrics_ingest.domain.errors import PersistenceError
from metrics_ingest.domain.ports import RowStorePort
from metrics_ingest.domain.types import RowDict, StoredRecordDict, UniqueKey
from metrics_ingest.infrastructure.aws.s3_io import S3IO
from metrics_ingest.infrastructure.aws.s3_path import S3Path

logger = structlog.get_logger()


class S3RowStore(RowStorePort):
    """Persists each row as one JSON object keyed by its unique key.

    A put replaces the whole object, so a row is never half-written.
    Queries list the table prefix and filter client-side; this suits the
    modest per-tenant volumes of spreadsheet ingestion.
    """

    def __init__(self, s3_io: S3IO, root_prefix: str, max_concurrency: int = 16) -> None:
        """Initialize row store."""
        self.s3_io = s3_io
        self.root_prefix = root_prefix
        self.max_concurrency = max(1, max_concurrency)

    async def upsert(self, table: str, unique_key: UniqueKey, row: RowDict) -> bool:
        """Insert or replace the row stored under unique_key."""
        key = S3Path.row_key(self.root_prefix, table, unique_key)
        existed = await self.s3_io.object_exists(key)
        record: StoredRecordDict = {"table": table, "key": list(unique_key), "row": row}
        await self.s3_io.put_json(key, record)
        return not existed

    async def get(self, table: str, unique_key: UniqueKey) -> RowDict | None:
        """Get the row stored under unique_key."""
        key = S3Path.row_key(self.root_prefix, table, unique_key)
        record = await self.s3_io.get_json(key)
        if record is None:
            return None
        return _unwrap(key, record)

    async def query(self, table: str, row_filter: RowDict) -> list[RowDict]:
        """Rows whose fields equal every item of row_filter."""
        prefix = S3Path.table_prefix(self.root_prefix, table)
        keys = [k for k in await self.s3_io.list_keys(prefix) if k.endswith(S3Path.ROW_SUFFIX)]
        logger.debug("s3_row_store_query", table=table, prefix=prefix, object_count=len(keys))

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def load(key: str) -> RowDict | None:
            async with semaphore:
                record = await self.s3_io.get_json(key)
            # Deleted between list and get
            if record is None:
                return None
            return _unwrap(key, record)

        rows = await asyncio.gather(*[load(key) for key in keys])
        return [
            row
            for row in rows
            if row is not None and all(row.get(field) == value for field, value in row_filter.items())
        ]


def _unwrap(key: str, record: dict) -> RowDict:
    row = record.get("row")
    if not isinstance(row, dict):
        raise PersistenceError(f"Malformed row object {key}: missing 'row'")
    return row
