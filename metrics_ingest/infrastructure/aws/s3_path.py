"""S3 key utilities for the row store layout."""

import hashlib
import json

from metrics_ingest.domain.types import UniqueKey


class S3Path:
    """Builds the S3 keys under which rows are persisted."""

    S3_PREFIX = "s3://"
    S3_PREFIX_LENGTH = len(S3_PREFIX)
    ROW_SUFFIX = ".json"

    @staticmethod
    def normalize(path: str) -> str:
        """Normalize S3 path by removing s3:// prefix if present."""
        if path.startswith(S3Path.S3_PREFIX):
            return path[S3Path.S3_PREFIX_LENGTH:]
        return path

    @staticmethod
    def join(*parts: str) -> str:
        """Join path parts, normalizing separators and skipping empty parts."""
        normalized_parts = [part.strip("/") for part in parts if part and part.strip("/")]
        return "/".join(normalized_parts)

    @staticmethod
    def table_prefix(root: str, table: str) -> str:
        """Prefix under which every row of a table lives.

        Args:
            root: Store root prefix (may carry an s3:// bucket prefix)
            table: Logical table name

        Returns:
            Prefix ending with a separator, e.g. ``root/tables/metrics/``
        """
        return S3Path.join(S3Path.normalize(root), "tables", table) + "/"

    @staticmethod
    def row_key(root: str, table: str, unique_key: UniqueKey) -> str:
        """Deterministic object key of one row.

        Key components may hold arbitrary text, so the object name is a
        digest of their canonical JSON encoding rather than the raw values.
        """
        digest = hashlib.sha256(
            json.dumps(list(unique_key), ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        ).hexdigest()
        return S3Path.table_prefix(root, table) + digest + S3Path.ROW_SUFFIX
