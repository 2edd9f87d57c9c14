"""S3 I/O operations."""

import asyncio
import json

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from metrics_ingest.domain.errors import PersistenceError
from metrics_ingest.domain.types import JsonValue
from metrics_ingest.infrastructure.config.settings import Settings

_MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}

_s3_retry = retry(
    retry=retry_if_exception_type(PersistenceError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
    reraise=True,
)


class S3IO:
    """S3 I/O operations.

    boto3 calls block, so each one runs in a worker thread.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize S3 client."""
        if not settings.aws_s3_bucket:
            raise ValueError("aws_s3_bucket is required for the s3 row store")
        self.settings = settings
        self.s3_client = boto3.client("s3", region_name=settings.aws_region)
        self.bucket = settings.aws_s3_bucket

    @_s3_retry
    async def get_json(self, key: str) -> dict[str, JsonValue] | None:
        """Get JSON object from S3, or None if the key does not exist."""
        try:
            response = await asyncio.to_thread(self.s3_client.get_object, Bucket=self.bucket, Key=key)
            content = response["Body"].read().decode("utf-8")
        except ClientError as e:
            if _error_code(e) in _MISSING_KEY_CODES:
                return None
            raise PersistenceError(f"Failed to read S3 object {key}: {e}") from e
        except BotoCoreError as e:
            raise PersistenceError(f"Failed to read S3 object {key}: {e}") from e
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Corrupt JSON in S3 object {key}: {e}") from e

    @_s3_retry
    async def put_json(self, key: str, data: dict[str, JsonValue]) -> None:
        """Put JSON object to S3."""
        try:
            content = json.dumps(data, default=str, sort_keys=True)
            await asyncio.to_thread(
                self.s3_client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=content.encode("utf-8"),
                ContentType="application/json",
            )
        except (ClientError, BotoCoreError) as e:
            raise PersistenceError(f"Failed to write S3 object {key}: {e}") from e

    @_s3_retry
    async def object_exists(self, key: str) -> bool:
        """Check if object exists in S3.

        Only a not-found answer means absent; any other failure (access
        denied, network) raises ``PersistenceError``.
        """
        try:
            await asyncio.to_thread(self.s3_client.head_object, Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if _error_code(e) in _MISSING_KEY_CODES:
                return False
            raise PersistenceError(f"Failed to check S3 object {key}: {e}") from e
        except BotoCoreError as e:
            raise PersistenceError(f"Failed to check S3 object {key}: {e}") from e

    @_s3_retry
    async def list_keys(self, prefix: str) -> list[str]:
        """List every object key under prefix, following continuation tokens."""
        keys: list[str] = []
        kwargs: dict[str, str] = {"Bucket": self.bucket, "Prefix": prefix}
        try:
            while True:
                response = await asyncio.to_thread(self.s3_client.list_objects_v2, **kwargs)
                keys.extend(obj["Key"] for obj in response.get("Contents", []))
                if not response.get("IsTruncated"):
                    return keys
                kwargs["ContinuationToken"] = response["NextContinuationToken"]
        except (ClientError, BotoCoreError) as e:
            raise PersistenceError(f"Failed to list S3 prefix {prefix}: {e}") from e


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))
