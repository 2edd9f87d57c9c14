"""Application settings."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Google Sheets API
    sheets_api_base_url: str = "https://sheets.googleapis.com/v4/spreadsheets"
    sheets_access_token: str | None = None
    sheets_request_timeout_seconds: float = 8.0
    sheets_fetch_budget_seconds: float = 20.0
    sheets_max_attempts: int = 3
    sheets_retry_wait_seconds: float = 1.0
    sheets_default_range: str = "A:AZ"

    # Row store: "memory" keeps everything in-process, "s3" persists one JSON object per row
    row_store_backend: Literal["memory", "s3"] = "memory"
    aws_region: str = "us-east-1"
    aws_s3_bucket: str | None = None
    row_store_prefix: str = "metrics-ingest"

    config_cache_ttl_seconds: float = 300.0
    sync_stale_after_seconds: float = 120.0
    upsert_concurrency: int = 8
    prometheus_port: int = 9300
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="",
        # Allow extra fields to be loaded but not validated
        extra="ignore",
    )
