"""Configuration for mention ingestion and feed polling.

All settings can be overridden via ``INGEST_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class IngestionConfig(BaseSettings):
    """Settings for batch ingestion, metadata fetching and feed polling."""

    model_config = SettingsConfigDict(
        env_prefix="INGEST_",
        case_sensitive=False,
        extra="ignore",
    )

    concurrency: int = Field(
        default=3,
        ge=1,
        le=50,
        description="Maximum candidate URLs processed in parallel within one batch",
    )
    batch_timeout_seconds: float = Field(
        default=120.0,
        gt=0.0,
        description="Wall-clock limit for a batch; unfinished items are reported as timeouts",
    )
    fetch_metadata: bool = Field(
        default=True,
        description="Fetch page metadata when a candidate carries no title",
    )
    metadata_timeout_seconds: float = Field(
        default=8.0,
        gt=0.0,
        le=60.0,
        description="Hard timeout for a metadata fetch",
    )
    metadata_max_bytes: int = Field(
        default=512 * 1024,
        ge=1024,
        description="Stop reading a page body for metadata after this many bytes",
    )
    feed_timeout_seconds: float = Field(
        default=20.0,
        gt=0.0,
        le=120.0,
        description="Hard timeout for fetching one feed",
    )
    max_items_per_feed: int = Field(
        default=20,
        ge=1,
        description="Most recent feed entries examined per poll",
    )
    source_concurrency: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Sources polled in parallel by poll_all",
    )
