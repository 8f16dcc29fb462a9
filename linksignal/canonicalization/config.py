"""Configuration for URL canonicalization and redirect resolution."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CanonicalizationConfig(BaseSettings):
    """Settings for redirect resolution and the canonical URL cache."""

    model_config = SettingsConfigDict(
        env_prefix="CANONICAL_",
        case_sensitive=False,
        extra="ignore",
    )

    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=60.0,
        description="Per-request timeout for each redirect hop",
    )
    resolution_timeout_seconds: float = Field(
        default=30.0,
        gt=0.0,
        le=300.0,
        description="Hard ceiling on resolving one URL across all hops and retries",
    )
    max_redirects: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Maximum redirect hops followed before giving up",
    )
    max_retries: int = Field(
        default=1,
        ge=0,
        le=5,
        description="Retries per hop on timeouts and connection errors",
    )
    retry_base_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Base delay for exponential backoff between retries",
    )
    retry_max_backoff_seconds: float = Field(
        default=5.0,
        ge=0.0,
        description="Cap on a single backoff delay",
    )
    user_agent: str | None = Field(
        default=None,
        description="Override for the User-Agent sent while resolving (defaults to Settings.user_agent)",
    )
    cache_enabled: bool = Field(
        default=True,
        description="Cache successful resolutions in Redis",
    )
    cache_ttl_seconds: int = Field(
        default=7 * 24 * 60 * 60,
        ge=60,
        description="TTL for cached canonical URLs",
    )
