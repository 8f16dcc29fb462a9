"""Configuration for link signal scoring.

Controls tier and recency weights, the trending thresholds and the ranking
gravity. All settings can be overridden via ``SCORING_*`` environment
variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ScoringConfig(BaseSettings):
    """Configuration for velocity, weighted velocity and ranking."""

    model_config = SettingsConfigDict(
        env_prefix="SCORING_",
        case_sensitive=False,
        extra="ignore",
    )

    # Source tier weights (normalized to 0-1)
    tier_1_weight: float = Field(default=1.0, ge=0.0, le=1.0, description="Major publications")
    tier_2_weight: float = Field(default=0.7, ge=0.0, le=1.0, description="Top newsletters")
    tier_3_weight: float = Field(default=0.5, ge=0.0, le=1.0, description="Quality blogs and Substacks")
    tier_4_weight: float = Field(default=0.2, ge=0.0, le=1.0, description="Aggregators and link roundups")
    default_tier_weight: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Weight for a missing or unrecognized tier",
    )

    # Recency weights by mention age
    weight_24h: float = Field(default=1.0, ge=0.0, le=1.0)
    weight_48h: float = Field(default=0.7, ge=0.0, le=1.0)
    weight_72h: float = Field(default=0.4, ge=0.0, le=1.0)
    weight_older: float = Field(default=0.2, ge=0.0, le=1.0)

    default_trust_score: int = Field(
        default=5,
        ge=1,
        le=10,
        description="Trust score assumed when a source has none",
    )

    # Trending classification
    trending_min_velocity: int = Field(
        default=2,
        ge=1,
        description="Distinct counted sources required to trend",
    )
    trending_threshold: float = Field(
        default=1.5,
        ge=0.0,
        description="Weighted velocity required to trend",
    )
    trending_lookback_hours: int = Field(
        default=72,
        ge=1,
        description="Only links sighted within this window are considered for trending",
    )

    # Ranking: velocity * weighted / (hours + offset) ** gravity
    gravity: float = Field(default=1.8, gt=0.0, description="Age decay exponent")
    ranking_hour_offset: float = Field(default=2.0, gt=0.0, description="Added to age in hours")
