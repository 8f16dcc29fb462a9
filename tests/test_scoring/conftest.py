"""Pytest fixtures for scoring tests."""

from datetime import datetime, timedelta

import pytest

from linksignal.scoring.config import ScoringConfig
from linksignal.scoring.engine import ScoringEngine
from linksignal.scoring.schemas import ScoredMention


@pytest.fixture
def scoring_config() -> ScoringConfig:
    """Default weights, pinned so environment overrides cannot leak in."""
    return ScoringConfig(
        tier_1_weight=1.0,
        tier_2_weight=0.7,
        tier_3_weight=0.5,
        tier_4_weight=0.2,
        default_tier_weight=0.5,
        weight_24h=1.0,
        weight_48h=0.7,
        weight_72h=0.4,
        weight_older=0.2,
        trending_min_velocity=2,
        trending_threshold=1.5,
        gravity=1.8,
        ranking_hour_offset=2.0,
    )


@pytest.fixture
def engine(scoring_config: ScoringConfig, now: datetime) -> ScoringEngine:
    return ScoringEngine(scoring_config, now=lambda: now)


@pytest.fixture
def mention(now: datetime):
    """Factory for ScoredMention values seen ``hours_ago`` before now."""

    def _make(source_id: int, hours_ago: float = 1.0, **kwargs) -> ScoredMention:
        kwargs.setdefault("tier", "TIER_1")
        kwargs.setdefault("trust_score", 10)
        return ScoredMention(
            source_id=source_id,
            seen_at=now - timedelta(hours=hours_ago),
            **kwargs,
        )

    return _make
