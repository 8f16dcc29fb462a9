"""Shared fixtures for sources tests."""

from datetime import datetime, timezone

import pytest

from linksignal.sources.schemas import Source, SourceTier


@pytest.fixture
def sample_source() -> Source:
    """A sample Source for testing."""
    return Source(
        name="Intelligencer",
        feed_url="https://feeds.feedburner.com/nymag/intelligencer",
        tier=SourceTier.TIER_1,
        trust_score=8,
        base_domain="nymag.com",
        internal_domains=["vulture.com", "thecut.com"],
    )


@pytest.fixture
def sample_db_row() -> dict:
    """A dict mimicking an asyncpg Record for a source."""
    return {
        "id": 1,
        "name": "Intelligencer",
        "feed_url": "https://feeds.feedburner.com/nymag/intelligencer",
        "active": True,
        "tier": "TIER_1",
        "trust_score": 8,
        "show_on_dashboard": True,
        "base_domain": "nymag.com",
        "internal_domains": ["vulture.com", "thecut.com"],
        "include_own_links": False,
        "last_error": None,
        "last_error_at": None,
        "last_fetched_at": None,
        "consecutive_errors": 0,
        "created_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
        "updated_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
    }


@pytest.fixture
def manual_db_row(sample_db_row: dict) -> dict:
    """A source without a feed (manual entry)."""
    return {
        **sample_db_row,
        "id": 2,
        "name": "Manual entry",
        "feed_url": None,
        "tier": "TIER_4",
        "trust_score": 5,
        "show_on_dashboard": False,
        "base_domain": None,
        "internal_domains": [],
    }
