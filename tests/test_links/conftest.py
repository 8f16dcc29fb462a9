"""Shared fixtures for links tests."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from linksignal.canonicalization.normalizer import extract_base_domain, extract_domain
from linksignal.canonicalization.schemas import CanonicalResult, CanonicalStatus, Rejection
from linksignal.links.repository import SightingOutcome


def _canonical(
    canonical_url: str,
    original_url: str | None = None,
    status: CanonicalStatus = CanonicalStatus.SUCCESS,
    error: str | None = None,
    rejection: Rejection | None = None,
) -> CanonicalResult:
    result = CanonicalResult(
        canonical_url=canonical_url,
        original_url=original_url or canonical_url,
        domain=extract_domain(canonical_url),
        base_domain=extract_base_domain(canonical_url),
        status=status,
        error=error,
        redirect_chain=[original_url or canonical_url],
    )
    result.rejection = rejection
    return result


def _outcome(
    link_id: str = "link-1",
    link_inserted: bool = True,
    mention_inserted: bool = True,
    status: CanonicalStatus = CanonicalStatus.SUCCESS,
) -> SightingOutcome:
    return SightingOutcome(
        link_id=link_id,
        link_inserted=link_inserted,
        mention_inserted=mention_inserted,
        canonical_status=status,
        needs_manual_review=status == CanonicalStatus.FAILED,
        mention_seen_at=datetime(2025, 6, 1, 12, tzinfo=timezone.utc),
    )


@pytest.fixture
def canonicalizer() -> AsyncMock:
    """Canonicalizer whose result is the normalized-looking input URL."""
    mock = AsyncMock()
    mock.canonicalize = AsyncMock(side_effect=lambda url, blacklist=None: _canonical(url))
    return mock


@pytest.fixture
def link_repository() -> AsyncMock:
    mock = AsyncMock()
    mock.record_sighting = AsyncMock(return_value=_outcome())
    return mock


@pytest.fixture
def link_row() -> dict:
    """A dict mimicking an asyncpg Record for a link."""
    return {
        "id": "0b6c3d4e-0000-4000-8000-000000000001",
        "canonical_url": "https://example.com/article",
        "original_url": "https://bit.ly/abc",
        "domain": "example.com",
        "title": "An article",
        "description": None,
        "image_url": None,
        "author": None,
        "published_at": None,
        "canonical_status": "failed",
        "canonical_error": "HTTP 503",
        "needs_manual_review": True,
        "first_seen_at": datetime(2025, 5, 31, tzinfo=timezone.utc),
        "last_seen_at": datetime(2025, 6, 1, tzinfo=timezone.utc),
    }


@pytest.fixture
def make_canonical():
    """Factory for CanonicalResult values."""
    return _canonical


@pytest.fixture
def make_outcome():
    """Factory for SightingOutcome values."""
    return _outcome
