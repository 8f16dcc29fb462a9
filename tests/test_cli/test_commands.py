"""Tests for the linksignal CLI commands."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from linksignal.canonicalization.schemas import CanonicalResult, CanonicalStatus
from linksignal.cli import main
from linksignal.config.settings import get_settings


@pytest.fixture
def runner():
    return CliRunner()


def fake_canonicalizer(result: CanonicalResult):
    canonicalizer = AsyncMock()
    canonicalizer.canonicalize = AsyncMock(return_value=result)

    @asynccontextmanager
    async def factory(use_cache: bool = True):
        yield canonicalizer

    return factory, canonicalizer


class TestCanonicalize:
    """Test the `canonicalize` command."""

    def test_prints_chain(self, runner: CliRunner) -> None:
        factory, canonicalizer = fake_canonicalizer(CanonicalResult(
            canonical_url="https://example.com/article",
            original_url="https://bit.ly/x",
            domain="example.com",
            base_domain="example.com",
            status=CanonicalStatus.SUCCESS,
            redirect_chain=["https://bit.ly/x", "https://example.com/article"],
        ))

        with patch("linksignal.cli._canonicalizer", factory):
            result = runner.invoke(main, ["canonicalize", "https://bit.ly/x", "--no-cache"])

        assert result.exit_code == 0, result.output
        assert "canonical_url: https://example.com/article" in result.output
        assert "-> https://bit.ly/x" in result.output
        canonicalizer.canonicalize.assert_awaited_once_with("https://bit.ly/x")

    def test_prints_error(self, runner: CliRunner) -> None:
        factory, _ = fake_canonicalizer(CanonicalResult(
            canonical_url="https://bit.ly/x",
            original_url="https://bit.ly/x",
            domain="bit.ly",
            base_domain="bit.ly",
            status=CanonicalStatus.FAILED,
            error="HTTP 503",
        ))

        with patch("linksignal.cli._canonicalizer", factory):
            result = runner.invoke(main, ["canonicalize", "https://bit.ly/x"])

        assert result.exit_code == 0, result.output
        assert "status: failed" in result.output
        assert "error: HTTP 503" in result.output


class TestDatabaseCommands:
    """Test commands that read from the database."""

    def test_score_unknown_link(self, runner: CliRunner) -> None:
        mock_db = AsyncMock()
        mock_db.fetchrow.return_value = None

        with patch("linksignal.storage.database.Database", return_value=mock_db):
            result = runner.invoke(main, ["score", "missing"])

        assert result.exit_code == 1
        assert "not found" in result.output
        mock_db.close.assert_awaited_once()

    def test_review_empty(self, runner: CliRunner) -> None:
        mock_db = AsyncMock()
        mock_db.fetch.return_value = []

        with patch("linksignal.storage.database.Database", return_value=mock_db):
            result = runner.invoke(main, ["review"])

        assert result.exit_code == 0, result.output
        assert "Review queue is empty" in result.output

    def test_review_lists_links(self, runner: CliRunner) -> None:
        mock_db = AsyncMock()
        link_rows = [{
            "id": "link-1",
            "canonical_url": "https://bit.ly/x",
            "original_url": "https://bit.ly/x",
            "domain": "bit.ly",
            "title": None,
            "description": None,
            "image_url": None,
            "author": None,
            "published_at": None,
            "canonical_status": "failed",
            "canonical_error": "HTTP 503",
            "needs_manual_review": True,
            "first_seen_at": datetime(2025, 6, 1, tzinfo=timezone.utc),
            "last_seen_at": datetime(2025, 6, 1, tzinfo=timezone.utc),
        }]
        mock_db.fetch.side_effect = [link_rows, [{"canonical_status": "failed", "n": 1}]]

        with patch("linksignal.storage.database.Database", return_value=mock_db):
            result = runner.invoke(main, ["review", "--limit", "5"])

        assert result.exit_code == 0, result.output
        assert "link-1  https://bit.ly/x" in result.output
        assert "error: HTTP 503" in result.output
        assert "Links by status: failed=1" in result.output

    def test_trending_empty(self, runner: CliRunner) -> None:
        mock_db = AsyncMock()
        mock_db.fetch.return_value = []

        with patch("linksignal.storage.database.Database", return_value=mock_db):
            result = runner.invoke(main, ["trending"])

        assert result.exit_code == 0, result.output
        assert "No trending links" in result.output


class TestHealth:
    """Test the `health` command."""

    def test_all_healthy(self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REDIS_ENABLED", "false")
        mock_db = AsyncMock()
        mock_db.health_check.return_value = True

        get_settings.cache_clear()
        try:
            with patch("linksignal.storage.database.Database", return_value=mock_db):
                result = runner.invoke(main, ["health"])
        finally:
            get_settings.cache_clear()

        assert result.exit_code == 0, result.output
        assert "ok  postgres" in result.output
        mock_db.close.assert_awaited_once()

    def test_postgres_down(self, runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REDIS_ENABLED", "false")
        mock_db = AsyncMock()
        mock_db.connect.side_effect = OSError("connection refused")

        get_settings.cache_clear()
        try:
            with patch("linksignal.storage.database.Database", return_value=mock_db):
                result = runner.invoke(main, ["health"])
        finally:
            get_settings.cache_clear()

        assert result.exit_code == 1
        assert "FAIL  postgres" in result.output
