"""Tests for LinkRepository."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from linksignal.canonicalization.schemas import CanonicalStatus
from linksignal.links.repository import _UPSERT_LINK_SQL, LinkRepository
from linksignal.links.schemas import PLACEHOLDER_TITLES, LinkMetadata

SEEN_AT = datetime(2025, 6, 1, 12, tzinfo=timezone.utc)


class TestRecordSighting:
    """Tests for the link + mention upsert."""

    @pytest.fixture
    def rows(self, mock_connection: AsyncMock) -> AsyncMock:
        mock_connection.fetchrow.side_effect = [
            {"id": "link-uuid", "canonical_status": "failed", "needs_manual_review": True, "inserted": True},
            {"id": 10, "seen_at": SEEN_AT, "inserted": True},
        ]
        return mock_connection

    async def _record(self, repo: LinkRepository, status=CanonicalStatus.FAILED):
        return await repo.record_sighting(
            canonical_url="https://bit.ly/x",
            original_url="https://bit.ly/x",
            domain="bit.ly",
            status=status,
            error="HTTP 503",
            metadata=LinkMetadata(title="A title"),
            source_id=3,
            seen_at=SEEN_AT,
        )

    @pytest.mark.asyncio
    async def test_runs_both_upserts_in_one_transaction(
        self, mock_database: AsyncMock, rows: AsyncMock
    ) -> None:
        outcome = await self._record(LinkRepository(mock_database))

        mock_database.transaction.assert_called_once()
        assert rows.fetchrow.await_count == 2
        link_sql = rows.fetchrow.call_args_list[0][0][0]
        mention_sql = rows.fetchrow.call_args_list[1][0][0]
        assert "ON CONFLICT (canonical_url)" in link_sql
        assert "ON CONFLICT (link_id, source_id)" in mention_sql
        assert "GREATEST(mentions.seen_at, EXCLUDED.seen_at)" in mention_sql

        assert outcome.link_id == "link-uuid"
        assert outcome.link_inserted
        assert outcome.mention_inserted
        assert outcome.canonical_status == CanonicalStatus.FAILED
        assert outcome.needs_manual_review
        assert outcome.mention_seen_at == SEEN_AT

    @pytest.mark.asyncio
    async def test_link_params(self, mock_database: AsyncMock, rows: AsyncMock) -> None:
        await self._record(LinkRepository(mock_database))

        args = rows.fetchrow.call_args_list[0][0]
        assert args[1:4] == ("https://bit.ly/x", "https://bit.ly/x", "bit.ly")
        assert args[4] == "A title"
        assert args[9] == "failed"
        assert args[10] == "HTTP 503"
        assert args[11] is True
        assert args[12] == SEEN_AT
        assert set(args[13]) == PLACEHOLDER_TITLES

    @pytest.mark.asyncio
    async def test_mention_params(self, mock_database: AsyncMock, rows: AsyncMock) -> None:
        await self._record(LinkRepository(mock_database), status=CanonicalStatus.SUCCESS)

        args = rows.fetchrow.call_args_list[1][0]
        assert args[1:] == ("link-uuid", 3, SEEN_AT)
        link_args = rows.fetchrow.call_args_list[0][0]
        assert link_args[11] is False

    def test_metadata_only_improves(self) -> None:
        assert "links.title IS NULL" in _UPSERT_LINK_SQL
        assert "COALESCE(links.published_at, EXCLUDED.published_at)" in _UPSERT_LINK_SQL
        assert "GREATEST(links.last_seen_at, EXCLUDED.last_seen_at)" in _UPSERT_LINK_SQL
        # first_seen_at is never part of the update clause
        update_clause = _UPSERT_LINK_SQL.split("DO UPDATE SET", 1)[1]
        assert "first_seen_at" not in update_clause


class TestReads:
    """Tests for link queries."""

    @pytest.mark.asyncio
    async def test_get_converts_row(self, mock_database: AsyncMock, link_row: dict) -> None:
        mock_database.fetchrow.return_value = link_row

        link = await LinkRepository(mock_database).get(link_row["id"])

        assert link is not None
        assert link.canonical_status == CanonicalStatus.FAILED
        assert link.needs_manual_review
        assert link.first_seen_at < link.last_seen_at

    @pytest.mark.asyncio
    async def test_get_missing(self, mock_database: AsyncMock) -> None:
        assert await LinkRepository(mock_database).get("nope") is None

    @pytest.mark.asyncio
    async def test_list_needs_review(self, mock_database: AsyncMock, link_row: dict) -> None:
        mock_database.fetch.return_value = [link_row]

        links = await LinkRepository(mock_database).list_needs_review(limit=5)

        sql, limit = mock_database.fetch.call_args[0]
        assert "needs_manual_review = TRUE" in sql
        assert limit == 5
        assert len(links) == 1

    @pytest.mark.asyncio
    async def test_get_mentions(self, mock_database: AsyncMock) -> None:
        mock_database.fetch.return_value = [
            {"id": 1, "link_id": "l", "source_id": 2, "seen_at": SEEN_AT},
        ]

        mentions = await LinkRepository(mock_database).get_mentions("l")

        assert mentions[0].source_id == 2
        assert mentions[0].seen_at == SEEN_AT

    @pytest.mark.asyncio
    async def test_count_by_status(self, mock_database: AsyncMock) -> None:
        mock_database.fetch.return_value = [
            {"canonical_status": "success", "n": 10},
            {"canonical_status": "failed", "n": 2},
        ]

        assert await LinkRepository(mock_database).count_by_status() == {"success": 10, "failed": 2}


class TestCanonicalRepair:
    """Tests for mark_canonical_success/failed."""

    @pytest.mark.asyncio
    async def test_mark_success(self, mock_database: AsyncMock, link_row: dict) -> None:
        mock_database.fetchrow.return_value = {
            **link_row,
            "canonical_status": "success",
            "canonical_error": None,
            "needs_manual_review": False,
        }

        link = await LinkRepository(mock_database).mark_canonical_success(
            link_row["id"], "https://example.com/article", "example.com"
        )

        sql = mock_database.fetchrow.call_args[0][0]
        assert "needs_manual_review = FALSE" in sql
        assert link.canonical_status == CanonicalStatus.SUCCESS
        assert not link.needs_manual_review

    @pytest.mark.asyncio
    async def test_mark_failed_never_downgrades_success(self, mock_database: AsyncMock) -> None:
        await LinkRepository(mock_database).mark_canonical_failed("l", "HTTP 500")

        sql = mock_database.execute.call_args[0][0]
        assert "canonical_status <> 'success'" in sql
