"""Tests for SourcesService."""

import json
import time
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from linksignal.sources.config import SourcesConfig
from linksignal.sources.schemas import Source
from linksignal.sources.service import SourcesService, filter_own_links


@pytest.fixture
def config() -> SourcesConfig:
    return SourcesConfig(cache_ttl_seconds=60)


@pytest.fixture
def service(mock_database: AsyncMock, config: SourcesConfig) -> SourcesService:
    return SourcesService(mock_database, config)


class TestSnapshot:
    """Tests for the cached id -> Source snapshot."""

    @pytest.mark.asyncio
    async def test_fetches_from_db_on_first_call(
        self, service: SourcesService, sample_db_row: dict
    ) -> None:
        service.repository._db.fetch.return_value = [sample_db_row]

        result = await service.snapshot()

        assert list(result) == [1]
        assert result[1].name == "Intelligencer"

    @pytest.mark.asyncio
    async def test_returns_cached_on_second_call(
        self, service: SourcesService, sample_db_row: dict
    ) -> None:
        service.repository._db.fetch.return_value = [sample_db_row]

        first = await service.snapshot()
        # A later DB change is invisible until the TTL expires
        service.repository._db.fetch.return_value = []
        second = await service.snapshot()

        assert first is second
        assert service.repository._db.fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_refetches_after_ttl(
        self, service: SourcesService, sample_db_row: dict
    ) -> None:
        service.repository._db.fetch.return_value = [sample_db_row]
        await service.snapshot()

        # Simulate TTL expiry
        service._snapshot_at = time.monotonic() - 120

        sample_db_row["name"] = "Renamed"
        service.repository._db.fetch.return_value = [sample_db_row]
        result = await service.snapshot()

        assert result[1].name == "Renamed"

    @pytest.mark.asyncio
    async def test_get_pollable_skips_manual_and_inactive(
        self, service: SourcesService, sample_db_row: dict, manual_db_row: dict
    ) -> None:
        inactive = {**sample_db_row, "id": 3, "name": "Dormant", "active": False}
        service.repository._db.fetch.return_value = [sample_db_row, manual_db_row, inactive]

        result = await service.get_pollable()

        assert [s.name for s in result] == ["Intelligencer"]

    @pytest.mark.asyncio
    async def test_get_unknown_id(self, service: SourcesService) -> None:
        assert await service.get(42) is None


class TestInvalidateCache:
    """Tests for cache invalidation."""

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(
        self, service: SourcesService, sample_db_row: dict
    ) -> None:
        service.repository._db.fetch.return_value = [sample_db_row]
        await service.snapshot()

        service.invalidate_cache()

        sample_db_row["name"] = "Changed"
        service.repository._db.fetch.return_value = [sample_db_row]
        result = await service.snapshot()

        assert result[1].name == "Changed"


class TestSeedFromJson:
    """Tests for JSON seed loading."""

    @pytest.mark.asyncio
    async def test_loads_and_upserts(
        self, service: SourcesService, mock_connection: AsyncMock, tmp_path: Path
    ) -> None:
        seed_data = [
            {"name": "Test Letter", "feed_url": "https://test.example.com/feed", "trust_score": 7},
        ]
        seed_file = tmp_path / "test_seed.json"
        seed_file.write_text(json.dumps(seed_data))

        result = await service.seed_from_json(seed_file)

        assert result == 1
        mock_connection.executemany.assert_called_once()

    @pytest.mark.asyncio
    async def test_bundled_seed_file(
        self, service: SourcesService, mock_connection: AsyncMock
    ) -> None:
        result = await service.seed_from_json()

        assert result == 9
        rows = mock_connection.executemany.call_args[0][1]
        manual = next(r for r in rows if r[0] == "Manual entry")
        assert manual[1] is None
        assert manual[5] is False

    @pytest.mark.asyncio
    async def test_invalidates_cache_after_seed(
        self, service: SourcesService, tmp_path: Path
    ) -> None:
        # Prime cache
        service._snapshot = {1: Source(name="OLD", id=1)}
        service._snapshot_at = time.monotonic()

        seed_file = tmp_path / "test_seed.json"
        seed_file.write_text(json.dumps([{"name": "NEW"}]))

        await service.seed_from_json(seed_file)

        assert service._snapshot is None


class TestEnsureSeeded:
    """Tests for auto-seed on init."""

    @pytest.mark.asyncio
    async def test_skips_when_disabled(self, mock_database: AsyncMock) -> None:
        config = SourcesConfig(seed_on_init=False)
        svc = SourcesService(mock_database, config)

        await svc.ensure_seeded()

        mock_database.fetchval.assert_not_called()

    @pytest.mark.asyncio
    async def test_skips_when_table_has_data(self, service: SourcesService) -> None:
        service.repository._db.fetchval.return_value = 9

        await service.ensure_seeded()

        service.repository._db.transaction.assert_not_called()

    @pytest.mark.asyncio
    async def test_seeds_when_table_empty(self, service: SourcesService) -> None:
        service.repository._db.fetchval.return_value = 0

        with patch.object(
            service, "seed_from_json", new_callable=AsyncMock
        ) as mock_seed:
            mock_seed.return_value = 9
            await service.ensure_seeded()
            mock_seed.assert_called_once()


class TestFilterOwnLinks:
    """Tests for filter_own_links."""

    def test_drops_self_links_in_order(self, sample_source: Source) -> None:
        urls = [
            "https://nytimes.com/a",
            "https://nymag.com/intelligencer/b",
            "https://www.vulture.com/c",
            "https://theverge.com/d",
        ]
        assert filter_own_links(sample_source, urls) == [
            "https://nytimes.com/a",
            "https://theverge.com/d",
        ]

    def test_keeps_everything_when_including_own_links(self, sample_source: Source) -> None:
        sample_source.include_own_links = True
        urls = ["https://nymag.com/a", "https://nytimes.com/b"]
        assert filter_own_links(sample_source, urls) == urls
