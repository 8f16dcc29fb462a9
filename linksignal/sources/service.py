"""Sources service with snapshot caching and seed support."""

import json
import logging
import time
from collections.abc import Iterable
from pathlib import Path

from linksignal.sources.config import SourcesConfig
from linksignal.sources.repository import SourcesRepository
from linksignal.sources.schemas import Source
from linksignal.storage.database import Database

logger = logging.getLogger(__name__)

_SEED_FILE = Path(__file__).parent / "data" / "seed_sources.json"


def _parse_seed_entry(entry: dict) -> Source:
    """Convert a JSON seed entry to a Source dataclass."""
    return Source(
        name=entry["name"],
        feed_url=entry.get("feed_url"),
        active=entry.get("active", True),
        tier=entry.get("tier", "TIER_3"),
        trust_score=entry.get("trust_score", 5),
        show_on_dashboard=entry.get("show_on_dashboard", True),
        base_domain=entry.get("base_domain"),
        internal_domains=entry.get("internal_domains", []),
        include_own_links=entry.get("include_own_links", False),
    )


def filter_own_links(source: Source, urls: Iterable[str]) -> list[str]:
    """Drop self-links for a source that does not count its own site.

    Order is preserved.
    """
    kept = [u for u in urls if not source.should_skip_url(u)]
    return kept


class SourcesService:
    """Cached access to the source registry with seed support.

    ``snapshot()`` returns an id -> Source mapping that callers treat as a
    read-only view; it is refreshed at most once per
    ``SOURCES_CACHE_TTL_SECONDS``.
    """

    def __init__(
        self,
        database: Database,
        config: SourcesConfig | None = None,
    ) -> None:
        self._config = config or SourcesConfig()
        self._repo = SourcesRepository(database)

        self._snapshot: dict[int, Source] | None = None
        self._snapshot_at: float = 0.0

    @property
    def repository(self) -> SourcesRepository:
        """Access the underlying repository for direct DB operations."""
        return self._repo

    # ── Cached accessors ────────────────────────────────────────

    async def snapshot(self) -> dict[int, Source]:
        """All sources keyed by id (cached)."""
        now = time.monotonic()
        ttl = self._config.cache_ttl_seconds
        if self._snapshot is not None and (now - self._snapshot_at) < ttl:
            return self._snapshot

        sources = await self._repo.list_all()
        self._snapshot = {s.id: s for s in sources}
        self._snapshot_at = now
        return self._snapshot

    async def get(self, source_id: int) -> Source | None:
        """Look up one source from the snapshot."""
        return (await self.snapshot()).get(source_id)

    async def get_pollable(self) -> list[Source]:
        """Active sources that have a feed URL."""
        return [s for s in (await self.snapshot()).values() if s.active and s.feed_url]

    def invalidate_cache(self) -> None:
        """Force-clear the snapshot so next access hits the DB."""
        self._snapshot = None
        self._snapshot_at = 0.0

    # ── Seed ────────────────────────────────────────────────────

    async def seed_from_json(self, path: Path | None = None) -> int:
        """Load sources from a JSON file into the database.

        Returns the number of sources upserted.
        """
        seed_path = path or _SEED_FILE
        with open(seed_path) as f:
            entries = json.load(f)

        sources = [_parse_seed_entry(e) for e in entries]
        count = await self._repo.bulk_upsert(sources)
        self.invalidate_cache()
        logger.info("Seeded %d sources from %s", count, seed_path)
        return count

    async def ensure_seeded(self) -> None:
        """Seed from default JSON if the table is empty and seed_on_init is True."""
        if not self._config.seed_on_init:
            return

        existing = await self._repo.count()
        if existing > 0:
            logger.debug("Sources table has %d rows, skipping seed", existing)
            return

        logger.info("Sources table empty, seeding from default JSON")
        await self.seed_from_json()
