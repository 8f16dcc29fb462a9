"""Database repository for the sources table."""

import logging

from linksignal.sources.schemas import Source
from linksignal.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS sources (
    id                  BIGSERIAL PRIMARY KEY,
    name                TEXT NOT NULL UNIQUE,
    feed_url            TEXT,
    active              BOOLEAN NOT NULL DEFAULT TRUE,
    tier                TEXT NOT NULL DEFAULT 'TIER_3'
                        CHECK (tier IN ('TIER_1', 'TIER_2', 'TIER_3', 'TIER_4')),
    trust_score         INTEGER NOT NULL DEFAULT 5 CHECK (trust_score BETWEEN 1 AND 10),
    show_on_dashboard   BOOLEAN NOT NULL DEFAULT TRUE,
    base_domain         TEXT,
    internal_domains    TEXT[] NOT NULL DEFAULT '{}',
    include_own_links   BOOLEAN NOT NULL DEFAULT FALSE,
    last_error          TEXT,
    last_error_at       TIMESTAMPTZ,
    last_fetched_at     TIMESTAMPTZ,
    consecutive_errors  INTEGER NOT NULL DEFAULT 0,
    created_at          TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at          TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_sources_active
    ON sources(active) WHERE active = TRUE;
"""

_UPSERT_SQL = """
INSERT INTO sources (
    name, feed_url, active, tier, trust_score, show_on_dashboard,
    base_domain, internal_domains, include_own_links
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
ON CONFLICT (name) DO UPDATE SET
    feed_url = EXCLUDED.feed_url,
    active = EXCLUDED.active,
    tier = EXCLUDED.tier,
    trust_score = EXCLUDED.trust_score,
    show_on_dashboard = EXCLUDED.show_on_dashboard,
    base_domain = EXCLUDED.base_domain,
    internal_domains = EXCLUDED.internal_domains,
    include_own_links = EXCLUDED.include_own_links,
    updated_at = NOW()
RETURNING id
"""

_RECORD_SUCCESS_SQL = """
UPDATE sources SET
    last_fetched_at = $2,
    last_error = NULL,
    last_error_at = NULL,
    consecutive_errors = 0,
    updated_at = NOW()
WHERE id = $1
"""

_RECORD_FAILURE_SQL = """
UPDATE sources SET
    last_error = $2,
    last_error_at = $3,
    consecutive_errors = consecutive_errors + 1,
    updated_at = NOW()
WHERE id = $1
RETURNING consecutive_errors
"""


def _record_to_source(record) -> Source:
    """Convert an asyncpg Record to a Source dataclass."""
    return Source(
        id=record["id"],
        name=record["name"],
        feed_url=record["feed_url"],
        active=record["active"],
        tier=record["tier"],
        trust_score=record["trust_score"],
        show_on_dashboard=record["show_on_dashboard"],
        base_domain=record["base_domain"],
        internal_domains=list(record["internal_domains"] or []),
        include_own_links=record["include_own_links"],
        last_error=record["last_error"],
        last_error_at=record["last_error_at"],
        last_fetched_at=record["last_fetched_at"],
        consecutive_errors=record["consecutive_errors"],
        created_at=record["created_at"],
        updated_at=record["updated_at"],
    )


def _upsert_args(source: Source) -> tuple:
    return (
        source.name,
        source.feed_url,
        source.active,
        source.tier.value,
        source.trust_score,
        source.show_on_dashboard,
        source.base_domain,
        source.internal_domains,
        source.include_own_links,
    )


class SourcesRepository:
    """CRUD operations for the sources table.

    The ingestion core treats sources as read-only except for the
    fetch-outcome bookkeeping in ``record_fetch_success`` and
    ``record_fetch_failure``.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the sources table and indexes (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Sources table ensured")

    async def upsert(self, source: Source) -> int:
        """Insert or update a single source keyed by name. Returns its id."""
        return await self._db.fetchval(_UPSERT_SQL, *_upsert_args(source))

    async def bulk_upsert(self, sources: list[Source]) -> int:
        """Insert or update multiple sources in one transaction.

        Returns the number of sources processed.
        """
        if not sources:
            return 0

        async with self._db.transaction() as conn:
            await conn.executemany(_UPSERT_SQL, [_upsert_args(s) for s in sources])

        logger.info("Bulk upserted %d sources", len(sources))
        return len(sources)

    async def get(self, source_id: int) -> Source | None:
        """Fetch a single source by id."""
        row = await self._db.fetchrow("SELECT * FROM sources WHERE id = $1", source_id)
        return _record_to_source(row) if row else None

    async def list_all(self) -> list[Source]:
        """Fetch every source, active or not."""
        rows = await self._db.fetch("SELECT * FROM sources ORDER BY name")
        return [_record_to_source(r) for r in rows]

    async def list_active(self, with_feed: bool = False) -> list[Source]:
        """Fetch active sources, optionally only those with a feed URL."""
        sql = "SELECT * FROM sources WHERE active = TRUE"
        if with_feed:
            sql += " AND feed_url IS NOT NULL"
        rows = await self._db.fetch(sql + " ORDER BY name")
        return [_record_to_source(r) for r in rows]

    async def record_fetch_success(self, source_id: int, fetched_at) -> None:
        """Clear error state after a successful fetch."""
        await self._db.execute(_RECORD_SUCCESS_SQL, source_id, fetched_at)

    async def record_fetch_failure(self, source_id: int, error: str, failed_at) -> int:
        """Record a failed fetch. Returns the new consecutive error count."""
        count = await self._db.fetchval(_RECORD_FAILURE_SQL, source_id, error[:1000], failed_at)
        return count or 0

    async def count(self) -> int:
        """Count total sources in the table."""
        return await self._db.fetchval("SELECT COUNT(*) FROM sources")
