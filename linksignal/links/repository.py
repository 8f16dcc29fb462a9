"""Database repository for the links and mentions tables."""

import logging
from dataclasses import dataclass
from datetime import datetime

from linksignal.canonicalization.schemas import CanonicalStatus
from linksignal.links.schemas import PLACEHOLDER_TITLES, Link, LinkMetadata, Mention
from linksignal.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS links (
    id                   UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    canonical_url        TEXT NOT NULL UNIQUE,
    original_url         TEXT NOT NULL,
    domain               TEXT NOT NULL DEFAULT '',
    title                TEXT,
    description          TEXT,
    image_url            TEXT,
    author               TEXT,
    published_at         TIMESTAMPTZ,
    canonical_status     TEXT NOT NULL DEFAULT 'pending'
                         CHECK (canonical_status IN ('pending', 'success', 'failed')),
    canonical_error      TEXT,
    needs_manual_review  BOOLEAN NOT NULL DEFAULT FALSE,
    first_seen_at        TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    last_seen_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at           TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_links_last_seen
    ON links(last_seen_at DESC);
CREATE INDEX IF NOT EXISTS idx_links_domain
    ON links(domain);
CREATE INDEX IF NOT EXISTS idx_links_needs_review
    ON links(first_seen_at DESC) WHERE needs_manual_review = TRUE;

CREATE TABLE IF NOT EXISTS mentions (
    id          BIGSERIAL PRIMARY KEY,
    link_id     UUID NOT NULL REFERENCES links(id) ON DELETE CASCADE,
    source_id   BIGINT NOT NULL REFERENCES sources(id) ON DELETE CASCADE,
    seen_at     TIMESTAMPTZ NOT NULL,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (link_id, source_id)
);

CREATE INDEX IF NOT EXISTS idx_mentions_seen_at
    ON mentions(seen_at DESC);
CREATE INDEX IF NOT EXISTS idx_mentions_source
    ON mentions(source_id);
"""

# Metadata only improves: a stored value is replaced when it is null, blank
# or (for titles) a placeholder. last_seen_at only moves forward. A
# successful sighting repairs a failed canonicalization.
_UPSERT_LINK_SQL = """
INSERT INTO links (
    canonical_url, original_url, domain,
    title, description, image_url, author, published_at,
    canonical_status, canonical_error, needs_manual_review,
    first_seen_at, last_seen_at
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $12)
ON CONFLICT (canonical_url) DO UPDATE SET
    title = CASE
        WHEN EXCLUDED.title IS NOT NULL AND (
            links.title IS NULL
            OR btrim(links.title) = ''
            OR lower(btrim(links.title)) = ANY($13::text[])
            OR links.title IN (links.canonical_url, links.original_url)
        ) THEN EXCLUDED.title
        ELSE links.title
    END,
    description = CASE
        WHEN links.description IS NULL OR btrim(links.description) = ''
        THEN COALESCE(EXCLUDED.description, links.description)
        ELSE links.description
    END,
    image_url = COALESCE(NULLIF(btrim(links.image_url), ''), EXCLUDED.image_url),
    author = COALESCE(NULLIF(btrim(links.author), ''), EXCLUDED.author),
    published_at = COALESCE(links.published_at, EXCLUDED.published_at),
    last_seen_at = GREATEST(links.last_seen_at, EXCLUDED.last_seen_at),
    canonical_status = CASE
        WHEN EXCLUDED.canonical_status = 'success' THEN 'success'
        WHEN links.canonical_status = 'pending' THEN EXCLUDED.canonical_status
        ELSE links.canonical_status
    END,
    canonical_error = CASE
        WHEN EXCLUDED.canonical_status = 'success' THEN NULL
        WHEN links.canonical_status = 'pending' THEN EXCLUDED.canonical_error
        ELSE links.canonical_error
    END,
    needs_manual_review = CASE
        WHEN EXCLUDED.canonical_status = 'success' THEN FALSE
        WHEN links.canonical_status = 'pending' THEN EXCLUDED.needs_manual_review
        ELSE links.needs_manual_review
    END,
    updated_at = NOW()
RETURNING id, canonical_status, needs_manual_review, (xmax = 0) AS inserted
"""

_UPSERT_MENTION_SQL = """
INSERT INTO mentions (link_id, source_id, seen_at)
VALUES ($1, $2, $3)
ON CONFLICT (link_id, source_id) DO UPDATE SET
    seen_at = GREATEST(mentions.seen_at, EXCLUDED.seen_at)
RETURNING id, seen_at, (xmax = 0) AS inserted
"""

_MARK_CANONICAL_SUCCESS_SQL = """
UPDATE links SET
    canonical_url = $2,
    domain = $3,
    canonical_status = 'success',
    canonical_error = NULL,
    needs_manual_review = FALSE,
    updated_at = NOW()
WHERE id = $1
RETURNING *
"""

_MARK_CANONICAL_FAILED_SQL = """
UPDATE links SET
    canonical_error = $2,
    updated_at = NOW()
WHERE id = $1 AND canonical_status <> 'success'
"""


@dataclass
class SightingOutcome:
    """What ``record_sighting`` changed."""

    link_id: str
    link_inserted: bool
    mention_inserted: bool
    canonical_status: CanonicalStatus
    needs_manual_review: bool
    mention_seen_at: datetime | None = None


def _record_to_link(record) -> Link:
    """Convert an asyncpg Record to a Link dataclass."""
    return Link(
        id=str(record["id"]),
        canonical_url=record["canonical_url"],
        original_url=record["original_url"],
        domain=record["domain"],
        title=record["title"],
        description=record["description"],
        image_url=record["image_url"],
        author=record["author"],
        published_at=record["published_at"],
        canonical_status=CanonicalStatus(record["canonical_status"]),
        canonical_error=record["canonical_error"],
        needs_manual_review=record["needs_manual_review"],
        first_seen_at=record["first_seen_at"],
        last_seen_at=record["last_seen_at"],
    )


def _record_to_mention(record) -> Mention:
    return Mention(
        id=record["id"],
        link_id=str(record["link_id"]),
        source_id=record["source_id"],
        seen_at=record["seen_at"],
    )


class LinkRepository:
    """Persistence for links and their mentions.

    The ``canonical_url`` unique constraint is the only concurrency control:
    concurrent sightings of the same canonical URL converge on one row via
    ``INSERT ... ON CONFLICT``.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_tables(self) -> None:
        """Create links and mentions tables (idempotent).

        The sources table must exist first.
        """
        await self._db.execute(_CREATE_TABLES_SQL)
        logger.info("Links and mentions tables ensured")

    async def record_sighting(
        self,
        *,
        canonical_url: str,
        original_url: str,
        domain: str,
        status: CanonicalStatus,
        error: str | None,
        metadata: LinkMetadata,
        source_id: int,
        seen_at: datetime,
    ) -> SightingOutcome:
        """Upsert the Link and its Mention for one source in one transaction.

        Args:
            canonical_url: Link identity
            original_url: Raw URL, stored only when the Link is created
            domain: Host of the canonical URL
            status: Canonicalization outcome of this sighting
            error: Canonicalization error, if any
            metadata: Candidate metadata, merged without downgrading
            source_id: Source that produced the sighting
            seen_at: Sighting timestamp

        Returns:
            SightingOutcome describing what was created or refreshed
        """
        async with self._db.transaction() as conn:
            link_row = await conn.fetchrow(
                _UPSERT_LINK_SQL,
                canonical_url,
                original_url,
                domain,
                metadata.title,
                metadata.description,
                metadata.image_url,
                metadata.author,
                metadata.published_at,
                status.value,
                error,
                status == CanonicalStatus.FAILED,
                seen_at,
                list(PLACEHOLDER_TITLES),
            )
            mention_row = await conn.fetchrow(
                _UPSERT_MENTION_SQL,
                link_row["id"],
                source_id,
                seen_at,
            )

        return SightingOutcome(
            link_id=str(link_row["id"]),
            link_inserted=link_row["inserted"],
            mention_inserted=mention_row["inserted"],
            canonical_status=CanonicalStatus(link_row["canonical_status"]),
            needs_manual_review=link_row["needs_manual_review"],
            mention_seen_at=mention_row["seen_at"],
        )

    async def get(self, link_id: str) -> Link | None:
        """Fetch a link by id."""
        row = await self._db.fetchrow("SELECT * FROM links WHERE id = $1", link_id)
        return _record_to_link(row) if row else None

    async def get_by_canonical_url(self, canonical_url: str) -> Link | None:
        """Fetch a link by its canonical URL."""
        row = await self._db.fetchrow(
            "SELECT * FROM links WHERE canonical_url = $1", canonical_url
        )
        return _record_to_link(row) if row else None

    async def list_needs_review(self, limit: int = 50) -> list[Link]:
        """Links whose canonicalization failed, newest first."""
        rows = await self._db.fetch(
            """
            SELECT * FROM links
            WHERE needs_manual_review = TRUE
            ORDER BY first_seen_at DESC
            LIMIT $1
            """,
            limit,
        )
        return [_record_to_link(r) for r in rows]

    async def list_seen_since(self, since: datetime, limit: int = 500) -> list[Link]:
        """Links sighted at or after ``since``, most recent first."""
        rows = await self._db.fetch(
            """
            SELECT * FROM links
            WHERE last_seen_at >= $1
            ORDER BY last_seen_at DESC
            LIMIT $2
            """,
            since,
            limit,
        )
        return [_record_to_link(r) for r in rows]

    async def get_mentions(self, link_id: str) -> list[Mention]:
        """All mentions of a link, latest sighting first."""
        rows = await self._db.fetch(
            "SELECT * FROM mentions WHERE link_id = $1 ORDER BY seen_at DESC",
            link_id,
        )
        return [_record_to_mention(r) for r in rows]

    async def mark_canonical_success(
        self,
        link_id: str,
        canonical_url: str,
        domain: str,
    ) -> Link | None:
        """Move a link to ``success`` with a new canonical URL.

        Raises:
            asyncpg.UniqueViolationError: ``canonical_url`` belongs to another link
        """
        row = await self._db.fetchrow(
            _MARK_CANONICAL_SUCCESS_SQL, link_id, canonical_url, domain
        )
        return _record_to_link(row) if row else None

    async def mark_canonical_failed(self, link_id: str, error: str | None) -> None:
        """Record a failed re-canonicalization attempt."""
        await self._db.execute(_MARK_CANONICAL_FAILED_SQL, link_id, error)

    async def count_by_status(self) -> dict[str, int]:
        """Link counts grouped by canonical status."""
        rows = await self._db.fetch(
            "SELECT canonical_status, COUNT(*) AS n FROM links GROUP BY canonical_status"
        )
        return {r["canonical_status"]: r["n"] for r in rows}
