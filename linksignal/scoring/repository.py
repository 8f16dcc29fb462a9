"""Read-only queries joining mentions with their sources for scoring."""

import logging
from collections import defaultdict

from linksignal.scoring.schemas import ScoredMention
from linksignal.storage.database import Database

logger = logging.getLogger(__name__)

_SCORED_MENTIONS_SQL = """
SELECT
    m.link_id,
    m.source_id,
    m.seen_at,
    s.tier,
    s.trust_score,
    s.show_on_dashboard,
    s.base_domain,
    s.internal_domains,
    s.include_own_links
FROM mentions m
JOIN sources s ON s.id = m.source_id
WHERE m.link_id = ANY($1::uuid[])
"""


def _record_to_scored_mention(record) -> ScoredMention:
    """Convert an asyncpg Record to a ScoredMention."""
    return ScoredMention(
        source_id=record["source_id"],
        seen_at=record["seen_at"],
        tier=record["tier"],
        trust_score=record["trust_score"],
        show_on_dashboard=record["show_on_dashboard"],
        base_domain=record["base_domain"],
        internal_domains=list(record["internal_domains"] or []),
        include_own_links=record["include_own_links"],
    )


class ScoringRepository:
    """Loads mentions with source attributes for a set of links."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def get_scored_mentions(
        self, link_ids: list[str]
    ) -> dict[str, list[ScoredMention]]:
        """Mentions per link id. Links without mentions map to an empty list."""
        grouped: dict[str, list[ScoredMention]] = defaultdict(list)
        if not link_ids:
            return {}

        rows = await self._db.fetch(_SCORED_MENTIONS_SQL, link_ids)
        for row in rows:
            grouped[str(row["link_id"])].append(_record_to_scored_mention(row))

        return {link_id: grouped.get(link_id, []) for link_id in link_ids}
