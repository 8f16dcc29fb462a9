"""Link scoring service: loads mentions, scores and ranks links."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from linksignal.links.repository import LinkRepository
from linksignal.scoring.config import ScoringConfig
from linksignal.scoring.engine import ScoringEngine
from linksignal.scoring.repository import ScoringRepository
from linksignal.scoring.schemas import LinkScore
from linksignal.storage.database import Database

logger = logging.getLogger(__name__)


class LinkScoringService:
    """Async orchestrator around the pure ScoringEngine.

    Scores are computed on read; nothing is persisted.
    """

    def __init__(
        self,
        database: Database,
        engine: ScoringEngine | None = None,
        config: ScoringConfig | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or (engine.config if engine else ScoringConfig())
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._engine = engine or ScoringEngine(self._config, now=self._now)
        self._links = LinkRepository(database)
        self._mentions = ScoringRepository(database)

    async def score_link(self, link_id: str, now: datetime | None = None) -> LinkScore | None:
        """Score one link. Returns None if the link does not exist."""
        link = await self._links.get(link_id)
        if link is None:
            return None

        mentions = await self._mentions.get_scored_mentions([link.id])
        score = self._engine.score_link(
            mentions.get(link.id, []),
            now or self._now(),
            canonical_url=link.canonical_url,
        )
        score.link_id = link.id
        return score

    async def ranked(
        self,
        limit: int = 50,
        now: datetime | None = None,
        lookback_hours: int | None = None,
        trending_only: bool = False,
    ) -> list[LinkScore]:
        """Rank links sighted within the lookback window.

        Args:
            limit: Maximum scores returned
            now: Reference time
            lookback_hours: Window size (default ``SCORING_TRENDING_LOOKBACK_HOURS``)
            trending_only: Keep only links meeting both trending thresholds

        Returns:
            Scores ordered by ranking score
        """
        now = now or self._now()
        window = timedelta(hours=lookback_hours or self._config.trending_lookback_hours)
        links = await self._links.list_seen_since(now - window)
        if not links:
            return []

        mentions = await self._mentions.get_scored_mentions([link.id for link in links])

        scores: list[LinkScore] = []
        for link in links:
            score = self._engine.score_link(
                mentions.get(link.id, []),
                now,
                canonical_url=link.canonical_url,
            )
            score.link_id = link.id
            if trending_only and not score.is_trending:
                continue
            scores.append(score)

        ranked = self._engine.rank(scores)[:limit]
        logger.debug(
            "Ranked %d of %d links (trending_only=%s)", len(ranked), len(links), trending_only
        )
        return ranked

    async def trending(self, limit: int = 50, now: datetime | None = None) -> list[LinkScore]:
        """Trending links, best first."""
        return await self.ranked(limit=limit, now=now, trending_only=True)
