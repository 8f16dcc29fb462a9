"""Velocity and weighted-velocity scoring for links.

Scores how many independent sources are pointing at a link right now:

  velocity          = distinct counted sources
  weighted_velocity = sum(time_weight * trust_weight * tier_weight)
  ranking_score     = velocity * weighted_velocity / (hours_since_first + 2) ** gravity

A mention is counted when its source is shown on the dashboard and it is
not a self-mention. Only the latest mention of each source contributes to
the weighted sum, so a source that re-sights a link cannot inflate it.

All methods are pure; the clock is injected.
"""

from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from linksignal.scoring.config import ScoringConfig
from linksignal.scoring.schemas import LinkScore, ScoredMention


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScoringEngine:
    """Stateless link scorer.

    Usage:
        engine = ScoringEngine()
        score = engine.score_link(mentions, canonical_url=link.canonical_url)
        ranked = engine.rank(scores)
    """

    def __init__(
        self,
        config: ScoringConfig | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config or ScoringConfig()
        self._now = now or _utcnow
        self._tier_weights = {
            "TIER_1": self._config.tier_1_weight,
            "TIER_2": self._config.tier_2_weight,
            "TIER_3": self._config.tier_3_weight,
            "TIER_4": self._config.tier_4_weight,
        }

    @property
    def config(self) -> ScoringConfig:
        return self._config

    # ── Weights ──────────────────────────────────────────

    def time_weight(self, seen_at: datetime, now: datetime | None = None) -> float:
        """Recency weight for a mention seen at ``seen_at``."""
        now = now or self._now()
        hours_ago = (now - seen_at).total_seconds() / 3600.0

        if hours_ago <= 24:
            return self._config.weight_24h
        if hours_ago <= 48:
            return self._config.weight_48h
        if hours_ago <= 72:
            return self._config.weight_72h
        return self._config.weight_older

    def tier_weight(self, tier: object) -> float:
        """Weight for a source tier; unknown tiers get the default."""
        key = getattr(tier, "value", tier)
        return self._tier_weights.get(key, self._config.default_tier_weight)

    def trust_weight(self, trust_score: int | None) -> float:
        """Trust score normalized to 0-1."""
        if trust_score is None:
            trust_score = self._config.default_trust_score
        return trust_score / 10.0

    # ── Scoring ──────────────────────────────────────────

    def counted_mentions(
        self,
        mentions: Iterable[ScoredMention],
        canonical_url: str | None = None,
    ) -> dict[int, ScoredMention]:
        """Latest counted mention per source."""
        latest: dict[int, ScoredMention] = {}
        for mention in mentions:
            if not mention.show_on_dashboard:
                continue
            if canonical_url and mention.is_self_mention(canonical_url):
                continue
            current = latest.get(mention.source_id)
            if current is None or mention.seen_at > current.seen_at:
                latest[mention.source_id] = mention
        return latest

    def score_link(
        self,
        mentions: Iterable[ScoredMention],
        now: datetime | None = None,
        *,
        canonical_url: str | None = None,
    ) -> LinkScore:
        """Score a link from its mentions.

        Args:
            mentions: Mentions with source attributes.
            now: Reference time (defaults to the injected clock).
            canonical_url: Enables self-mention exclusion when given.

        Returns:
            LinkScore. A link with no counted mentions scores zero.
        """
        now = now or self._now()
        counted = self.counted_mentions(mentions, canonical_url)

        if not counted:
            return LinkScore(
                velocity=0,
                weighted_velocity=0.0,
                is_trending=False,
                ranking_score=0.0,
                canonical_url=canonical_url,
            )

        weighted = 0.0
        for mention in counted.values():
            weighted += (
                self.time_weight(mention.seen_at, now)
                * self.trust_weight(mention.trust_score)
                * self.tier_weight(mention.tier)
            )

        velocity = len(counted)
        first = min(m.seen_at for m in counted.values())
        last = max(m.seen_at for m in counted.values())

        return LinkScore(
            velocity=velocity,
            weighted_velocity=weighted,
            is_trending=self.is_trending(velocity, weighted),
            ranking_score=self.ranking_score(velocity, weighted, first, now),
            canonical_url=canonical_url,
            first_mention_at=first,
            last_mention_at=last,
            source_ids=sorted(counted),
        )

    def is_trending(self, velocity: int, weighted_velocity: float) -> bool:
        return (
            velocity >= self._config.trending_min_velocity
            and weighted_velocity >= self._config.trending_threshold
        )

    def ranking_score(
        self,
        velocity: int,
        weighted_velocity: float,
        first_mention_at: datetime,
        now: datetime | None = None,
    ) -> float:
        """Hacker-News style age-decayed score."""
        now = now or self._now()
        hours = max(0.0, (now - first_mention_at).total_seconds() / 3600.0)
        denominator = (hours + self._config.ranking_hour_offset) ** self._config.gravity
        return velocity * weighted_velocity / denominator

    def rank(self, scores: Iterable[LinkScore]) -> list[LinkScore]:
        """Order scores by ranking score, then weighted velocity, then velocity."""
        return sorted(
            scores,
            key=lambda s: (s.ranking_score, s.weighted_velocity, s.velocity),
            reverse=True,
        )
