"""Data models for link scoring."""

from dataclasses import dataclass, field
from datetime import datetime

from linksignal.canonicalization.normalizer import extract_base_domain


@dataclass
class ScoredMention:
    """A mention joined with the attributes of its source.

    Attributes:
        source_id: Mentioning source.
        seen_at: Latest sighting by that source.
        tier: Source tier name (``TIER_1`` .. ``TIER_4``); unknown values
            get the default tier weight.
        trust_score: Source trust, 1-10.
        show_on_dashboard: Sources hidden from the dashboard do not count.
        base_domain: Source's own site, for self-mention detection.
        internal_domains: Additional domains the source owns.
        include_own_links: Self-mentions count when set.
    """

    source_id: int
    seen_at: datetime
    tier: str | None = None
    trust_score: int | None = None
    show_on_dashboard: bool = True
    base_domain: str | None = None
    internal_domains: list[str] = field(default_factory=list)
    include_own_links: bool = False

    def is_self_mention(self, canonical_url: str) -> bool:
        """True if the source is pointing at its own site and does not count that."""
        if self.include_own_links:
            return False
        own = {extract_base_domain(d) for d in self.internal_domains if d}
        if self.base_domain:
            own.add(extract_base_domain(self.base_domain))
        own.discard("")
        if not own:
            return False
        return extract_base_domain(canonical_url) in own


@dataclass
class LinkScore:
    """Signal strength of one link at a point in time.

    Attributes:
        velocity: Distinct counted sources.
        weighted_velocity: Sum of time x trust x tier over the latest
            mention of each counted source.
        is_trending: Both trending thresholds met.
        ranking_score: Age-decayed score used for ordering.
        first_mention_at: Earliest counted sighting.
        last_mention_at: Latest counted sighting.
        source_ids: Counted sources, sorted.
    """

    velocity: int
    weighted_velocity: float
    is_trending: bool
    ranking_score: float
    link_id: str | None = None
    canonical_url: str | None = None
    first_mention_at: datetime | None = None
    last_mention_at: datetime | None = None
    source_ids: list[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "link_id": self.link_id,
            "canonical_url": self.canonical_url,
            "velocity": self.velocity,
            "weighted_velocity": round(self.weighted_velocity, 4),
            "is_trending": self.is_trending,
            "ranking_score": round(self.ranking_score, 6),
            "first_mention_at": self.first_mention_at.isoformat() if self.first_mention_at else None,
            "last_mention_at": self.last_mention_at.isoformat() if self.last_mention_at else None,
            "source_ids": self.source_ids,
        }
