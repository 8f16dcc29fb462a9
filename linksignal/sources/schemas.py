"""Data models for the sources module."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from linksignal.canonicalization.normalizer import extract_base_domain

VALID_TRUST_RANGE = range(1, 11)


class SourceTier(str, Enum):
    """Editorial tier of a source.

    TIER_1: major publications
    TIER_2: top newsletters
    TIER_3: quality blogs and Substacks
    TIER_4: aggregators and link roundups
    """

    TIER_1 = "TIER_1"
    TIER_2 = "TIER_2"
    TIER_3 = "TIER_3"
    TIER_4 = "TIER_4"


@dataclass
class Source:
    """A feed, newsletter or manual-entry origin of mentions.

    ``base_domain`` and ``internal_domains`` identify the source's own site;
    links pointing back at it are self-links and are skipped unless
    ``include_own_links`` is set.
    """

    name: str
    id: int | None = None
    feed_url: str | None = None
    active: bool = True
    tier: SourceTier = SourceTier.TIER_3
    trust_score: int = 5
    show_on_dashboard: bool = True
    base_domain: str | None = None
    internal_domains: list[str] = field(default_factory=list)
    include_own_links: bool = False
    last_error: str | None = None
    last_error_at: datetime | None = None
    last_fetched_at: datetime | None = None
    consecutive_errors: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.tier, SourceTier):
            self.tier = SourceTier(self.tier)
        if self.trust_score not in VALID_TRUST_RANGE:
            raise ValueError(f"trust_score must be 1-10, got {self.trust_score}")
        if self.base_domain:
            self.base_domain = extract_base_domain(self.base_domain)
        self.internal_domains = [d.strip().lower() for d in self.internal_domains if d and d.strip()]

    @property
    def own_domains(self) -> set[str]:
        """Base domains considered the source's own site."""
        domains = {extract_base_domain(d) for d in self.internal_domains}
        if self.base_domain:
            domains.add(self.base_domain)
        domains.discard("")
        return domains

    def owns_url(self, url: str) -> bool:
        """True if ``url`` points at the source's own site."""
        own = self.own_domains
        if not own:
            return False
        return extract_base_domain(url) in own

    def should_skip_url(self, url: str) -> bool:
        """True if ``url`` is a self-link that this source does not count."""
        return not self.include_own_links and self.owns_url(url)
