"""Data models for canonicalization results."""

from dataclasses import dataclass, field
from enum import Enum


class CanonicalStatus(str, Enum):
    """Canonicalization state of a Link.

    ``pending`` only exists before the first attempt completes. ``failed``
    means the destination could not be confirmed and the Link needs review.
    """

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class Rejection(str, Enum):
    """Why a URL was refused before it could become a Link."""

    EXCLUDED = "excluded"
    BLACKLISTED = "blacklisted"
    CANONICAL_BLACKLISTED = "canonical_blacklisted"


REJECTION_MESSAGES: dict[Rejection, str] = {
    Rejection.EXCLUDED: "URL excluded (invalid protocol or localhost)",
    Rejection.BLACKLISTED: "Blacklisted",
    Rejection.CANONICAL_BLACKLISTED: "Canonical URL blacklisted",
}


@dataclass
class CanonicalResult:
    """Outcome of canonicalizing one raw URL.

    Attributes:
        canonical_url: Normalized, redirect-resolved identity. Falls back to
            the normalized original URL when resolution failed.
        original_url: The raw URL as submitted.
        domain: Lowercase host of the canonical URL without ``www.``.
        base_domain: Registrable domain, used for self-link exclusion.
        status: success or failed (soft failure, Link still created).
        error: Diagnostic for failed resolutions and rejections.
        redirect_chain: URLs visited, starting with the original.
        rejection: Set when the URL must not become a Link at all.
        from_cache: Whether the destination came from the cache.
    """

    canonical_url: str
    original_url: str
    domain: str
    base_domain: str
    status: CanonicalStatus
    error: str | None = None
    redirect_chain: list[str] = field(default_factory=list)
    rejection: Rejection | None = None
    from_cache: bool = False

    @property
    def rejected(self) -> bool:
        return self.rejection is not None

    @property
    def needs_manual_review(self) -> bool:
        return self.status == CanonicalStatus.FAILED and not self.rejected
