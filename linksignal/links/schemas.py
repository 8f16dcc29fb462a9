"""Data models for links, mentions and ingestion outcomes."""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from linksignal.canonicalization.schemas import CanonicalStatus

# Titles that carry no information and may be overwritten by a real one
PLACEHOLDER_TITLES = frozenset({"untitled", "no title", "(no title)", "home"})


class IngestErrorCode(str, Enum):
    """Classified reason an ingestion did not produce a fresh mention."""

    BLACKLISTED = "blacklisted"
    EXCLUDED = "excluded"
    INVALID_URL = "invalid_url"
    DUPLICATE = "duplicate"
    DATABASE = "database"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


@dataclass
class LinkMetadata:
    """Descriptive fields fetched from, or supplied for, a page."""

    title: str | None = None
    description: str | None = None
    image_url: str | None = None
    author: str | None = None
    published_at: datetime | None = None

    def __post_init__(self) -> None:
        for name in ("title", "description", "image_url", "author"):
            value = getattr(self, name)
            if value is not None:
                value = value.strip()
                setattr(self, name, value or None)

    @property
    def is_empty(self) -> bool:
        return not any(
            (self.title, self.description, self.image_url, self.author, self.published_at)
        )

    def merged_with(self, fallback: "LinkMetadata") -> "LinkMetadata":
        """Fill missing fields from ``fallback``."""
        return LinkMetadata(
            title=self.title or fallback.title,
            description=self.description or fallback.description,
            image_url=self.image_url or fallback.image_url,
            author=self.author or fallback.author,
            published_at=self.published_at or fallback.published_at,
        )


def is_placeholder_title(title: str | None, url: str | None = None) -> bool:
    """True for a missing, blank or uninformative title.

    A title that merely repeats the URL counts as a placeholder.
    """
    if title is None or not title.strip():
        return True
    stripped = title.strip()
    if stripped.lower() in PLACEHOLDER_TITLES:
        return True
    return url is not None and stripped.rstrip("/") == url.rstrip("/")


@dataclass
class Link:
    """A unique canonical URL.

    ``first_seen_at`` never changes after creation; ``last_seen_at`` tracks
    the latest sighting from any source. ``needs_manual_review`` is true
    exactly when ``canonical_status`` is failed.
    """

    id: str
    canonical_url: str
    original_url: str
    domain: str
    title: str | None = None
    description: str | None = None
    image_url: str | None = None
    author: str | None = None
    published_at: datetime | None = None
    canonical_status: CanonicalStatus = CanonicalStatus.PENDING
    canonical_error: str | None = None
    needs_manual_review: bool = False
    first_seen_at: datetime | None = None
    last_seen_at: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.canonical_status, CanonicalStatus):
            self.canonical_status = CanonicalStatus(self.canonical_status)


@dataclass
class Mention:
    """One source's sighting of a link, refreshed in place on re-sighting."""

    link_id: str
    source_id: int
    seen_at: datetime
    id: int | None = None


@dataclass
class MentionCandidate:
    """A raw URL handed over by a feed poller, email parser or manual entry."""

    raw_url: str
    source_id: int
    title: str | None = None
    description: str | None = None
    seen_at: datetime | None = None


@dataclass
class IngestResult:
    """Outcome of ingesting one candidate URL.

    ``success`` is True for new links, refreshed links and duplicate
    mentions. Rejections and hard failures set ``success=False`` with an
    ``error_code``.
    """

    success: bool
    raw_url: str = ""
    link_id: str | None = None
    canonical_url: str | None = None
    status: CanonicalStatus | None = None
    error: str | None = None
    error_code: IngestErrorCode | None = None
    is_new_link: bool = False
    needs_manual_review: bool = False

    @property
    def is_duplicate(self) -> bool:
        return self.error_code == IngestErrorCode.DUPLICATE


@dataclass
class BatchSummary:
    """Aggregate of a batch ingestion run."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    new_links: int = 0
    duplicates: int = 0
    blacklisted: int = 0
    error_counts: Counter = field(default_factory=Counter)
    needs_review_link_ids: list[str] = field(default_factory=list)
    results: list[IngestResult] = field(default_factory=list)
    duration_seconds: float = 0.0

    def add(self, result: IngestResult) -> None:
        self.total += 1
        self.results.append(result)

        if result.success:
            self.succeeded += 1
            if result.is_new_link:
                self.new_links += 1
        else:
            self.failed += 1

        if result.error_code is not None:
            self.error_counts[result.error_code.value] += 1
            if result.error_code == IngestErrorCode.DUPLICATE:
                self.duplicates += 1
            elif result.error_code == IngestErrorCode.BLACKLISTED:
                self.blacklisted += 1

        if result.needs_manual_review and result.link_id:
            if result.link_id not in self.needs_review_link_ids:
                self.needs_review_link_ids.append(result.link_id)

    def to_log_dict(self) -> dict:
        """Flat fields for a structured batch-summary log line."""
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "new_links": self.new_links,
            "duplicates": self.duplicates,
            "blacklisted": self.blacklisted,
            "error_counts": dict(self.error_counts),
            "needs_review": len(self.needs_review_link_ids),
            "needs_review_link_ids": self.needs_review_link_ids[:20],
            "duration_seconds": round(self.duration_seconds, 3),
        }
