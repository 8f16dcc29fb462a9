"""Deny-list enforcement for candidate URLs.

The guard is an immutable snapshot built from blacklist rows; callers
refresh it between batches. Any URL that cannot be parsed is treated as
blacklisted.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from urllib.parse import urlsplit


class BlacklistType(str, Enum):
    DOMAIN = "domain"
    URL = "url"


@dataclass(frozen=True)
class BlacklistEntry:
    """A single deny rule: a bare domain or an exact URL."""

    type: BlacklistType
    pattern: str
    id: int | None = None
    reason: str | None = None
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.pattern or not self.pattern.strip():
            raise ValueError("Blacklist pattern must be non-empty")
        if not isinstance(self.type, BlacklistType):
            object.__setattr__(self, "type", BlacklistType(self.type))


class BlacklistGuard:
    """Read-only blacklist snapshot.

    Check order: exact domain, ``www.``-prefixed domain, exact full URL.

    Usage:
        guard = BlacklistGuard([BlacklistEntry(BlacklistType.DOMAIN, "x.com")])
        guard.is_blacklisted("https://www.x.com/status/1")  # True
    """

    def __init__(self, entries: Iterable[BlacklistEntry] = ()) -> None:
        domains: set[str] = set()
        urls: set[str] = set()
        for entry in entries:
            if entry.type == BlacklistType.DOMAIN:
                domains.add(entry.pattern.strip().lower())
            else:
                urls.add(entry.pattern.strip())
        self._domains = frozenset(domains)
        self._urls = frozenset(urls)

    def __len__(self) -> int:
        return len(self._domains) + len(self._urls)

    def is_blacklisted(self, url: str) -> bool:
        """Return True if ``url`` is denied or cannot be parsed."""
        try:
            parts = urlsplit(url.strip())
            hostname = parts.hostname
            parts.port  # raises ValueError on an invalid port
        except (ValueError, AttributeError):
            return True

        if not parts.scheme or not hostname:
            return True

        domain = hostname.lower()
        if domain.startswith("www."):
            domain = domain[4:]

        if domain in self._domains:
            return True
        if f"www.{domain}" in self._domains:
            return True
        return url.strip() in self._urls
