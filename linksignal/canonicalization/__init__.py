"""URL canonicalization: normalization, redirect resolution and blacklisting."""

from linksignal.canonicalization.blacklist import (
    BlacklistEntry,
    BlacklistGuard,
    BlacklistType,
)
from linksignal.canonicalization.cache import CanonicalCache
from linksignal.canonicalization.config import CanonicalizationConfig
from linksignal.canonicalization.normalizer import (
    extract_base_domain,
    extract_domain,
    is_from_domain,
    normalize_url,
    should_exclude,
)
from linksignal.canonicalization.patterns import (
    REDIRECT_PATTERNS,
    RedirectPattern,
    is_known_redirect,
    match_redirect_pattern,
    try_extract_destination,
)
from linksignal.canonicalization.repository import BlacklistRepository
from linksignal.canonicalization.resolver import (
    RedirectResolution,
    RedirectResolver,
    RetryConfig,
)
from linksignal.canonicalization.schemas import (
    CanonicalResult,
    CanonicalStatus,
    Rejection,
)
from linksignal.canonicalization.service import Canonicalizer

__all__ = [
    "BlacklistEntry",
    "BlacklistGuard",
    "BlacklistRepository",
    "BlacklistType",
    "CanonicalCache",
    "CanonicalResult",
    "CanonicalStatus",
    "CanonicalizationConfig",
    "Canonicalizer",
    "REDIRECT_PATTERNS",
    "RedirectPattern",
    "RedirectResolution",
    "RedirectResolver",
    "Rejection",
    "RetryConfig",
    "extract_base_domain",
    "extract_domain",
    "is_from_domain",
    "is_known_redirect",
    "match_redirect_pattern",
    "normalize_url",
    "should_exclude",
    "try_extract_destination",
]
