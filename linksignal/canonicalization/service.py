"""Canonicalizer: blacklist, resolve, normalize, blacklist again."""

import logging

from linksignal.canonicalization.blacklist import BlacklistGuard
from linksignal.canonicalization.cache import CanonicalCache
from linksignal.canonicalization.normalizer import (
    extract_base_domain,
    extract_domain,
    normalize_url,
    should_exclude,
)
from linksignal.canonicalization.resolver import RedirectResolver
from linksignal.canonicalization.schemas import (
    REJECTION_MESSAGES,
    CanonicalResult,
    CanonicalStatus,
    Rejection,
)
from linksignal.observability.metrics import MetricsCollector, get_metrics

logger = logging.getLogger(__name__)


class Canonicalizer:
    """Turns a raw candidate URL into a canonical Link identity.

    Two raw URLs that yield the same ``canonical_url`` are the same Link.
    The pipeline is:

    1. Exclusion (non-http, localhost, IP literal) and blacklist check of the
       raw URL. A hit is a rejection with no network activity.
    2. Cache lookup by raw URL.
    3. Redirect resolution. On failure the normalized raw URL becomes the
       canonical URL and the result is marked ``failed``.
    4. Normalization of the destination.
    5. Exclusion check of every hop and blacklist check of the canonical
       URL, which catch shorteners that point at internal addresses or
       denied domains.

    ``canonicalize`` never raises; unexpected errors come back as a failed
    result.
    """

    def __init__(
        self,
        resolver: RedirectResolver,
        cache: CanonicalCache | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._resolver = resolver
        self._cache = cache
        self._metrics = metrics or get_metrics()

    async def canonicalize(
        self,
        raw_url: str,
        blacklist: BlacklistGuard | None = None,
    ) -> CanonicalResult:
        """Canonicalize one raw URL.

        Args:
            raw_url: URL as found in a feed, email or manual entry.
            blacklist: Deny-list snapshot. ``None`` skips blacklist checks.

        Returns:
            CanonicalResult. Check ``rejected`` before creating a Link.
        """
        url = (raw_url or "").strip()

        if should_exclude(url):
            return self._reject(url, url, Rejection.EXCLUDED)
        if blacklist is not None and blacklist.is_blacklisted(url):
            return self._reject(url, url, Rejection.BLACKLISTED)

        try:
            result = await self._resolve(url)
        except Exception as e:
            logger.exception(f"Unexpected canonicalization error for {url[:100]}")
            fallback = normalize_url(url)
            result = self._build(
                fallback, url, CanonicalStatus.FAILED, error=f"{type(e).__name__}: {e}"
            )

        if any(should_exclude(hop) for hop in [result.canonical_url, *result.redirect_chain[1:]]):
            return self._reject(
                result.canonical_url, url, Rejection.EXCLUDED, result.redirect_chain
            )
        if blacklist is not None and blacklist.is_blacklisted(result.canonical_url):
            return self._reject(
                result.canonical_url,
                url,
                Rejection.CANONICAL_BLACKLISTED,
                result.redirect_chain,
            )

        self._metrics.record_canonicalization(
            result.status.value,
            from_cache=result.from_cache if self._cache is not None else None,
        )
        return result

    async def _resolve(self, url: str) -> CanonicalResult:
        if self._cache is not None:
            cached = await self._cache.get(url)
            if cached is not None:
                return self._build(
                    cached.canonical_url,
                    url,
                    CanonicalStatus.SUCCESS,
                    redirect_chain=cached.redirect_chain,
                    from_cache=True,
                )

        resolution = await self._resolver.resolve(url)

        if not resolution.resolved:
            return self._build(
                normalize_url(url),
                url,
                CanonicalStatus.FAILED,
                error=resolution.error,
                redirect_chain=resolution.redirect_chain,
            )

        canonical_url = normalize_url(resolution.final_url)
        if self._cache is not None:
            await self._cache.set(url, canonical_url, resolution.redirect_chain)

        return self._build(
            canonical_url,
            url,
            CanonicalStatus.SUCCESS,
            redirect_chain=resolution.redirect_chain,
        )

    def _build(
        self,
        canonical_url: str,
        original_url: str,
        status: CanonicalStatus,
        error: str | None = None,
        redirect_chain: list[str] | None = None,
        from_cache: bool = False,
    ) -> CanonicalResult:
        return CanonicalResult(
            canonical_url=canonical_url,
            original_url=original_url,
            domain=extract_domain(canonical_url),
            base_domain=extract_base_domain(canonical_url),
            status=status,
            error=error,
            redirect_chain=list(redirect_chain or [original_url]),
            from_cache=from_cache,
        )

    def _reject(
        self,
        canonical_url: str,
        original_url: str,
        rejection: Rejection,
        redirect_chain: list[str] | None = None,
    ) -> CanonicalResult:
        logger.debug(f"Rejected {original_url[:100]}: {rejection.value}")
        self._metrics.record_canonicalization("rejected")
        result = self._build(
            canonical_url,
            original_url,
            CanonicalStatus.FAILED,
            error=REJECTION_MESSAGES[rejection],
            redirect_chain=redirect_chain,
        )
        result.rejection = rejection
        return result
