"""
Redis cache for resolved canonical URLs.

Resolving a newsletter click-tracking link costs one or more HTTP round
trips, and the same wrapped URL is typically seen many times across a
newsletter's recipients. Successful resolutions are cached by raw URL.

Cache failures never propagate: a Redis error is logged and treated as a
miss.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

_KEY_PREFIX = "canonical:"


@dataclass
class CachedCanonical:
    """A cached resolution."""

    canonical_url: str
    redirect_chain: list[str] = field(default_factory=list)


def cache_key(raw_url: str) -> str:
    """Fixed-length cache key for a raw URL."""
    return _KEY_PREFIX + hashlib.md5(raw_url.encode("utf-8")).hexdigest()


class CanonicalCache:
    """Raw URL -> canonical URL cache backed by Redis.

    Usage:
        cache = CanonicalCache(redis.from_url("redis://localhost:6379/0"))
        await cache.set("https://bit.ly/x", "https://example.com/a", [...])
        hit = await cache.get("https://bit.ly/x")
    """

    def __init__(self, client: redis.Redis, ttl_seconds: int = 7 * 24 * 60 * 60) -> None:
        self._redis = client
        self._ttl = ttl_seconds

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = 7 * 24 * 60 * 60) -> "CanonicalCache":
        """Create a cache with its own Redis connection pool."""
        return cls(redis.from_url(url, decode_responses=True), ttl_seconds)

    async def get(self, raw_url: str) -> CachedCanonical | None:
        """Look up a cached resolution, returning None on miss or error."""
        try:
            payload = await self._redis.get(cache_key(raw_url))
        except RedisError as e:
            logger.warning(f"Canonical cache read failed: {e}")
            return None

        if not payload:
            return None

        try:
            data = json.loads(payload)
            return CachedCanonical(
                canonical_url=data["canonical_url"],
                redirect_chain=list(data.get("redirect_chain") or []),
            )
        except (ValueError, KeyError, TypeError):
            logger.debug("Discarding malformed canonical cache entry for %s", raw_url)
            return None

    async def set(self, raw_url: str, canonical_url: str, redirect_chain: list[str]) -> None:
        """Store a successful resolution."""
        payload = json.dumps({
            "canonical_url": canonical_url,
            "redirect_chain": redirect_chain,
        })
        try:
            await self._redis.set(cache_key(raw_url), payload, ex=self._ttl)
        except RedisError as e:
            logger.warning(f"Canonical cache write failed: {e}")

    async def invalidate(self, raw_url: str) -> None:
        """Drop a cached resolution, e.g. before a manual re-attempt."""
        try:
            await self._redis.delete(cache_key(raw_url))
        except RedisError as e:
            logger.warning(f"Canonical cache delete failed: {e}")

    async def health_check(self) -> bool:
        """Return True if Redis answers a PING."""
        try:
            return bool(await self._redis.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        await self._redis.aclose()
