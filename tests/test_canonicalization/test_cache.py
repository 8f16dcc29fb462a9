"""Tests for CanonicalCache."""

import json
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from linksignal.canonicalization.cache import CanonicalCache, cache_key


@pytest.fixture
def redis_client() -> AsyncMock:
    client = AsyncMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.ping = AsyncMock(return_value=True)
    return client


class TestCacheKey:
    """Tests for cache_key."""

    def test_fixed_length_and_prefixed(self) -> None:
        short = cache_key("https://bit.ly/a")
        long = cache_key("https://example.com/" + "x" * 5000)
        assert short.startswith("canonical:")
        assert len(short) == len(long)

    def test_distinct_urls_distinct_keys(self) -> None:
        assert cache_key("https://bit.ly/a") != cache_key("https://bit.ly/b")


class TestCanonicalCache:
    """Tests for get/set behaviour."""

    @pytest.mark.asyncio
    async def test_set_writes_json_with_ttl(self, redis_client: AsyncMock) -> None:
        cache = CanonicalCache(redis_client, ttl_seconds=3600)

        await cache.set("https://bit.ly/a", "https://example.com/a", ["https://bit.ly/a", "https://example.com/a"])

        key, payload = redis_client.set.call_args[0]
        assert key == cache_key("https://bit.ly/a")
        assert json.loads(payload)["canonical_url"] == "https://example.com/a"
        assert redis_client.set.call_args[1]["ex"] == 3600

    @pytest.mark.asyncio
    async def test_get_hit(self, redis_client: AsyncMock) -> None:
        redis_client.get.return_value = json.dumps({
            "canonical_url": "https://example.com/a",
            "redirect_chain": ["https://bit.ly/a", "https://example.com/a"],
        })
        cache = CanonicalCache(redis_client)

        hit = await cache.get("https://bit.ly/a")

        assert hit is not None
        assert hit.canonical_url == "https://example.com/a"
        assert len(hit.redirect_chain) == 2

    @pytest.mark.asyncio
    async def test_get_miss(self, redis_client: AsyncMock) -> None:
        assert await CanonicalCache(redis_client).get("https://bit.ly/a") is None

    @pytest.mark.asyncio
    async def test_malformed_entry_is_a_miss(self, redis_client: AsyncMock) -> None:
        redis_client.get.return_value = "{not json"
        assert await CanonicalCache(redis_client).get("https://bit.ly/a") is None

    @pytest.mark.asyncio
    async def test_redis_errors_never_propagate(self, redis_client: AsyncMock) -> None:
        redis_client.get.side_effect = RedisConnectionError("down")
        redis_client.set.side_effect = RedisConnectionError("down")
        redis_client.ping.side_effect = RedisConnectionError("down")
        cache = CanonicalCache(redis_client)

        assert await cache.get("https://bit.ly/a") is None
        await cache.set("https://bit.ly/a", "https://example.com/a", [])
        assert await cache.health_check() is False

    @pytest.mark.asyncio
    async def test_invalidate(self, redis_client: AsyncMock) -> None:
        await CanonicalCache(redis_client).invalidate("https://bit.ly/a")
        redis_client.delete.assert_awaited_once_with(cache_key("https://bit.ly/a"))
