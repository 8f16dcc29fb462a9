"""
Redirect resolution with a fast path for known wrapper URLs.

Resolution walks the redirect chain hop by hop:

1. If the current URL is a known wrapper carrying its destination in a
   query parameter (Substack ``uri=``, Mailchimp ``url=``, Facebook ``u=``),
   the destination is decoded locally with no request.
2. Otherwise a HEAD request is sent (GET on failure or a 4xx/5xx answer)
   without following redirects, and the ``Location`` header becomes the
   next hop.
3. After at least one hop, a URL that is not a known wrapper is taken as
   the final destination.

No request is ever sent to an excluded address (localhost, IP literal,
non-http scheme); reaching one fails the resolution.

Network failures never raise: the resolver returns the original URL with
``resolved=False`` and an error string, and the caller decides how to
degrade.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin

import httpx

from linksignal.canonicalization.config import CanonicalizationConfig
from linksignal.canonicalization.normalizer import should_exclude
from linksignal.canonicalization.patterns import (
    is_known_redirect,
    match_redirect_pattern,
)
from linksignal.config.settings import get_settings
from linksignal.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

REDIRECT_STATUS_CODES = frozenset({301, 302, 303, 307, 308})


@dataclass
class RetryConfig:
    """
    Exponential backoff configuration for per-hop retries.

    Formula: min(max_backoff, base_delay * 2^attempt) * (1 + random(0, jitter_factor))
    """

    max_retries: int = 1
    max_backoff_seconds: float = 5.0
    base_delay: float = 1.0
    jitter_factor: float = 0.1

    def calculate_backoff(self, attempt: int) -> float:
        """
        Calculate backoff duration for a given retry attempt.

        Args:
            attempt: The retry attempt number (0-indexed)

        Returns:
            Backoff duration in seconds with jitter applied
        """
        delay = min(self.base_delay * (2**attempt), self.max_backoff_seconds)
        return delay + delay * self.jitter_factor * random.random()

    def is_retryable_exception(self, exc: Exception) -> bool:
        """Timeouts and connection-level errors are worth another attempt."""
        return isinstance(
            exc,
            (
                httpx.TimeoutException,
                httpx.ConnectError,
                httpx.ReadError,
            ),
        )


class RedirectResolutionError(Exception):
    """Raised internally when a hop cannot be resolved."""


@dataclass
class RedirectResolution:
    """Result of resolving one URL.

    Attributes:
        original_url: The URL passed in.
        final_url: Resolved destination, or ``original_url`` on failure.
        redirect_chain: Every URL visited, starting with ``original_url``.
        resolved: False when the final destination could not be confirmed.
        error: Reason for a failed resolution.
        fast_path: True if any hop was extracted without a request.
    """

    original_url: str
    final_url: str
    redirect_chain: list[str] = field(default_factory=list)
    resolved: bool = True
    error: str | None = None
    fast_path: bool = False


class RedirectResolver:
    """
    Async redirect resolver.

    Usage:
        async with RedirectResolver() as resolver:
            resolution = await resolver.resolve("https://bit.ly/abc")
            if resolution.resolved:
                print(resolution.final_url)

    A pre-built ``httpx.AsyncClient`` can be injected (tests use this with
    respx); it is then owned by the caller and not closed here.
    """

    def __init__(
        self,
        config: CanonicalizationConfig | None = None,
        client: httpx.AsyncClient | None = None,
        retry_config: RetryConfig | None = None,
    ):
        self._config = config or CanonicalizationConfig()
        self._retry = retry_config or RetryConfig(
            max_retries=self._config.max_retries,
            base_delay=self._config.retry_base_delay_seconds,
            max_backoff_seconds=self._config.retry_max_backoff_seconds,
        )
        self._client = client
        self._owns_client = client is None
        self._metrics = get_metrics()

    async def __aenter__(self) -> "RedirectResolver":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            user_agent = self._config.user_agent or get_settings().user_agent
            self._client = httpx.AsyncClient(
                timeout=self._config.request_timeout_seconds,
                follow_redirects=False,
                headers={
                    "User-Agent": user_agent,
                    "Accept": "text/html,application/xhtml+xml",
                },
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def resolve(self, url: str) -> RedirectResolution:
        """Resolve ``url`` to its final destination. Never raises."""
        chain = [url]
        state = {"fast_path": False}
        started = time.monotonic()

        try:
            final_url = await asyncio.wait_for(
                self._walk(url, chain, state),
                timeout=self._config.resolution_timeout_seconds,
            )
        except asyncio.TimeoutError:
            return self._failed(url, chain, state, "Redirect resolution timed out")
        except RedirectResolutionError as e:
            return self._failed(url, chain, state, str(e))
        finally:
            self._metrics.redirect_latency.observe(time.monotonic() - started)

        return RedirectResolution(
            original_url=url,
            final_url=final_url,
            redirect_chain=chain,
            resolved=True,
            fast_path=state["fast_path"],
        )

    def _failed(
        self,
        url: str,
        chain: list[str],
        state: dict[str, bool],
        error: str,
    ) -> RedirectResolution:
        logger.warning(f"Redirect resolution failed for {url[:100]}: {error}")
        return RedirectResolution(
            original_url=url,
            final_url=url,
            redirect_chain=chain,
            resolved=False,
            error=error,
            fast_path=state["fast_path"],
        )

    async def _walk(self, url: str, chain: list[str], state: dict[str, bool]) -> str:
        current = url
        hops = 0
        seen: set[str] = set()

        while True:
            if current in seen:
                raise RedirectResolutionError("Redirect loop detected")
            seen.add(current)

            if should_exclude(current):
                raise RedirectResolutionError(f"Redirect to excluded address {current[:100]}")

            pattern = match_redirect_pattern(current)
            extracted = pattern.extract(current) if pattern else None
            if extracted:
                self._metrics.record_fast_path(pattern.platform)
                state["fast_path"] = True
                chain.append(extracted)
                current = extracted
                hops += 1
                continue

            if hops > 0 and not is_known_redirect(current):
                return current

            if hops >= self._config.max_redirects:
                raise RedirectResolutionError(
                    f"Too many redirects (> {self._config.max_redirects})"
                )

            next_url = await self._follow(current)
            if next_url is None:
                return current

            chain.append(next_url)
            current = next_url
            hops += 1

    async def _follow(self, url: str) -> str | None:
        """Resolve a single hop. Returns the next URL, or None if final."""
        try:
            response = await self._request("HEAD", url)
        except RedirectResolutionError as e:
            logger.debug(f"HEAD failed for {url[:100]} ({e}), retrying with GET")
            response = None

        if response is None or response.status_code >= 400:
            # Some servers reject HEAD outright
            response = await self._request("GET", url)

        status = response.status_code
        if status in REDIRECT_STATUS_CODES:
            location = response.headers.get("location")
            if location:
                return urljoin(url, location.strip())
            return None

        if 200 <= status < 300:
            return None

        raise RedirectResolutionError(f"HTTP {status} from {url[:100]}")

    async def _request(self, method: str, url: str) -> httpx.Response:
        """Send one request with retry on transient transport errors.

        The body is never read; only the status line and headers matter.
        """
        client = self._ensure_client()

        for attempt in range(self._retry.max_retries + 1):
            try:
                async with client.stream(method, url) as response:
                    return response
            except httpx.HTTPError as e:
                if self._retry.is_retryable_exception(e) and attempt < self._retry.max_retries:
                    backoff = self._retry.calculate_backoff(attempt)
                    logger.warning(
                        f"Retryable error {type(e).__name__} for {url[:100]}, "
                        f"attempt {attempt + 1}/{self._retry.max_retries + 1}, "
                        f"backing off {backoff:.2f}s"
                    )
                    await asyncio.sleep(backoff)
                    continue
                raise RedirectResolutionError(f"{type(e).__name__}: {e}") from e
            except httpx.InvalidURL as e:
                raise RedirectResolutionError(f"Invalid URL: {e}") from e

        raise RedirectResolutionError(f"{method} failed for {url[:100]}")
