"""
RSS/Atom feed poller.

For each Source with a feed URL:
1. Fetch the feed (hard timeout, retries on 429/5xx and transport errors)
2. Parse entries with feedparser and extract content links
3. Drop self-links the Source does not count
4. Hand the candidates to ``MentionIngestor.ingest_batch``
5. Record the fetch outcome on the Source (``consecutive_errors``,
   ``last_error``)

A failing feed never affects other sources; ``poll_all`` returns one
``PollResult`` per source.
"""

import asyncio
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import feedparser
import httpx
import structlog

from linksignal.canonicalization.blacklist import BlacklistGuard
from linksignal.canonicalization.resolver import RetryConfig
from linksignal.config.settings import get_settings
from linksignal.ingestion.extractor import extract_links_from_html
from linksignal.links.config import IngestionConfig
from linksignal.links.ingestor import MentionIngestor
from linksignal.links.schemas import BatchSummary, MentionCandidate
from linksignal.observability.logging import bind_context
from linksignal.observability.metrics import MetricsCollector, get_metrics
from linksignal.sources.repository import SourcesRepository
from linksignal.sources.schemas import Source
from linksignal.sources.service import filter_own_links

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class FeedFetchError(Exception):
    """Raised when a feed cannot be fetched or parsed."""


@dataclass
class FeedEntry:
    """One feed item and the links found in its content."""

    title: str
    link: str
    published_at: datetime | None = None
    content_links: list[str] = field(default_factory=list)


@dataclass
class PollResult:
    """Outcome of polling one source."""

    source_id: int
    source_name: str
    success: bool
    item_count: int = 0
    candidate_count: int = 0
    skipped_own_links: int = 0
    summary: BatchSummary | None = None
    error: str | None = None


def _entry_published(entry: Any) -> datetime | None:
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            try:
                return datetime(*parsed[:6], tzinfo=timezone.utc)
            except (TypeError, ValueError):
                continue
    return None


def _entry_html(entry: Any) -> str:
    if entry.get("content"):
        return " ".join(c.get("value", "") for c in entry["content"])
    return entry.get("summary", "") or ""


def parse_feed(document: str, limit: int = 20) -> list[FeedEntry]:
    """
    Parse RSS/Atom text into entries.

    Args:
        document: Feed XML
        limit: Maximum entries returned, in feed order

    Returns:
        Parsed entries

    Raises:
        FeedFetchError: If the document is not a usable feed
    """
    parsed = feedparser.parse(document)
    entries = parsed.get("entries", [])
    if parsed.get("bozo") and not entries:
        reason = parsed.get("bozo_exception")
        raise FeedFetchError(f"Malformed feed: {reason}")

    result: list[FeedEntry] = []
    for entry in entries[:limit]:
        result.append(FeedEntry(
            title=(entry.get("title") or "").strip(),
            link=(entry.get("link") or "").strip(),
            published_at=_entry_published(entry),
            content_links=extract_links_from_html(_entry_html(entry)),
        ))
    return result


class FeedPoller:
    """
    Polls source feeds and ingests the links they mention.

    Usage:
        async with FeedPoller(ingestor, sources_repo) as poller:
            results = await poller.poll_all(sources, blacklist=guard)
    """

    def __init__(
        self,
        ingestor: MentionIngestor,
        sources_repository: SourcesRepository,
        config: IngestionConfig | None = None,
        client: httpx.AsyncClient | None = None,
        retry_config: RetryConfig | None = None,
        now: Callable[[], datetime] | None = None,
        metrics: MetricsCollector | None = None,
    ):
        self._ingestor = ingestor
        self._sources = sources_repository
        self._config = config or IngestionConfig()
        self._client = client
        self._owns_client = client is None
        self._retry = retry_config or RetryConfig(max_retries=2)
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._metrics = metrics or get_metrics()

    async def __aenter__(self) -> "FeedPoller":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.feed_timeout_seconds,
                follow_redirects=True,
                headers={
                    "User-Agent": get_settings().user_agent,
                    "Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml",
                },
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch_feed(self, url: str) -> str:
        """
        Fetch feed text with retries.

        Raises:
            FeedFetchError: On a non-retryable status or after retries are exhausted
        """
        client = self._ensure_client()
        last_error = "unknown error"

        for attempt in range(self._retry.max_retries + 1):
            try:
                response = await asyncio.wait_for(
                    client.get(url),
                    timeout=self._config.feed_timeout_seconds,
                )
            except asyncio.TimeoutError:
                last_error = "Feed fetch timed out"
            except httpx.HTTPError as e:
                if not self._retry.is_retryable_exception(e):
                    raise FeedFetchError(f"{type(e).__name__}: {e}") from e
                last_error = f"{type(e).__name__}: {e}"
            except httpx.InvalidURL as e:
                raise FeedFetchError(f"Invalid feed URL: {e}") from e
            else:
                if response.is_success:
                    return response.text
                last_error = f"HTTP {response.status_code}"
                if response.status_code not in RETRYABLE_STATUS_CODES:
                    raise FeedFetchError(last_error)

            if attempt < self._retry.max_retries:
                backoff = self._retry.calculate_backoff(attempt)
                logger.warning(
                    "Retrying feed fetch",
                    url=url,
                    error=last_error,
                    attempt=attempt + 1,
                    backoff=round(backoff, 2),
                )
                await asyncio.sleep(backoff)

        raise FeedFetchError(last_error)

    def build_candidates(
        self,
        source: Source,
        entries: Sequence[FeedEntry],
        seen_at: datetime,
    ) -> tuple[list[MentionCandidate], int]:
        """Turn entries into candidates, dropping self-links.

        Returns:
            (candidates, number of self-links skipped)
        """
        candidates: list[MentionCandidate] = []
        seen: set[str] = set()
        skipped = 0

        for entry in entries:
            kept = filter_own_links(source, entry.content_links)
            skipped += len(entry.content_links) - len(kept)
            for url in kept:
                if url in seen:
                    continue
                seen.add(url)
                candidates.append(MentionCandidate(
                    raw_url=url,
                    source_id=source.id,
                    seen_at=seen_at,
                ))

        return candidates, skipped

    async def poll_source(
        self,
        source: Source,
        blacklist: BlacklistGuard | None = None,
    ) -> PollResult:
        """Fetch one source's feed and ingest its links. Never raises."""
        log = logger.bind(source_id=source.id, source=source.name)

        if not source.feed_url:
            return PollResult(
                source_id=source.id,
                source_name=source.name,
                success=False,
                error="Source has no feed URL",
            )

        started = time.monotonic()
        try:
            document = await self.fetch_feed(source.feed_url)
            entries = parse_feed(document, limit=self._config.max_items_per_feed)
        except FeedFetchError as e:
            error = str(e)
            self._metrics.record_feed_fetch("error")
            count = await self._sources.record_fetch_failure(source.id, error, self._now())
            log.warning("Feed fetch failed", error=error, consecutive_errors=count)
            return PollResult(
                source_id=source.id,
                source_name=source.name,
                success=False,
                error=error,
            )

        self._metrics.record_feed_fetch("success")
        now = self._now()
        await self._sources.record_fetch_success(source.id, now)

        candidates, skipped = self.build_candidates(source, entries, now)
        summary = await self._ingestor.ingest_batch(candidates, blacklist=blacklist)

        log.info(
            "Source polled",
            items=len(entries),
            candidates=len(candidates),
            skipped_own_links=skipped,
            succeeded=summary.succeeded,
            failed=summary.failed,
            duration=round(time.monotonic() - started, 3),
        )

        return PollResult(
            source_id=source.id,
            source_name=source.name,
            success=True,
            item_count=len(entries),
            candidate_count=len(candidates),
            skipped_own_links=skipped,
            summary=summary,
        )

    async def poll_all(
        self,
        sources: Sequence[Source],
        blacklist: BlacklistGuard | None = None,
    ) -> list[PollResult]:
        """Poll sources concurrently, one result per source in input order."""
        pollable = [s for s in sources if s.active and s.feed_url]
        if not pollable:
            return []

        semaphore = asyncio.Semaphore(self._config.source_concurrency)

        async def run(source: Source) -> PollResult:
            # Each task runs in its own context copy
            bind_context(source_id=source.id, source=source.name)
            async with semaphore:
                return await self.poll_source(source, blacklist)

        gathered = await asyncio.gather(
            *(asyncio.create_task(run(s)) for s in pollable), return_exceptions=True
        )

        results: list[PollResult] = []
        for source, outcome in zip(pollable, gathered):
            if isinstance(outcome, BaseException):
                logger.error(
                    "Source poll crashed",
                    source_id=source.id,
                    source=source.name,
                    error=str(outcome),
                )
                outcome = PollResult(
                    source_id=source.id,
                    source_name=source.name,
                    success=False,
                    error=f"{type(outcome).__name__}: {outcome}",
                )
            results.append(outcome)

        succeeded = sum(1 for r in results if r.success)
        logger.info(
            "Feed poll complete",
            total=len(results),
            succeeded=succeeded,
            failed=len(results) - succeeded,
            candidates=sum(r.candidate_count for r in results),
        )
        return results
