"""
Mention ingestion - turns raw candidate URLs into Links and Mentions.

Each candidate is canonicalized (with both blacklist checks), optionally
enriched with page metadata, and written as one Link upsert plus one
Mention upsert inside a single transaction.

Properties:
- Idempotent: re-ingesting the same (URL, source) refreshes the mention's
  ``seen_at`` and reports a duplicate instead of creating a second row.
- Never raises: every outcome, including database errors, is an
  ``IngestResult``.
- Batches isolate failures per item and respect a wall-clock timeout,
  keeping whatever finished in time.
"""

import asyncio
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

import asyncpg
import structlog

from linksignal.canonicalization.blacklist import BlacklistGuard
from linksignal.canonicalization.normalizer import extract_domain
from linksignal.canonicalization.schemas import CanonicalStatus, Rejection
from linksignal.canonicalization.service import Canonicalizer
from linksignal.links.config import IngestionConfig
from linksignal.links.metadata import MetadataFetcher
from linksignal.links.repository import LinkRepository
from linksignal.links.schemas import (
    BatchSummary,
    IngestErrorCode,
    IngestResult,
    LinkMetadata,
    MentionCandidate,
)
from linksignal.observability.metrics import MetricsCollector, get_metrics

logger = structlog.get_logger(__name__)

MAX_URL_LENGTH = 2048
DUPLICATE_MENTION = "duplicate mention"

_REJECTION_CODES = {
    Rejection.EXCLUDED: IngestErrorCode.EXCLUDED,
    Rejection.BLACKLISTED: IngestErrorCode.BLACKLISTED,
    Rejection.CANONICAL_BLACKLISTED: IngestErrorCode.BLACKLISTED,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MentionIngestor:
    """
    Create-or-update of Links and create-or-refresh of Mentions.

    Usage:
        ingestor = MentionIngestor(LinkRepository(db), canonicalizer)
        result = await ingestor.ingest(url, source_id, blacklist=guard)
        summary = await ingestor.ingest_batch(candidates, blacklist=guard)
    """

    def __init__(
        self,
        repository: LinkRepository,
        canonicalizer: Canonicalizer,
        metadata_fetcher: MetadataFetcher | None = None,
        config: IngestionConfig | None = None,
        now: Callable[[], datetime] | None = None,
        metrics: MetricsCollector | None = None,
    ):
        """
        Initialize the ingestor.

        Args:
            repository: Link/mention persistence
            canonicalizer: URL canonicalization pipeline
            metadata_fetcher: Optional page metadata source
            config: Ingestion settings (or load from env)
            now: Clock returning an aware datetime
            metrics: Metrics collector (or global)
        """
        self._repo = repository
        self._canonicalizer = canonicalizer
        self._metadata = metadata_fetcher
        self._config = config or IngestionConfig()
        self._now = now or _utcnow
        self._metrics = metrics or get_metrics()

    async def ingest(
        self,
        raw_url: str,
        source_id: int,
        title: str | None = None,
        description: str | None = None,
        *,
        blacklist: BlacklistGuard | None = None,
        seen_at: datetime | None = None,
    ) -> IngestResult:
        """
        Ingest one candidate URL seen by one source.

        Args:
            raw_url: URL as found by the source
            source_id: Source that produced the sighting
            title: Title supplied by the source, if any
            description: Description supplied by the source, if any
            blacklist: Deny-list snapshot for both blacklist checks
            seen_at: Sighting time (defaults to the injected clock)

        Returns:
            IngestResult; never raises
        """
        log = logger.bind(source_id=source_id, url=(raw_url or "")[:200])

        try:
            result = await self._ingest(
                raw_url, source_id, title, description, blacklist, seen_at
            )
        except asyncio.TimeoutError:
            log.warning("Ingestion timed out")
            result = IngestResult(
                success=False,
                raw_url=raw_url,
                error="Ingestion timed out",
                error_code=IngestErrorCode.TIMEOUT,
            )
        except asyncpg.UniqueViolationError as e:
            log.warning("Unique violation during ingestion", error=str(e))
            result = IngestResult(
                success=True,
                raw_url=raw_url,
                error=DUPLICATE_MENTION,
                error_code=IngestErrorCode.DUPLICATE,
            )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            log.error("Database error during ingestion", error=str(e))
            result = IngestResult(
                success=False,
                raw_url=raw_url,
                error=f"Database error: {e}",
                error_code=IngestErrorCode.DATABASE,
            )
        except Exception as e:
            log.exception("Unexpected ingestion error")
            result = IngestResult(
                success=False,
                raw_url=raw_url,
                error=f"{type(e).__name__}: {e}",
                error_code=IngestErrorCode.UNKNOWN,
            )

        self._metrics.record_ingest(self._outcome(result))
        return result

    async def _ingest(
        self,
        raw_url: str,
        source_id: int,
        title: str | None,
        description: str | None,
        blacklist: BlacklistGuard | None,
        seen_at: datetime | None,
    ) -> IngestResult:
        url = (raw_url or "").strip()
        if not url or len(url) > MAX_URL_LENGTH:
            return IngestResult(
                success=False,
                raw_url=raw_url,
                error="Invalid URL",
                error_code=IngestErrorCode.INVALID_URL,
            )

        canonical = await self._canonicalizer.canonicalize(url, blacklist)
        if canonical.rejected:
            return IngestResult(
                success=False,
                raw_url=raw_url,
                canonical_url=canonical.canonical_url,
                error=canonical.error,
                error_code=_REJECTION_CODES[canonical.rejection],
            )

        if len(canonical.canonical_url) > MAX_URL_LENGTH:
            return IngestResult(
                success=False,
                raw_url=raw_url,
                error="Canonical URL too long",
                error_code=IngestErrorCode.INVALID_URL,
            )

        metadata = LinkMetadata(title=title, description=description)
        if (
            metadata.title is None
            and self._metadata is not None
            and self._config.fetch_metadata
            and canonical.status == CanonicalStatus.SUCCESS
        ):
            fetched = await self._metadata.fetch(canonical.canonical_url)
            metadata = metadata.merged_with(fetched)

        outcome = await self._repo.record_sighting(
            canonical_url=canonical.canonical_url,
            original_url=url,
            domain=canonical.domain,
            status=canonical.status,
            error=canonical.error,
            metadata=metadata,
            source_id=source_id,
            seen_at=seen_at or self._now(),
        )

        if outcome.link_inserted:
            logger.info(
                "Link created",
                link_id=outcome.link_id,
                canonical_url=canonical.canonical_url,
                status=outcome.canonical_status.value,
            )

        return IngestResult(
            success=True,
            raw_url=raw_url,
            link_id=outcome.link_id,
            canonical_url=canonical.canonical_url,
            status=outcome.canonical_status,
            error=None if outcome.mention_inserted else DUPLICATE_MENTION,
            error_code=None if outcome.mention_inserted else IngestErrorCode.DUPLICATE,
            is_new_link=outcome.link_inserted,
            needs_manual_review=outcome.needs_manual_review,
        )

    @staticmethod
    def _outcome(result: IngestResult) -> str:
        if result.success:
            if result.is_duplicate:
                return "duplicate"
            return "created" if result.is_new_link else "refreshed"
        if result.error_code in (IngestErrorCode.BLACKLISTED, IngestErrorCode.EXCLUDED):
            return "rejected"
        return "error"

    async def ingest_batch(
        self,
        candidates: Sequence[MentionCandidate],
        *,
        blacklist: BlacklistGuard | None = None,
        concurrency: int | None = None,
        timeout: float | None = None,
    ) -> BatchSummary:
        """
        Ingest many candidates with bounded parallelism.

        A failing item never affects the others. When ``timeout`` elapses,
        unfinished items are cancelled and reported with error code
        ``timeout``; completed results are kept.

        Args:
            candidates: Candidate URLs with their sources
            blacklist: Deny-list snapshot shared by the whole batch
            concurrency: Parallelism bound (default ``INGEST_CONCURRENCY``)
            timeout: Batch wall-clock limit (default ``INGEST_BATCH_TIMEOUT_SECONDS``)

        Returns:
            BatchSummary in candidate order
        """
        summary = BatchSummary()
        if not candidates:
            return summary

        started = time.monotonic()
        semaphore = asyncio.Semaphore(concurrency or self._config.concurrency)
        batch_timeout = timeout if timeout is not None else self._config.batch_timeout_seconds

        async def run(candidate: MentionCandidate) -> IngestResult:
            async with semaphore:
                return await self.ingest(
                    candidate.raw_url,
                    candidate.source_id,
                    candidate.title,
                    candidate.description,
                    blacklist=blacklist,
                    seen_at=candidate.seen_at,
                )

        tasks = [asyncio.create_task(run(c)) for c in candidates]
        done, pending = await asyncio.wait(tasks, timeout=batch_timeout)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(
                "Batch timed out",
                timeout=batch_timeout,
                unfinished=len(pending),
            )

        for candidate, task in zip(candidates, tasks):
            if task in done and not task.cancelled() and task.exception() is None:
                summary.add(task.result())
            elif task in done and not task.cancelled():
                summary.add(IngestResult(
                    success=False,
                    raw_url=candidate.raw_url,
                    error=str(task.exception()),
                    error_code=IngestErrorCode.UNKNOWN,
                ))
            else:
                summary.add(IngestResult(
                    success=False,
                    raw_url=candidate.raw_url,
                    error="Batch timed out",
                    error_code=IngestErrorCode.TIMEOUT,
                ))

        summary.duration_seconds = time.monotonic() - started
        self._metrics.batch_latency.observe(summary.duration_seconds)

        logger.info("Batch ingestion complete", **summary.to_log_dict())
        if summary.needs_review_link_ids:
            logger.warning(
                "Links need manual review",
                count=len(summary.needs_review_link_ids),
                link_ids=summary.needs_review_link_ids,
            )

        return summary

    async def recanonicalize(
        self,
        link_id: str,
        *,
        blacklist: BlacklistGuard | None = None,
    ) -> IngestResult:
        """
        Re-run canonicalization for a Link that previously failed.

        On success the Link moves to ``success`` and leaves the review
        queue. If the new canonical URL already belongs to another Link the
        conflict is reported and nothing changes.

        Args:
            link_id: Link to repair
            blacklist: Deny-list snapshot

        Returns:
            IngestResult describing the new state
        """
        log = logger.bind(link_id=link_id)

        try:
            link = await self._repo.get(link_id)
            if link is None:
                return IngestResult(
                    success=False,
                    link_id=link_id,
                    error="Link not found",
                    error_code=IngestErrorCode.UNKNOWN,
                )

            if link.canonical_status == CanonicalStatus.SUCCESS:
                return IngestResult(
                    success=True,
                    raw_url=link.original_url,
                    link_id=link.id,
                    canonical_url=link.canonical_url,
                    status=CanonicalStatus.SUCCESS,
                )

            canonical = await self._canonicalizer.canonicalize(link.original_url, blacklist)

            if canonical.rejected:
                log.warning("Re-canonicalization rejected", reason=canonical.error)
                return IngestResult(
                    success=False,
                    raw_url=link.original_url,
                    link_id=link.id,
                    canonical_url=canonical.canonical_url,
                    status=link.canonical_status,
                    error=canonical.error,
                    error_code=_REJECTION_CODES[canonical.rejection],
                    needs_manual_review=link.needs_manual_review,
                )

            if canonical.status == CanonicalStatus.FAILED:
                await self._repo.mark_canonical_failed(link.id, canonical.error)
                log.info("Re-canonicalization still failing", error=canonical.error)
                return IngestResult(
                    success=False,
                    raw_url=link.original_url,
                    link_id=link.id,
                    canonical_url=link.canonical_url,
                    status=CanonicalStatus.FAILED,
                    error=canonical.error,
                    needs_manual_review=True,
                )

            existing = await self._repo.get_by_canonical_url(canonical.canonical_url)
            if existing is not None and existing.id != link.id:
                return self._conflict(link.id, link.original_url, canonical.canonical_url, existing.id)

            try:
                updated = await self._repo.mark_canonical_success(
                    link.id,
                    canonical.canonical_url,
                    canonical.domain or extract_domain(canonical.canonical_url),
                )
            except asyncpg.UniqueViolationError:
                return self._conflict(link.id, link.original_url, canonical.canonical_url, None)

        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            log.error("Database error during re-canonicalization", error=str(e))
            return IngestResult(
                success=False,
                link_id=link_id,
                error=f"Database error: {e}",
                error_code=IngestErrorCode.DATABASE,
            )

        log.info(
            "Link re-canonicalized",
            canonical_url=canonical.canonical_url,
        )
        return IngestResult(
            success=True,
            raw_url=link.original_url,
            link_id=link.id,
            canonical_url=updated.canonical_url if updated else canonical.canonical_url,
            status=CanonicalStatus.SUCCESS,
        )

    def _conflict(
        self,
        link_id: str,
        raw_url: str,
        canonical_url: str,
        other_id: str | None,
    ) -> IngestResult:
        owner = f" {other_id}" if other_id else ""
        logger.warning(
            "Canonical URL belongs to another link",
            link_id=link_id,
            other_link_id=other_id,
            canonical_url=canonical_url,
        )
        return IngestResult(
            success=False,
            raw_url=raw_url,
            link_id=link_id,
            canonical_url=canonical_url,
            status=CanonicalStatus.FAILED,
            error=f"Canonical URL already belongs to link{owner}",
            error_code=IngestErrorCode.DUPLICATE,
            needs_manual_review=True,
        )
