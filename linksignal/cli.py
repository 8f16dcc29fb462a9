"""
Command-line interface for linksignal.

Usage:
    linksignal init-db                    # Create tables
    linksignal seed-sources               # Load the default source list
    linksignal canonicalize URL           # Resolve one URL (no database)
    linksignal ingest URL --source-id 3   # Ingest one mention
    linksignal poll                       # Poll every active feed
    linksignal score LINK_ID              # Show a link's signal
    linksignal trending                   # Show trending links
    linksignal review                     # List links needing manual review
    linksignal recanonicalize LINK_ID     # Retry a failed canonicalization
    linksignal health                     # Check dependencies
"""

import asyncio
import json
import os
import sys
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

import click

from linksignal.config.settings import get_settings
from linksignal.observability.logging import setup_logging
from linksignal.observability.metrics import get_metrics

if TYPE_CHECKING:
    from linksignal.canonicalization import BlacklistGuard, Canonicalizer
    from linksignal.links import MentionIngestor
    from linksignal.sources import SourcesService
    from linksignal.storage.database import Database


@dataclass
class Pipeline:
    """Wired components for commands that ingest."""

    database: "Database"
    ingestor: "MentionIngestor"
    blacklist: "BlacklistGuard"
    sources: "SourcesService"


@asynccontextmanager
async def _canonicalizer(use_cache: bool = True) -> AsyncIterator["Canonicalizer"]:
    from linksignal.canonicalization import (
        CanonicalCache,
        CanonicalizationConfig,
        Canonicalizer,
        RedirectResolver,
    )

    settings = get_settings()
    config = CanonicalizationConfig()
    cache = None
    if use_cache and settings.redis_enabled and config.cache_enabled:
        cache = CanonicalCache.from_url(str(settings.redis_url), config.cache_ttl_seconds)

    async with RedirectResolver(config) as resolver:
        try:
            yield Canonicalizer(resolver, cache=cache)
        finally:
            if cache is not None:
                await cache.close()


@asynccontextmanager
async def _pipeline() -> AsyncIterator[Pipeline]:
    from linksignal.canonicalization import BlacklistRepository
    from linksignal.links import LinkRepository, MentionIngestor, MetadataFetcher
    from linksignal.sources import SourcesService
    from linksignal.storage.database import Database

    db = Database()
    await db.connect()
    try:
        async with _canonicalizer() as canonicalizer, MetadataFetcher() as fetcher:
            ingestor = MentionIngestor(LinkRepository(db), canonicalizer, metadata_fetcher=fetcher)
            blacklist = await BlacklistRepository(db).snapshot()
            yield Pipeline(
                database=db,
                ingestor=ingestor,
                blacklist=blacklist,
                sources=SourcesService(db),
            )
    finally:
        await db.close()


def _echo_result(result) -> None:
    color = "green" if result.success else "red"
    click.echo(click.style(f"  success: {result.success}", fg=color))
    for name in ("link_id", "canonical_url", "status", "error", "error_code", "is_new_link", "needs_manual_review"):
        value = getattr(result, name)
        if hasattr(value, "value"):
            value = value.value
        click.echo(f"  {name}: {value}")


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """linksignal - link identity and signal scoring."""
    if debug:
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from linksignal.canonicalization import BlacklistRepository
    from linksignal.links import LinkRepository
    from linksignal.sources import SourcesRepository, SourcesService
    from linksignal.storage.database import Database

    async def run():
        db = Database()
        await db.connect()
        try:
            await SourcesRepository(db).create_table()
            await BlacklistRepository(db).create_table()
            await LinkRepository(db).create_tables()
            await SourcesService(db).ensure_seeded()
        finally:
            await db.close()

        click.echo("Database initialized successfully")

    asyncio.run(run())


@main.command("seed-sources")
@click.option("--file", "path", type=click.Path(exists=True, dir_okay=False), default=None,
              help="JSON seed file (defaults to the bundled list)")
def seed_sources(path: str | None) -> None:
    """Load sources from JSON into the database."""
    from pathlib import Path

    from linksignal.sources import SourcesService
    from linksignal.storage.database import Database

    async def run():
        db = Database()
        await db.connect()
        try:
            count = await SourcesService(db).seed_from_json(Path(path) if path else None)
        finally:
            await db.close()
        click.echo(f"Seeded {count} sources")

    asyncio.run(run())


@main.command()
@click.argument("url")
@click.option("--no-cache", is_flag=True, help="Bypass the canonical URL cache")
def canonicalize(url: str, no_cache: bool) -> None:
    """Canonicalize a URL without touching the database."""

    async def run():
        async with _canonicalizer(use_cache=not no_cache) as canonicalizer:
            return await canonicalizer.canonicalize(url)

    result = asyncio.run(run())

    click.echo(f"\n  canonical_url: {result.canonical_url}")
    click.echo(f"  domain: {result.domain} (base: {result.base_domain})")
    click.echo(f"  status: {result.status.value}")
    if result.error:
        click.echo(click.style(f"  error: {result.error}", fg="red"))
    if result.from_cache:
        click.echo("  from_cache: True")
    if len(result.redirect_chain) > 1:
        click.echo("  redirect chain:")
        for hop in result.redirect_chain:
            click.echo(f"    -> {hop}")


@main.command()
@click.argument("url")
@click.option("--source-id", required=True, type=int, help="Source that saw the URL")
@click.option("--title", default=None, help="Title supplied with the URL")
def ingest(url: str, source_id: int, title: str | None) -> None:
    """Ingest a single mention."""

    async def run():
        async with _pipeline() as pipeline:
            return await pipeline.ingestor.ingest(
                url, source_id, title, blacklist=pipeline.blacklist
            )

    result = asyncio.run(run())
    click.echo("\nIngest Result:")
    _echo_result(result)
    sys.exit(0 if result.success else 1)


@main.command()
@click.option("--source-id", type=int, default=None, help="Poll only this source")
@click.option("--metrics/--no-metrics", default=False, help="Enable metrics server")
def poll(source_id: int | None, metrics: bool) -> None:
    """Poll active feeds and ingest the links they mention."""
    from linksignal.ingestion import FeedPoller

    async def run():
        if metrics:
            get_metrics().start_server()

        async with _pipeline() as pipeline:
            sources = await pipeline.sources.get_pollable()
            if source_id is not None:
                sources = [s for s in sources if s.id == source_id]

            async with FeedPoller(pipeline.ingestor, pipeline.sources.repository) as poller:
                return await poller.poll_all(sources, blacklist=pipeline.blacklist)

    results = asyncio.run(run())

    click.echo("\nPoll Results:")
    for r in results:
        if r.success:
            summary = r.summary
            click.echo(
                f"  {r.source_name}: {r.item_count} items, {r.candidate_count} links, "
                f"{summary.succeeded} ok, {summary.failed} failed, "
                f"{len(summary.needs_review_link_ids)} need review"
            )
        else:
            click.echo(click.style(f"  {r.source_name}: {r.error}", fg="red"))
    if not results:
        click.echo("  No pollable sources")


@main.command()
@click.argument("link_id")
@click.option("--mentions", "show_mentions", is_flag=True, help="Also list every source sighting")
def score(link_id: str, show_mentions: bool) -> None:
    """Show velocity, weighted velocity and trending for a link."""
    from linksignal.links import LinkRepository
    from linksignal.scoring import LinkScoringService
    from linksignal.storage.database import Database

    async def run():
        db = Database()
        await db.connect()
        try:
            result = await LinkScoringService(db).score_link(link_id)
            mentions = []
            if result is not None and show_mentions:
                mentions = await LinkRepository(db).get_mentions(link_id)
            return result, mentions
        finally:
            await db.close()

    result, mentions = asyncio.run(run())
    if result is None:
        click.echo(click.style(f"Link {link_id} not found", fg="red"))
        sys.exit(1)
    click.echo(json.dumps(result.to_dict(), indent=2))
    for m in mentions:
        click.echo(f"  source {m.source_id}  seen {m.seen_at.isoformat()}")


@main.command()
@click.option("--limit", default=20, help="Maximum links shown")
@click.option("--all", "show_all", is_flag=True, help="Rank all recent links, not only trending")
def trending(limit: int, show_all: bool) -> None:
    """List trending links, best first."""
    from linksignal.scoring import LinkScoringService
    from linksignal.storage.database import Database

    async def run():
        db = Database()
        await db.connect()
        try:
            return await LinkScoringService(db).ranked(limit=limit, trending_only=not show_all)
        finally:
            await db.close()

    scores = asyncio.run(run())
    if not scores:
        click.echo("No trending links")
        return

    for i, s in enumerate(scores, 1):
        flag = "*" if s.is_trending else " "
        click.echo(
            f"{i:3d}.{flag} v={s.velocity} wv={s.weighted_velocity:.2f} "
            f"rank={s.ranking_score:.4f}  {s.canonical_url}"
        )


@main.command()
@click.option("--limit", default=50, help="Maximum links shown")
def review(limit: int) -> None:
    """List links whose canonicalization failed."""
    from linksignal.links import LinkRepository
    from linksignal.storage.database import Database

    async def run():
        db = Database()
        await db.connect()
        try:
            repo = LinkRepository(db)
            return await repo.list_needs_review(limit), await repo.count_by_status()
        finally:
            await db.close()

    links, counts = asyncio.run(run())
    if counts:
        summary = ", ".join(f"{status}={n}" for status, n in sorted(counts.items()))
        click.echo(f"Links by status: {summary}")
    if not links:
        click.echo("Review queue is empty")
        return

    for link in links:
        click.echo(f"{link.id}  {link.original_url}")
        click.echo(f"    error: {link.canonical_error}")


@main.command()
@click.argument("link_id")
def recanonicalize(link_id: str) -> None:
    """Retry canonicalization for a failed link."""

    async def run():
        async with _pipeline() as pipeline:
            return await pipeline.ingestor.recanonicalize(link_id, blacklist=pipeline.blacklist)

    result = asyncio.run(run())
    click.echo("\nRe-canonicalization Result:")
    _echo_result(result)
    sys.exit(0 if result.success else 1)


@main.command()
def health() -> None:
    """Check Postgres and the Redis canonical cache."""
    from linksignal.canonicalization import CanonicalCache
    from linksignal.storage.database import Database

    async def check() -> dict[str, bool]:
        settings = get_settings()
        results: dict[str, bool] = {}

        db = Database()
        try:
            await db.connect()
            results["postgres"] = await db.health_check()
        except Exception as e:
            click.echo(click.style(f"  postgres: {e}", fg="yellow"), err=True)
            results["postgres"] = False
        finally:
            await db.close()

        if settings.redis_enabled:
            cache = CanonicalCache.from_url(str(settings.redis_url))
            results["redis"] = await cache.health_check()
            await cache.close()

        return results

    results = asyncio.run(check())
    for name, ok in results.items():
        click.echo(click.style(f"  {'ok' if ok else 'FAIL'}  {name}", fg="green" if ok else "red"))
    sys.exit(0 if all(results.values()) else 1)


if __name__ == "__main__":
    main()
