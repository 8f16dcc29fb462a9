"""Ingestion collaborators: feed polling and content link extraction."""

from linksignal.ingestion.extractor import extract_links_from_html, should_skip_link
from linksignal.ingestion.feed_poller import (
    FeedEntry,
    FeedFetchError,
    FeedPoller,
    PollResult,
    parse_feed,
)

__all__ = [
    "FeedEntry",
    "FeedFetchError",
    "FeedPoller",
    "PollResult",
    "extract_links_from_html",
    "parse_feed",
    "should_skip_link",
]
