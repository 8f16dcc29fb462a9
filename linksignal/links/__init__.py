"""Links and mentions: storage and idempotent ingestion."""

from linksignal.links.config import IngestionConfig
from linksignal.links.ingestor import MentionIngestor
from linksignal.links.metadata import MetadataFetcher, parse_metadata
from linksignal.links.repository import LinkRepository, SightingOutcome
from linksignal.links.schemas import (
    BatchSummary,
    IngestErrorCode,
    IngestResult,
    Link,
    LinkMetadata,
    Mention,
    MentionCandidate,
)

__all__ = [
    "BatchSummary",
    "IngestErrorCode",
    "IngestResult",
    "IngestionConfig",
    "Link",
    "LinkMetadata",
    "LinkRepository",
    "Mention",
    "MentionCandidate",
    "MentionIngestor",
    "MetadataFetcher",
    "SightingOutcome",
    "parse_metadata",
]
