"""Source registry: feeds and newsletters that produce mentions."""

from linksignal.sources.config import SourcesConfig
from linksignal.sources.repository import SourcesRepository
from linksignal.sources.schemas import Source, SourceTier
from linksignal.sources.service import SourcesService, filter_own_links

__all__ = [
    "Source",
    "SourceTier",
    "SourcesConfig",
    "SourcesRepository",
    "SourcesService",
    "filter_own_links",
]
