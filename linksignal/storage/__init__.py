"""Storage layer - PostgreSQL connection management."""

from linksignal.storage.database import Database

__all__ = ["Database"]
